from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from budget_categorizer.api.dependencies import get_service
from budget_categorizer.api.schemas import CustomCategoryRequest
from budget_categorizer.domain.categories import Category
from budget_categorizer.manager import CategorizerService

router = APIRouter(prefix="/api/categories")


@router.get("")
async def get_categories(
    service: Annotated[CategorizerService, Depends(get_service)],
) -> dict[str, list[str]]:
    return {
        "builtin": [member.value for member in Category],
        "custom": service.custom_categories.list(),
    }


@router.post("", status_code=201)
async def add_category(
    req: CustomCategoryRequest,
    service: Annotated[CategorizerService, Depends(get_service)],
) -> dict[str, str]:
    name = service.custom_categories.add(req.name)
    if not name:
        raise HTTPException(status_code=400, detail="Category name is required")
    return {"name": name}


@router.delete("/{name}")
async def remove_category(
    name: str,
    service: Annotated[CategorizerService, Depends(get_service)],
) -> dict[str, str]:
    if not service.custom_categories.remove(name):
        raise HTTPException(status_code=404, detail="Not found")
    return {"status": "removed"}
