import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from budget_categorizer.api.dependencies import get_service
from budget_categorizer.api.schemas import CategorizeRequest
from budget_categorizer.manager import CategorizerService
from budget_categorizer.models import ClassificationResult

router = APIRouter()


@router.post("/categorize", response_model=ClassificationResult)
async def categorize_transaction(
    req: CategorizeRequest,
    service: Annotated[CategorizerService, Depends(get_service)],
) -> ClassificationResult:
    return await asyncio.to_thread(service.classify, req.transaction)
