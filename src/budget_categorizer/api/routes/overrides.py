import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from budget_categorizer.api.dependencies import get_service
from budget_categorizer.manager import CategorizerService
from budget_categorizer.models import OverrideEntry

router = APIRouter(prefix="/api/merchant_overrides")


@router.get("", response_model=list[OverrideEntry])
async def list_merchant_overrides(
    service: Annotated[CategorizerService, Depends(get_service)],
) -> list[OverrideEntry]:
    return service.overrides.list_overrides()


@router.get("/stems", response_model=list[OverrideEntry])
async def list_stem_overrides(
    service: Annotated[CategorizerService, Depends(get_service)],
) -> list[OverrideEntry]:
    return service.overrides.list_stem_overrides()


@router.post("/backfill")
async def backfill_stem_overrides(
    service: Annotated[CategorizerService, Depends(get_service)],
) -> dict[str, int]:
    created = await asyncio.to_thread(service.backfill_stems)
    return {"created": created}
