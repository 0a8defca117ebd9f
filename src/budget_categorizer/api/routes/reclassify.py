import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from budget_categorizer.api.dependencies import get_reclassification
from budget_categorizer.api.schemas import ApplyRequest
from budget_categorizer.logger import get_logger
from budget_categorizer.models import ReclassifyApplyResult, ReclassifyChange
from budget_categorizer.services.reclassification import (
    ReclassificationInProgressError,
    ReclassificationManager,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/reclassify")


@router.post("/dry-run", response_model=list[ReclassifyChange])
async def reclassify_dry_run(
    manager: Annotated[ReclassificationManager, Depends(get_reclassification)],
) -> list[ReclassifyChange]:
    return await asyncio.to_thread(manager.dry_run)


@router.post("/apply", response_model=ReclassifyApplyResult)
async def reclassify_apply(
    req: ApplyRequest,
    manager: Annotated[ReclassificationManager, Depends(get_reclassification)],
) -> ReclassifyApplyResult:
    logger.info("[RECLASSIFY] Apply requested for %d transaction(s).", len(req.ids))
    try:
        return await asyncio.to_thread(manager.apply, req.ids)
    except ReclassificationInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/status")
async def reclassify_status(
    manager: Annotated[ReclassificationManager, Depends(get_reclassification)],
) -> dict[str, Any]:
    return manager.get_status()
