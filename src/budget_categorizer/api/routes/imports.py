import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request

from budget_categorizer.api.dependencies import get_import_pipeline
from budget_categorizer.integration.statements import (
    STATEMENT_FORMATS,
    StatementParseError,
    parse_statement,
)
from budget_categorizer.logger import get_logger
from budget_categorizer.models import ImportResult, StatementRow
from budget_categorizer.services.importing import ImportPipeline

logger = get_logger(__name__)

router = APIRouter(prefix="/api/import")


async def _parse_body(request: Request, fmt: str) -> list[StatementRow]:
    if fmt not in STATEMENT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format '{fmt}'")
    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="Empty statement")
    try:
        return await asyncio.to_thread(parse_statement, body, fmt)
    except StatementParseError as exc:
        logger.warning("[IMPORT] Could not parse %s statement: %s", fmt, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/preview")
async def preview_import(
    request: Request,
    pipeline: Annotated[ImportPipeline, Depends(get_import_pipeline)],
    format: str = "csv",
) -> dict[str, Any]:
    rows = await _parse_body(request, format)
    preview = await asyncio.to_thread(pipeline.preview, rows)
    return {
        "rows": preview,
        "total": len(preview),
        "new": sum(1 for row in preview if not row["duplicate"]),
    }


@router.post("", response_model=ImportResult)
async def commit_import(
    request: Request,
    pipeline: Annotated[ImportPipeline, Depends(get_import_pipeline)],
    format: str = "csv",
) -> ImportResult:
    rows = await _parse_body(request, format)
    return await asyncio.to_thread(pipeline.commit, rows)
