import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from budget_categorizer.api.routes import (
    categories,
    categorize,
    imports,
    overrides,
    reclassify,
    transactions,
)
from budget_categorizer.core import settings
from budget_categorizer.logger import get_logger, setup_logging
from budget_categorizer.manager import CategorizerService
from budget_categorizer.services.importing import ImportPipeline
from budget_categorizer.services.reclassification import ReclassificationManager
from budget_categorizer.services.transactions import TransactionService
from budget_categorizer.storage.jsonfile import StoreUnavailableError
from budget_categorizer.storage.transactions import JsonTransactionStore

logger = get_logger(__name__)


def create_app(data_dir: str | None = None) -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        root = data_dir or settings.DATA_DIR
        settings.ensure_dir(root)

        service = CategorizerService(data_dir=root)
        store = JsonTransactionStore(data_path=os.path.join(root, settings.TRANSACTIONS_FILENAME))
        transaction_service = TransactionService(store=store, categorizer=service)

        if settings.BACKFILL_STEMS_ON_STARTUP:
            try:
                created = service.backfill_stems()
                logger.info("[BACKFILL] Created %d stem override(s).", created)
            except StoreUnavailableError as exc:
                logger.error("[BACKFILL] Skipped, override store unavailable: %s", exc)

        app.state.service = service
        app.state.transactions = transaction_service
        app.state.reclassification = ReclassificationManager(
            transactions=transaction_service,
            categorizer=service,
            workers=settings.RECLASSIFY_WORKERS,
        )
        app.state.import_pipeline = ImportPipeline(transactions=transaction_service)

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")

    app = FastAPI(title="Budget Categorizer", lifespan=lifespan)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("[STORE] %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})

    app.include_router(categorize.router)
    app.include_router(transactions.router)
    app.include_router(overrides.router)
    app.include_router(categories.router)
    app.include_router(reclassify.router)
    app.include_router(imports.router)

    return app


app = create_app()
