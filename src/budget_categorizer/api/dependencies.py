from fastapi import HTTPException, Request

from budget_categorizer.manager import CategorizerService
from budget_categorizer.services.importing import ImportPipeline
from budget_categorizer.services.reclassification import ReclassificationManager
from budget_categorizer.services.transactions import TransactionService


def get_service(request: Request) -> CategorizerService:
    service = getattr(request.app.state, "service", None)
    if not service:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service


def get_transactions(request: Request) -> TransactionService:
    transactions = getattr(request.app.state, "transactions", None)
    if not transactions:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return transactions


def get_reclassification(request: Request) -> ReclassificationManager:
    manager = getattr(request.app.state, "reclassification", None)
    if not manager:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return manager


def get_import_pipeline(request: Request) -> ImportPipeline:
    pipeline = getattr(request.app.state, "import_pipeline", None)
    if not pipeline:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return pipeline
