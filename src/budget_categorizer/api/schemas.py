from datetime import date as date_type
from decimal import Decimal

from pydantic import BaseModel, Field

from budget_categorizer.models import Transaction


class CategorizeRequest(BaseModel):
    transaction: Transaction


class TransactionUpdate(BaseModel):
    merchant: str | None = None
    amount: Decimal | None = None
    date: date_type | None = None
    time: str | None = None
    type: str | None = None
    recurring_interval: str | None = None
    payment_method: str | None = None
    status: str | None = None
    canonical_merchant: str | None = None
    payee: str | None = None
    counterparty: str | None = None
    description: str | None = None
    mcc: str | None = None
    country_prefix: str | None = None
    category: str | None = None


class CategoryRequest(BaseModel):
    category: str


class CustomCategoryRequest(BaseModel):
    name: str


class ApplyRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)
