from datetime import date as date_type
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class CategorySource(str, Enum):
    OVERRIDE = "OVERRIDE"
    RULE = "RULE"
    FALLBACK = "FALLBACK"
    IMPORT = "IMPORT"


class Transaction(BaseModel):
    id: str | None = None
    merchant: str = ""
    amount: Decimal = Decimal("0")
    date: date_type = Field(default_factory=date_type.today)
    time: str | None = None  # HH:MM:SS when the source knows it
    type: str = "one-time"  # channel: one-time, recurring, cash, transfer
    recurring_interval: str | None = None
    payment_method: str = ""
    status: str = "completed"

    # Secondary signals, all optional
    canonical_merchant: str | None = None
    payee: str | None = None
    counterparty: str | None = None
    description: str | None = None
    mcc: str | None = None
    country_prefix: str | None = None

    category: str | None = None
    category_source: CategorySource | None = None
    category_confidence: float | None = None
    category_fingerprint: str | None = None
    matched_rule_id: str | None = None


class ClassificationResult(BaseModel):
    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: CategorySource
    fingerprint: str
    matched_rule_id: str | None = None
    matched_signals: list[str] = Field(default_factory=list)


OverrideKind = Literal["fingerprint", "stem"]


class OverrideEntry(BaseModel):
    key: str
    kind: OverrideKind = "fingerprint"
    category: str
    example_merchant: str = ""
    updated_at: datetime


class ReclassifyChange(BaseModel):
    id: str
    merchant: str
    date: date_type
    current_category: str | None
    suggested_category: str
    source: CategorySource
    confidence: float
    matched_rule_id: str | None = None


class ItemFailure(BaseModel):
    id: str
    error: str


class ReclassifyApplyResult(BaseModel):
    applied: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[ItemFailure] = Field(default_factory=list)


class StatementRow(BaseModel):
    id: str
    merchant: str
    date: date_type
    time: str | None = None
    amount: Decimal
    type: str = "one-time"
    payment_method: str = ""
    status: str = "completed"

    def to_transaction(self) -> Transaction:
        return Transaction(
            id=self.id,
            merchant=self.merchant,
            amount=self.amount,
            date=self.date,
            time=self.time,
            type=self.type,
            payment_method=self.payment_method,
            status=self.status,
        )


class ImportResult(BaseModel):
    inserted: list[str] = Field(default_factory=list)
    duplicates: list[str] = Field(default_factory=list)
    failed: list[ItemFailure] = Field(default_factory=list)
