import hashlib
from datetime import date
from decimal import Decimal, InvalidOperation

from budget_categorizer.domain.normalization import normalize
from budget_categorizer.models import Transaction

FIELD_DELIMITER = "|"
STABLE_ID_PREFIX = "imp-"
STABLE_ID_LENGTH = 24

_MERCHANT_FIELDS = ("canonical_merchant", "merchant", "payee", "counterparty", "description")


def _digest(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _clean(value: object) -> str:
    return str(value).strip() if value is not None else ""


def raw_merchant(tx: Transaction) -> str:
    """First non-empty merchant-like field, unnormalized."""
    for field in _MERCHANT_FIELDS:
        value = _clean(getattr(tx, field, None))
        if value:
            return value
    return ""


def merchant_candidate(tx: Transaction) -> str:
    return normalize(raw_merchant(tx))


def fingerprint(tx: Transaction) -> str:
    """
    Hash of normalized merchant, MCC, country prefix and channel.

    Amount, date and id are not part of the payload, so a
    recurring merchant keeps the same fingerprint month after month.
    """
    payload = FIELD_DELIMITER.join([
        merchant_candidate(tx),
        _clean(tx.mcc),
        _clean(tx.country_prefix),
        _clean(tx.type),
    ])
    return _digest(payload)


def canonical_amount(amount: Decimal | int | float | str) -> str:
    """Plain decimal text for ``amount`` with trailing zeros removed; ``-5.00`` -> ``-5``."""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation:
        return _clean(amount)
    if not value.is_finite():
        return _clean(amount)
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def pad_time(value: str | None) -> str:
    """``H:M[:S]`` -> ``HH:MM:SS``; anything unparsable becomes ``""``."""
    if not value:
        return ""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        return ""
    if len(parts) == 2:
        parts.append("0")
    return ":".join(part.zfill(2) for part in parts)


def stable_id(
    date_value: date | str,
    time_value: str | None,
    amount: Decimal | int | float | str,
    merchant: str,
) -> str:
    """Deterministic id for an imported statement row."""
    date_text = date_value.isoformat() if isinstance(date_value, date) else _clean(date_value)
    payload = FIELD_DELIMITER.join([
        date_text,
        pad_time(time_value),
        canonical_amount(amount),
        _clean(merchant),
    ])
    return f"{STABLE_ID_PREFIX}{_digest(payload)[:STABLE_ID_LENGTH]}"
