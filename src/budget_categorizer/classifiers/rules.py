import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from budget_categorizer.domain.categories import Category
from budget_categorizer.domain.fingerprint import fingerprint, merchant_candidate
from budget_categorizer.domain.normalization import tokenize
from budget_categorizer.logger import get_logger
from budget_categorizer.models import CategorySource, ClassificationResult, Transaction

from .base import Classifier

logger = get_logger(__name__)

Predicate = Callable[[Transaction, list[str], str], bool]


@dataclass(frozen=True)
class Rule:
    id: str
    confidence: float
    predicate: Predicate
    category: str


def norm_matches(pattern: str) -> Predicate:
    regex = re.compile(pattern, re.IGNORECASE)
    return lambda tx, tokens, norm: bool(regex.search(norm))


def mcc_matches(pattern: str) -> Predicate:
    regex = re.compile(pattern)
    return lambda tx, tokens, norm: bool(regex.fullmatch((tx.mcc or "").strip()))


def _is_inflow(tx: Transaction) -> bool:
    return Decimal(tx.amount) > 0


_CASH_MERCHANT_RE = re.compile(r"\bATM\b|CASH\s*WITHDRAWAL|BANCOMAT", re.IGNORECASE)
_CASH_NORM_RE = re.compile(r"\bATM\b|\bCASH\s*OUT\b", re.IGNORECASE)
_SALARY_RE = re.compile(r"\b(STIPENDIO|SALARY|PAYROLL|WAGE|PAY\s*SLIP)\b", re.IGNORECASE)
_INTERNAL_TRANSFER_RE = re.compile(r"\b(TRANSFER\s*FROM|INTERNAL|OWN\s*ACCOUNT)\b", re.IGNORECASE)
_SELF_TRANSFER_RE = re.compile(r"SELF|INTERNAL", re.IGNORECASE)


def _is_cash_withdrawal(tx: Transaction, tokens: list[str], norm: str) -> bool:
    if (tx.type or "").lower() == "cash":
        return True
    return bool(_CASH_MERCHANT_RE.search(tx.merchant or "") or _CASH_NORM_RE.search(norm))


def _is_salary(tx: Transaction, tokens: list[str], norm: str) -> bool:
    return _is_inflow(tx) and bool(_SALARY_RE.search(norm))


def _is_positive(tx: Transaction, tokens: list[str], norm: str) -> bool:
    return _is_inflow(tx)


def _is_internal_transfer(tx: Transaction, tokens: list[str], norm: str) -> bool:
    merchant = tx.merchant or ""
    if _INTERNAL_TRANSFER_RE.search(merchant):
        return True
    return (tx.type or "").lower() == "transfer" and bool(_SELF_TRANSFER_RE.search(merchant))


# Order matters: first match wins. Specific rules precede general ones that
# share vocabulary (salary before any inflow, internal before external transfers).
RULES: tuple[Rule, ...] = (
    Rule("cash_withdrawal", 0.95, _is_cash_withdrawal, Category.CASH_WITHDRAWAL.value),
    Rule(
        "amazon_shopping",
        0.9,
        lambda tx, tokens, norm: norm.startswith("AMAZON"),
        Category.SHOPPING.value,
    ),
    Rule("easypark_parking", 0.95, norm_matches(r"EASY\s*PARK"), Category.PARKING.value),
    Rule(
        "subscriptions_streaming",
        0.9,
        norm_matches(
            r"NETFLIX|SPOTIFY|PRIME|GOOGLE\s*ONE|APPLE\s*MUSIC|APPLE\s*TV|DISNEY|HBO|YOUTUBE\s*PREMIUM"
        ),
        Category.SUBSCRIPTIONS.value,
    ),
    Rule("groceries_mcc", 0.9, mcc_matches(r"5411"), Category.GROCERIES.value),
    Rule(
        "groceries_keywords",
        0.85,
        norm_matches(
            r"\b(SUPERMARKET|GROCERY|LIDL|ALDI|CARREFOUR|TESCO|REWE|WHOLE\s*FOODS|SAINSBURY|ESSELUNGA|CONAD|COOP)\b"
        ),
        Category.GROCERIES.value,
    ),
    Rule("dining_mcc", 0.9, mcc_matches(r"581[24]"), Category.DINING.value),
    Rule(
        "dining_keywords",
        0.85,
        norm_matches(r"\b(RESTAURANT|CAFE|COFFEE|PIZZA|UBER\s*EATS|DELIVEROO|WOLT|STARBUCKS|MCDONALD)\b"),
        Category.DINING.value,
    ),
    Rule(
        "fuel_keywords",
        0.9,
        norm_matches(r"\b(ENI|Q8|SHELL|BP|EXXON|TOTAL|CHEVRON|FUEL|GAS\s*STATION|PETROL)\b"),
        Category.TRANSPORT_FUEL.value,
    ),
    Rule("fuel_mcc", 0.9, mcc_matches(r"554[12]"), Category.TRANSPORT_FUEL.value),
    Rule(
        "rent_keywords",
        0.9,
        norm_matches(r"\b(RENT|AFFITTO|MIETE|MORTGAGE|LANDLORD)\b"),
        Category.HOUSING_RENT_MORTGAGE.value,
    ),
    Rule(
        "utilities_keywords",
        0.9,
        norm_matches(r"\b(ENEL|EDISON|A2A|GAS\s*BILL|ELECTRICITY|ACQUA|TARI|UTILITY|PGE|WATER|ELECTRIC)\b"),
        Category.UTILITIES.value,
    ),
    Rule(
        "insurance_keywords",
        0.85,
        norm_matches(r"\b(INSURANCE|ASSICURAZIONE|VERSICHERUNG)\b"),
        Category.INSURANCE.value,
    ),
    Rule("salary_keywords", 0.9, _is_salary, Category.INCOME_SALARY.value),
    Rule("income_positive", 0.7, _is_positive, Category.INCOME_OTHER.value),
    Rule("transfers_internal", 0.9, _is_internal_transfer, Category.TRANSFERS_INTERNAL.value),
    Rule(
        "transfers_external",
        0.7,
        norm_matches(r"\b(TRANSFER|BANK\s*TRANSFER|SEPA)\b"),
        Category.TRANSFERS_EXTERNAL.value,
    ),
)


class RuleClassifier(Classifier):
    def __init__(self, rules: Sequence[Rule] = RULES) -> None:
        self.rules = tuple(rules)

    def match(self, transaction: Transaction) -> Rule | None:
        norm = merchant_candidate(transaction)
        tokens = tokenize(norm)
        for rule in self.rules:
            try:
                matched = rule.predicate(transaction, tokens, norm)
            except Exception as exc:
                logger.debug("[RULES] Rule '%s' raised %r; treating as no match.", rule.id, exc)
                continue
            if matched:
                return rule
        return None

    def classify(self, transaction: Transaction) -> ClassificationResult | None:
        rule = self.match(transaction)
        if rule is None:
            return None
        return ClassificationResult(
            category=rule.category,
            confidence=rule.confidence,
            source=CategorySource.RULE,
            fingerprint=fingerprint(transaction),
            matched_rule_id=rule.id,
            matched_signals=[rule.id],
        )
