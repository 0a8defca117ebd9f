from collections.abc import Iterable
from enum import Enum


class Category(str, Enum):
    INCOME_SALARY = "INCOME_SALARY"
    INCOME_OTHER = "INCOME_OTHER"
    HOUSING_RENT_MORTGAGE = "HOUSING_RENT_MORTGAGE"
    UTILITIES = "UTILITIES"
    GROCERIES = "GROCERIES"
    DINING = "DINING"
    TRANSPORT_FUEL = "TRANSPORT_FUEL"
    TRANSPORT_PUBLIC = "TRANSPORT_PUBLIC"
    PARKING = "PARKING"
    SHOPPING = "SHOPPING"
    SUBSCRIPTIONS = "SUBSCRIPTIONS"
    HEALTH = "HEALTH"
    EDUCATION = "EDUCATION"
    CHILDCARE = "CHILDCARE"
    ENTERTAINMENT = "ENTERTAINMENT"
    TRAVEL = "TRAVEL"
    INSURANCE = "INSURANCE"
    TAXES_FEES = "TAXES_FEES"
    CASH_WITHDRAWAL = "CASH_WITHDRAWAL"
    TRANSFERS_INTERNAL = "TRANSFERS_INTERNAL"
    TRANSFERS_EXTERNAL = "TRANSFERS_EXTERNAL"
    GIFTS_DONATIONS = "GIFTS_DONATIONS"
    OTHER = "OTHER"
    UNCATEGORIZED = "UNCATEGORIZED"


FALLBACK_CATEGORY = Category.UNCATEGORIZED.value

BUILTIN_CATEGORIES: frozenset[str] = frozenset(member.value for member in Category)


def is_builtin(name: str | None) -> bool:
    return name in BUILTIN_CATEGORIES


def is_fallback(name: str | None) -> bool:
    return not name or name == FALLBACK_CATEGORY


def coerce_category(value: object, custom_categories: Iterable[str] | None = None) -> str:
    """
    Return ``value`` as a storable category name.

    Anything that is neither a built-in category nor a registered custom
    category becomes ``UNCATEGORIZED``.
    """
    if isinstance(value, Category):
        return value.value
    if not isinstance(value, str):
        return FALLBACK_CATEGORY
    name = value.strip()
    if not name:
        return FALLBACK_CATEGORY
    if name in BUILTIN_CATEGORIES:
        return name
    if custom_categories is not None and name in set(custom_categories):
        return name
    return FALLBACK_CATEGORY
