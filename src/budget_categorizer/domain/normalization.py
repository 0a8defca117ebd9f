import re
from typing import NamedTuple

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")

MIN_STEM_LENGTH = 2


class MerchantAlias(NamedTuple):
    pattern: re.Pattern[str]
    replacement: str


# Checked in order against the already uppercased, punctuation-free string.
# First match wins and replaces the whole merchant string.
MERCHANT_ALIASES: tuple[MerchantAlias, ...] = (
    MerchantAlias(re.compile(r"^AMZN\s"), "AMAZON"),
    MerchantAlias(re.compile(r"^AMAZON\s+EU(\s|$)"), "AMAZON"),
    MerchantAlias(re.compile(r"^AMAZON"), "AMAZON"),
    MerchantAlias(re.compile(r"^EASY\s*PARK"), "EASYPARK"),
    MerchantAlias(re.compile(r"^NETFLIX"), "NETFLIX"),
    MerchantAlias(re.compile(r"^SPOTIFY"), "SPOTIFY"),
)


def _collapse_whitespace(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value).strip()


def normalize(raw: object) -> str:
    """
    Canonicalize a merchant or description string.

    Uppercases, strips punctuation, collapses whitespace and then applies the
    first matching entry of ``MERCHANT_ALIASES``. Returns ``""`` for empty or
    non-string input.
    """
    if not isinstance(raw, str) or not raw:
        return ""
    value = _collapse_whitespace(raw.upper())
    value = _collapse_whitespace(_PUNCTUATION_RE.sub("", value))
    for alias in MERCHANT_ALIASES:
        if alias.pattern.search(value):
            return alias.replacement
    return value


def tokenize(raw: object) -> list[str]:
    normalized = normalize(raw)
    if not normalized:
        return []
    return normalized.split(" ")


def stem(raw: object) -> str:
    """First normalized token, or ``""`` when it is shorter than two characters."""
    tokens = tokenize(raw)
    if not tokens:
        return ""
    first = tokens[0]
    return first if len(first) >= MIN_STEM_LENGTH else ""
