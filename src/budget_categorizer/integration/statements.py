"""
Bank statement parsers.

Every parser returns ``StatementRow`` objects carrying a stable id derived
from the row's own fields. Rows are never classified here; that happens once,
when a row is inserted.
"""
import csv
import re
import zipfile
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any

from dateutil import parser as date_parser
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from budget_categorizer.domain.fingerprint import pad_time, stable_id
from budget_categorizer.logger import get_logger
from budget_categorizer.models import StatementRow

logger = get_logger(__name__)

UNKNOWN_MERCHANT = "Unknown"
CSV_PAYMENT_METHOD = "CSV Import"
XLSX_PAYMENT_METHOD = "XLSX Import"
BCC_PAYMENT_METHOD = "BCC"

DATE_COLUMNS = ("date", "booking date", "transaction date", "datum", "valuta")
TIME_COLUMNS = ("time", "transaction time", "booking time", "ora")
MERCHANT_COLUMNS = (
    "partner",
    "merchant",
    "payee",
    "counterparty",
    "description",
    "reference",
    "partner name",
)
AMOUNT_COLUMNS = ("amount", "amount (eur)", "amount (usd)", "betrag", "transaction amount")
TYPE_COLUMNS = ("type", "transaction type", "art")
PAYMENT_METHOD_COLUMNS = ("payment method", "account", "payment_method")

BCC_PURCHASE_DATE = "DATA ACQUISTO"
BCC_BOOKING_DATE = "DATA REGISTR."
BCC_AMOUNT = "IMPORTO IN EURO"
BCC_DESCRIPTION = "DESCRIZIONE DELLE OPERAZIONI"

_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[./](\d{1,2})[./](\d{2,4})$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?")
_RECURRING_RE = re.compile(r"recurring|subscription|abbuchung|dauerauftrag", re.IGNORECASE)
_CSV_DELIMITERS = (",", "\t", ";")


class StatementParseError(ValueError):
    """The statement file could not be read at all."""


def _norm_header(header: object) -> str:
    return re.sub(r"\s+", " ", str(header)).strip().lower()


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


def _expand_year(year: str) -> int:
    return int(f"20{year}") if len(year) == 2 else int(year)


def parse_date(value: object) -> date | None:
    """Best-effort date parsing; ISO first, then day-first, then dateutil."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = _text(value)
    if not raw:
        return None
    try:
        if _ISO_DATE_RE.match(raw):
            return date.fromisoformat(raw[:10])
        match = _DAY_FIRST_RE.match(raw)
        if match:
            day, month, year = match.groups()
            return date(_expand_year(year), int(month), int(day))
        return date_parser.parse(raw, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def parse_time(value: object) -> str:
    if isinstance(value, datetime):
        value = value.time()
    if isinstance(value, time):
        return "" if value == time(0, 0) else value.strftime("%H:%M:%S")
    match = _TIME_RE.match(_text(value))
    if not match:
        return ""
    hours, minutes, seconds = match.groups()
    return pad_time(f"{hours}:{minutes}:{seconds or '00'}")


def parse_amount(value: object) -> Decimal:
    """Parse ``-14.99``, ``-250,00`` or ``1.234,56``; anything else is zero."""
    if isinstance(value, bool) or value is None:
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")
    raw = re.sub(r"[\s€$£]", "", str(value)).replace("−", "-")
    if "," in raw and "." in raw:
        if raw.rfind(",") > raw.rfind("."):
            raw = raw.replace(".", "").replace(",", ".")
        else:
            raw = raw.replace(",", "")
    else:
        raw = raw.replace(",", ".")
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


def parse_bcc_datetime(value: object) -> tuple[date | None, str]:
    """``dd/mm/yyyy [hh:mm[:ss]]`` as used by BCC card statements."""
    if isinstance(value, (datetime, date)):
        return parse_date(value), parse_time(value)
    raw = _text(value)
    if not raw:
        return None, ""
    parts = raw.split()
    date_part = parts[0]
    time_part = " ".join(parts[1:])
    match = _DAY_FIRST_RE.match(date_part)
    if match:
        day, month, year = match.groups()
        try:
            parsed = date(_expand_year(year), int(month), int(day))
        except ValueError:
            return None, ""
        return parsed, parse_time(time_part)
    try:
        fallback = date_parser.parse(raw, dayfirst=True)
    except (ValueError, OverflowError):
        return None, ""
    return fallback.date(), parse_time(fallback)


def parse_csv(text: str) -> list[dict[str, str]]:
    """Header-mapped rows. Comma, tab and semicolon separators are detected from the header."""
    if not text or not isinstance(text, str):
        return []
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        return []
    delimiter = max(_CSV_DELIMITERS, key=lines[0].count)
    reader = csv.reader(lines, delimiter=delimiter)
    headers = [header.strip() for header in next(reader)]
    rows = []
    for values in reader:
        row = {
            header: values[index].strip() if index < len(values) else ""
            for index, header in enumerate(headers)
        }
        rows.append(row)
    return rows


def _column_getter(row: Mapping[str, Any]) -> Callable[..., Any]:
    by_norm = {_norm_header(key): value for key, value in row.items() if key is not None}

    def get(*names: str) -> Any:
        for name in names:
            value = by_norm.get(_norm_header(name))
            if not _is_blank(value):
                return value.strip() if isinstance(value, str) else value
        return None

    return get


def row_to_statement_row(
    row: Mapping[str, Any],
    *,
    default_payment_method: str = CSV_PAYMENT_METHOD,
    today: date | None = None,
) -> StatementRow | None:
    """
    Map a generic/N26 style row to a ``StatementRow``.

    Missing or unparsable values degrade to defaults (today, ``Unknown``,
    zero). Returns None only for a row whose cells are all blank.
    """
    if all(_is_blank(value) for value in row.values()):
        return None
    get = _column_getter(row)

    row_date = parse_date(get(*DATE_COLUMNS)) or today or date.today()
    row_time = parse_time(get(*TIME_COLUMNS))
    merchant = _text(get(*MERCHANT_COLUMNS)) or UNKNOWN_MERCHANT
    amount = parse_amount(get(*AMOUNT_COLUMNS))

    type_raw = _text(get(*TYPE_COLUMNS))
    row_type = "recurring" if _RECURRING_RE.search(type_raw) else "one-time"
    payment_method = _text(get(*PAYMENT_METHOD_COLUMNS)) or default_payment_method

    return StatementRow(
        id=stable_id(row_date, row_time, amount, merchant),
        merchant=merchant,
        date=row_date,
        time=row_time or None,
        amount=amount,
        type=row_type,
        payment_method=payment_method,
    )


def _collect(rows: Iterable[StatementRow | None]) -> list[StatementRow]:
    return [row for row in rows if row is not None]


def parse_csv_statement(text: str) -> list[StatementRow]:
    return _collect(row_to_statement_row(row) for row in parse_csv(text))


def _read_sheet(data: bytes) -> list[tuple[Any, ...]]:
    if not data:
        return []
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise StatementParseError(f"Not a readable XLSX file: {exc}") from exc
    try:
        if not workbook.worksheets:
            return []
        return [tuple(row) for row in workbook.worksheets[0].iter_rows(values_only=True)]
    finally:
        workbook.close()


def _header_rows(sheet: list[tuple[Any, ...]]) -> tuple[list[str], list[tuple[Any, ...]]]:
    if not sheet:
        return [], []
    headers = [_text(cell) for cell in sheet[0]]
    return headers, sheet[1:]


def parse_xlsx_statement(data: bytes) -> list[StatementRow]:
    """First sheet, first row as headers, same column mapping as CSV."""
    headers, body = _header_rows(_read_sheet(data))
    rows = (
        row_to_statement_row(dict(zip(headers, values)), default_payment_method=XLSX_PAYMENT_METHOD)
        for values in body
    )
    return _collect(rows)


def parse_bcc_xlsx_statement(data: bytes) -> list[StatementRow]:
    """BCC credit card ``ListaMovimenti`` export. Rows without a date are skipped."""
    headers, body = _header_rows(_read_sheet(data))
    result: list[StatementRow] = []
    for values in body:
        by_header = dict(zip(headers, values))
        raw_date = by_header.get(BCC_PURCHASE_DATE)
        if _is_blank(raw_date):
            raw_date = by_header.get(BCC_BOOKING_DATE)
        row_date, row_time = parse_bcc_datetime(raw_date)
        if row_date is None:
            continue
        amount = parse_amount(by_header.get(BCC_AMOUNT))
        merchant = _text(by_header.get(BCC_DESCRIPTION)) or UNKNOWN_MERCHANT
        result.append(StatementRow(
            id=stable_id(row_date, row_time, amount, merchant),
            merchant=merchant,
            date=row_date,
            time=row_time or None,
            amount=amount,
            payment_method=BCC_PAYMENT_METHOD,
        ))
    return result


STATEMENT_FORMATS = ("csv", "xlsx", "bcc")


def parse_statement(data: bytes, fmt: str = "csv") -> list[StatementRow]:
    fmt = (fmt or "csv").lower()
    if fmt == "csv":
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = data.decode("latin-1")
        rows = parse_csv_statement(text)
    elif fmt == "xlsx":
        rows = parse_xlsx_statement(data)
    elif fmt == "bcc":
        rows = parse_bcc_xlsx_statement(data)
    else:
        raise StatementParseError(f"Unsupported statement format '{fmt}'")
    logger.info("[IMPORT] Parsed %d row(s) from %s statement.", len(rows), fmt)
    return rows
