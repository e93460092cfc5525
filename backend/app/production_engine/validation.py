"""Pure validation helpers for case numbers and case rows. No DB dependency.

Every call site that accepts a case number (import, deletion, lookup,
consumption) goes through ``parse_case_number`` so the allowed alphabet is
defined in exactly one place.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

# Anything outside letters, digits, '-', '_', '/' and '\' is stripped
_DISALLOWED_CASE_CHARS = re.compile(r"[^-A-Za-z0-9_/\\]")

QUANTITY_FIELDS = ("criticalParts", "totalLines", "domesticLines", "bulkLines")

# Column limits: Integer is int4 on PostgreSQL, keys are String(200)
MAX_QUANTITY = 2**31 - 1
MAX_KEY_LENGTH = 200

# Rejection reasons
EMPTY_CASE_NUMBER = "empty_case_number"
MISSING_QUANTITY = "missing_quantity"
NOT_A_NUMBER = "not_a_number"
NON_FINITE = "non_finite"
NEGATIVE = "negative"
NOT_AN_INTEGER = "not_an_integer"
NOT_AN_OBJECT = "not_an_object"
TOO_LARGE = "too_large"
CASE_NUMBER_TOO_LONG = "case_number_too_long"


@dataclass(frozen=True)
class CaseNumber:
    """A sanitized case number, safe to use as a record key."""

    value: str

    def __str__(self) -> str:
        return self.value


def sanitize_case_number(raw: Any) -> str:
    return _DISALLOWED_CASE_CHARS.sub("", str(raw if raw is not None else "").strip())


def parse_case_number(raw: Any) -> tuple[CaseNumber | None, str | None]:
    """Sanitize a raw case number.

    Returns (case_number, None) on success or (None, reason) when nothing
    usable is left after stripping disallowed characters.
    """
    cleaned = sanitize_case_number(raw)
    if not cleaned:
        return None, EMPTY_CASE_NUMBER
    if len(cleaned) > MAX_KEY_LENGTH:
        return None, CASE_NUMBER_TOO_LONG
    return CaseNumber(cleaned), None


def sanitize_shipment_id(raw: Any) -> str:
    """Shipment ids in lookups are cleaned with the case number alphabet."""
    return sanitize_case_number(raw)


def coerce_quantity(raw: Any) -> tuple[int | None, str | None]:
    """Coerce a spreadsheet cell to a non-negative integer that fits an int4 column.

    Accepts ints, integral floats and numeric strings (``"1,200"``, ``"3.0"``,
    ``"1e3"``). Parsing goes through Decimal so large integers stay exact.
    Booleans and blanks are rejected rather than silently read as 0/1.
    """
    if raw is None or isinstance(raw, bool):
        return None, MISSING_QUANTITY

    if isinstance(raw, str):
        text = raw.strip().replace(",", "")
        if not text:
            return None, MISSING_QUANTITY
        try:
            value = Decimal(text)
        except InvalidOperation:
            return None, NOT_A_NUMBER
    elif isinstance(raw, (int, float)):
        value = Decimal(raw)
    else:
        return None, NOT_A_NUMBER

    if not value.is_finite():
        return None, NON_FINITE
    if value < 0:
        return None, NEGATIVE
    if value != value.to_integral_value():
        return None, NOT_AN_INTEGER
    if value > MAX_QUANTITY:
        return None, TOO_LARGE
    return int(value), None


def coerce_source_row(raw: Any) -> int | None:
    value, reason = coerce_quantity(raw)
    return value if reason is None else None


@dataclass(frozen=True)
class CaseRowValues:
    """A validated import row."""

    case_number: CaseNumber
    critical_parts: int
    total_lines: int
    domestic_lines: int
    bulk_lines: int
    source_row: int | None = None


def parse_case_row(raw: Any) -> tuple[CaseRowValues | None, str | None]:
    """Validate one raw import row.

    Returns (values, None) or (None, reason). ``totalLines`` is not required
    to equal ``domesticLines + bulkLines``; the fields are reported
    independently by the source spreadsheet.
    """
    if not isinstance(raw, dict):
        return None, NOT_AN_OBJECT

    case_number, reason = parse_case_number(raw.get("caseNumber"))
    if case_number is None:
        return None, reason

    quantities: dict[str, int] = {}
    for field_name in QUANTITY_FIELDS:
        value, reason = coerce_quantity(raw.get(field_name))
        if value is None:
            return None, f"{field_name}:{reason}"
        quantities[field_name] = value

    return CaseRowValues(
        case_number=case_number,
        critical_parts=quantities["criticalParts"],
        total_lines=quantities["totalLines"],
        domestic_lines=quantities["domesticLines"],
        bulk_lines=quantities["bulkLines"],
        source_row=coerce_source_row(raw.get("row")),
    ), None


def dedupe_rows(rows: list[CaseRowValues]) -> list[CaseRowValues]:
    """Collapse repeated case numbers, keeping the last occurrence in first-seen order."""
    latest: dict[str, CaseRowValues] = {}
    for row in rows:
        latest[row.case_number.value] = row
    return list(latest.values())


def chunked(items: list, size: int) -> list[list]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]
