"""Pure parsing of operator-reported sorting and packing entries."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from app.errors import ValidationFailedError
from app.production_engine.validation import MAX_KEY_LENGTH, CaseNumber, coerce_quantity, parse_case_number

MISSING_SHIPMENT_ID = "missing_shipment_id"
NON_POSITIVE_LINES = "non_positive_lines"
TOO_LONG = "too_long"


@dataclass(frozen=True)
class SortingEntryValues:
    shipment_id: str
    case_number: CaseNumber
    lines_requested: int
    domestic_portion: int = 0
    bulk_portion: int = 0


@dataclass(frozen=True)
class PackingEntryValues:
    location_no: str
    new_case_no: str
    lines_packed: int


def _first_present(raw: dict, *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _optional_quantity(raw: dict, *keys: str) -> tuple[int | None, str | None]:
    value = _first_present(raw, *keys)
    if value is None:
        return 0, None
    return coerce_quantity(value)


def parse_sorting_entry(raw: Any) -> tuple[SortingEntryValues | None, str | None]:
    """Validate a sorting entry.

    ``linesRequested`` may also arrive as ``totalLines``; the domestic and bulk
    portions as ``ekcDomestic`` / ``ekmBulk``. The portions are informational
    and are not required to add up to ``linesRequested``.
    """
    if not isinstance(raw, dict):
        return None, "not_an_object"

    shipment_id = str(raw.get("shipmentId") or "").strip()
    if not shipment_id:
        return None, MISSING_SHIPMENT_ID

    case_number, reason = parse_case_number(raw.get("caseNumber"))
    if case_number is None:
        return None, reason

    lines, reason = coerce_quantity(_first_present(raw, "linesRequested", "totalLines"))
    if lines is None:
        return None, f"linesRequested:{reason}"
    if lines <= 0:
        return None, NON_POSITIVE_LINES

    domestic, reason = _optional_quantity(raw, "domesticPortion", "ekcDomestic")
    if domestic is None:
        return None, f"domesticPortion:{reason}"
    bulk, reason = _optional_quantity(raw, "bulkPortion", "ekmBulk")
    if bulk is None:
        return None, f"bulkPortion:{reason}"

    return SortingEntryValues(shipment_id, case_number, lines, domestic, bulk), None


def parse_packing_entry(raw: Any) -> tuple[PackingEntryValues | None, str | None]:
    if not isinstance(raw, dict):
        return None, "not_an_object"

    lines, reason = _optional_quantity(raw, "linesPacked")
    if lines is None:
        return None, f"linesPacked:{reason}"

    location_no = str(raw.get("locationNo") or "").strip()
    if len(location_no) > MAX_KEY_LENGTH:
        return None, f"locationNo:{TOO_LONG}"
    new_case_no = str(raw.get("newCaseNo") or "").strip()
    if len(new_case_no) > MAX_KEY_LENGTH:
        return None, f"newCaseNo:{TOO_LONG}"

    return PackingEntryValues(location_no=location_no, new_case_no=new_case_no, lines_packed=lines), None


def parse_entry_date(raw: Any, today: date | None = None) -> date:
    """Accept a date, a datetime, or an ISO string (date part is used)."""
    if raw is None or raw == "":
        return today or date.today()
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            return date.fromisoformat(raw.strip()[:10])
        except ValueError:
            pass
    raise ValidationFailedError(f"Invalid date: {raw!r}")
