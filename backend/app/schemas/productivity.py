"""Pydantic schemas for productivity submissions and summaries."""

from typing import Any

from pydantic import Field

from app.schemas.common import CamelModel


class ProductivityRequest(CamelModel):
    date: Any = None
    user_id: str | None = None
    # Entries are validated one by one by the ledger, not by the schema
    sorting_entries: Any = None
    packing_entries: Any = None


class SortingTotals(CamelModel):
    total_cases: int = 0
    total_lines: int = 0
    total_domestic: int = 0
    total_bulk: int = 0


class PackingTotals(CamelModel):
    total_cases: int = 0
    total_lines: int = 0


class SubmissionSummary(CamelModel):
    date: str
    sorting: SortingTotals
    packing: PackingTotals


class DailyTotals(CamelModel):
    sorter_lines: int = 0
    sorter_cases: int = 0
    sorter_domestic_lines: int = 0
    sorter_bulk_lines: int = 0
    packer_lines: int = 0
    packer_cases: int = 0


class EntryResult(CamelModel):
    type: str
    index: int
    accepted: bool
    error: str | None = None
    message: str | None = None
    remaining_lines: int | None = None


class RejectedEntry(EntryResult):
    entry: Any = None


class ProductivityResponse(CamelModel):
    summary: SubmissionSummary
    daily_totals: DailyTotals
    results: list[EntryResult] = Field(default_factory=list)
    rejected: list[RejectedEntry] = Field(default_factory=list)


class DayPoint(CamelModel):
    label: str
    sorter_lines: int = 0
    packer_lines: int = 0


class MonthlySummaryResponse(CamelModel):
    month: str
    chart_data: list[DayPoint]
    totals: DailyTotals
