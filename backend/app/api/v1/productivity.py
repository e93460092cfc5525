"""Operator productivity endpoints."""

from fastapi import APIRouter, Depends, Query

from app.consumption_ledger.service import ConsumptionLedger, EntryOutcome, SubmissionResult
from app.dependencies import get_consumption_ledger, get_current_user_id, require_permission
from app.models.productivity import ProductivityEntryType
from app.schemas.productivity import (
    DailyTotals,
    DayPoint,
    EntryResult,
    MonthlySummaryResponse,
    PackingTotals,
    ProductivityRequest,
    ProductivityResponse,
    RejectedEntry,
    SortingTotals,
    SubmissionSummary,
)

router = APIRouter()


@router.post("", response_model=ProductivityResponse)
async def submit_productivity(
    request: ProductivityRequest,
    caller_id: str = Depends(require_permission("productivity", "add")),
    ledger: ConsumptionLedger = Depends(get_consumption_ledger),
) -> ProductivityResponse:
    """Record sorting and packing entries for one operator-day.

    Each entry is accepted or rejected independently; over-consumption of a
    case shows up as a rejected entry, not as a failed request.
    """
    result = await ledger.record(
        user_id=request.user_id or caller_id,
        date_value=request.date,
        sorting_entries=request.sorting_entries,
        packing_entries=request.packing_entries,
    )
    return _submission_to_response(result)


@router.get("/summary", response_model=MonthlySummaryResponse)
async def monthly_summary(
    month: str = Query(...),
    user_id: str | None = Query(None, alias="userId"),
    caller_id: str = Depends(get_current_user_id),
    ledger: ConsumptionLedger = Depends(get_consumption_ledger),
) -> MonthlySummaryResponse:
    summary = await ledger.monthly_summary(user_id or caller_id, month)
    return MonthlySummaryResponse(
        month=summary.month,
        chart_data=[
            DayPoint(label=p.label, sorter_lines=p.sorter_lines, packer_lines=p.packer_lines)
            for p in summary.chart_data
        ],
        totals=DailyTotals(**summary.totals),
    )


def _outcome_to_result(outcome: EntryOutcome) -> dict:
    return {
        "type": outcome.kind.value,
        "index": outcome.index,
        "accepted": outcome.accepted,
        "error": outcome.error.value if outcome.error else None,
        "message": outcome.message,
        "remaining_lines": outcome.remaining_lines,
    }


def _submission_to_response(result: SubmissionResult) -> ProductivityResponse:
    sorted_ok = result.accepted(ProductivityEntryType.SORTING)
    packed_ok = result.accepted(ProductivityEntryType.PACKING)

    return ProductivityResponse(
        summary=SubmissionSummary(
            date=result.day.isoformat(),
            sorting=SortingTotals(
                total_cases=len(sorted_ok),
                total_lines=sum(o.values.lines_requested for o in sorted_ok),
                total_domestic=sum(o.values.domestic_portion for o in sorted_ok),
                total_bulk=sum(o.values.bulk_portion for o in sorted_ok),
            ),
            packing=PackingTotals(
                total_cases=len(packed_ok),
                total_lines=sum(o.values.lines_packed for o in packed_ok),
            ),
        ),
        daily_totals=DailyTotals(**result.daily),
        results=[EntryResult(**_outcome_to_result(o)) for o in result.outcomes],
        rejected=[RejectedEntry(**_outcome_to_result(o), entry=o.entry) for o in result.rejected],
    )
