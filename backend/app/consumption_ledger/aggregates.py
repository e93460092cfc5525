"""Per-user daily productivity counters and the monthly view over them.

Counters are commutative, so they are bumped with a single atomic
``INSERT ... ON CONFLICT DO UPDATE SET x = x + excluded.x`` rather than a
read-modify-write.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import upsert_insert
from app.errors import ValidationFailedError
from app.models.productivity import DailyProductivitySummary

COUNTER_FIELDS = (
    "sorter_lines",
    "sorter_cases",
    "sorter_domestic_lines",
    "sorter_bulk_lines",
    "packer_lines",
    "packer_cases",
)


async def increment_daily_counters(
    session: AsyncSession,
    user_id: str,
    day: date,
    **deltas: int,
) -> None:
    unknown = set(deltas) - set(COUNTER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown counters: {sorted(unknown)}")

    table = DailyProductivitySummary.__table__
    stmt = upsert_insert(session.get_bind().dialect.name, table).values(
        user_id=user_id,
        summary_date=day,
        updated_at=datetime.now(timezone.utc),
        **{name: int(deltas.get(name, 0)) for name in COUNTER_FIELDS},
    )
    increments = {name: table.c[name] + stmt.excluded[name] for name in COUNTER_FIELDS}
    increments["updated_at"] = stmt.excluded.updated_at
    await session.execute(
        stmt.on_conflict_do_update(index_elements=["user_id", "summary_date"], set_=increments)
    )


async def load_daily(session: AsyncSession, user_id: str, day: date) -> DailyProductivitySummary | None:
    return (await session.execute(
        select(DailyProductivitySummary).where(
            DailyProductivitySummary.user_id == user_id,
            DailyProductivitySummary.summary_date == day,
        )
    )).scalar_one_or_none()


def daily_totals(summary: DailyProductivitySummary | None) -> dict[str, int]:
    return {name: int(getattr(summary, name, 0) or 0) for name in COUNTER_FIELDS}


def month_bounds(month: str) -> tuple[date, date]:
    """First and last day of a ``YYYY-MM`` month."""
    try:
        year_str, month_str = (month or "").strip().split("-")
        year, month_no = int(year_str), int(month_str)
        first = date(year, month_no, 1)
    except ValueError:
        raise ValidationFailedError(f"Invalid month (expected YYYY-MM): {month!r}") from None
    return first, date(year, month_no, calendar.monthrange(year, month_no)[1])


@dataclass
class DayPoint:
    label: str
    sorter_lines: int
    packer_lines: int


@dataclass
class MonthlySummary:
    month: str
    chart_data: list[DayPoint] = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)


async def monthly_summary(session: AsyncSession, user_id: str, month: str) -> MonthlySummary:
    """Range-read one month of daily summaries for a user."""
    first, last = month_bounds(month)
    rows = (await session.execute(
        select(DailyProductivitySummary)
        .where(
            DailyProductivitySummary.user_id == user_id,
            DailyProductivitySummary.summary_date >= first,
            DailyProductivitySummary.summary_date <= last,
        )
        .order_by(DailyProductivitySummary.summary_date)
    )).scalars().all()

    result = MonthlySummary(month=first.strftime("%Y-%m"), totals={name: 0 for name in COUNTER_FIELDS})
    for row in rows:
        result.chart_data.append(DayPoint(
            label=row.summary_date.isoformat(),
            sorter_lines=row.sorter_lines,
            packer_lines=row.packer_lines,
        ))
        for name in COUNTER_FIELDS:
            result.totals[name] += getattr(row, name) or 0
    return result
