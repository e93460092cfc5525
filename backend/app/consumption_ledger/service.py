"""ConsumptionLedger: applies operator productivity reports.

Sorting entries consume lines from an imported case. Each one runs in its own
transaction: read the case, check the remaining balance, bump
``consumed_lines``, record the entry and the user's daily counters, commit.
The case's version column turns a concurrent writer into a StaleDataError at
commit, and the whole read-check-write is retried against fresh state. Two
operators reporting against one case therefore can never both spend the same
remaining balance.

Packing entries describe newly labelled cases and skip balance checks.

Every entry is accepted or rejected on its own; a rejection never rolls back
the entries around it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.config import Settings
from app.consumption_ledger.aggregates import (
    daily_totals,
    increment_daily_counters,
    load_daily,
    monthly_summary,
    MonthlySummary,
)
from app.consumption_ledger.entries import (
    PackingEntryValues,
    SortingEntryValues,
    parse_entry_date,
    parse_packing_entry,
    parse_sorting_entry,
)
from app.errors import ErrorCode, InvalidPayloadError, NotFoundError, OverConsumptionError
from app.models.production import ProductionCase
from app.models.productivity import ProductivityEntry, ProductivityEntryType

logger = logging.getLogger(__name__)


@dataclass
class EntryOutcome:
    kind: ProductivityEntryType
    index: int
    entry: Any
    accepted: bool
    error: ErrorCode | None = None
    message: str | None = None
    remaining_lines: int | None = None
    values: SortingEntryValues | PackingEntryValues | None = None


@dataclass
class SubmissionResult:
    day: date
    user_id: str
    outcomes: list[EntryOutcome] = field(default_factory=list)
    daily: dict[str, int] = field(default_factory=dict)

    def accepted(self, kind: ProductivityEntryType) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.kind == kind and o.accepted]

    @property
    def rejected(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if not o.accepted]


def _rejection(kind, index, entry, code: ErrorCode, message: str, remaining: int | None = None) -> EntryOutcome:
    return EntryOutcome(kind, index, entry, False, code, message, remaining)


class ConsumptionLedger:
    def __init__(self, settings: Settings, session_factory: async_sessionmaker[AsyncSession]):
        self.max_retries = max(1, settings.consumption_max_retries)
        self._session_factory = session_factory

    async def record(
        self,
        *,
        user_id: str | None,
        date_value: Any = None,
        sorting_entries: Any = None,
        packing_entries: Any = None,
    ) -> SubmissionResult:
        user_id = str(user_id or "").strip()
        if not user_id:
            raise InvalidPayloadError("userId is required")
        sorting_entries = [] if sorting_entries is None else sorting_entries
        packing_entries = [] if packing_entries is None else packing_entries
        if not isinstance(sorting_entries, list) or not isinstance(packing_entries, list):
            raise InvalidPayloadError("sortingEntries and packingEntries must be lists")

        day = parse_entry_date(date_value)
        result = SubmissionResult(day=day, user_id=user_id)

        # Sequential: two entries in one submission may target the same case
        for index, raw in enumerate(sorting_entries):
            result.outcomes.append(await self._apply_sorting(user_id, day, index, raw))

        result.outcomes.extend(await self._apply_packing(user_id, day, packing_entries))

        async with self._session_factory() as session:
            result.daily = daily_totals(await load_daily(session, user_id, day))

        logger.info(
            "Productivity for %s on %s: %d sorting accepted, %d packing accepted, %d rejected",
            user_id, day.isoformat(),
            len(result.accepted(ProductivityEntryType.SORTING)),
            len(result.accepted(ProductivityEntryType.PACKING)),
            len(result.rejected),
        )
        return result

    async def _apply_sorting(self, user_id: str, day: date, index: int, raw: Any) -> EntryOutcome:
        kind = ProductivityEntryType.SORTING
        values, reason = parse_sorting_entry(raw)
        if values is None:
            return _rejection(kind, index, raw, ErrorCode.VALIDATION, reason or "invalid entry")

        attempt = 0
        while True:
            attempt += 1
            try:
                remaining = await self._consume(user_id, day, values)
            except OverConsumptionError as e:
                return _rejection(kind, index, raw, e.code, e.message, e.remaining)
            except NotFoundError as e:
                return _rejection(kind, index, raw, e.code, e.message)
            except (StaleDataError, OperationalError) as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "Gave up on case %s/%s after %d conflicting attempts: %s",
                        values.shipment_id, values.case_number, attempt, e,
                    )
                    return _rejection(kind, index, raw, ErrorCode.SERVER_ERROR, "Too many concurrent updates")
                logger.info(
                    "Concurrent update on case %s/%s, retrying (attempt %d)",
                    values.shipment_id, values.case_number, attempt,
                )
                await asyncio.sleep(0.01 * attempt)
                continue
            except SQLAlchemyError as e:
                logger.error(
                    "Could not record sorting entry for case %s/%s: %s",
                    values.shipment_id, values.case_number, e,
                )
                return _rejection(kind, index, raw, ErrorCode.SERVER_ERROR, "Could not record entry")
            return EntryOutcome(kind, index, raw, True, remaining_lines=remaining, values=values)

    async def _consume(self, user_id: str, day: date, values: SortingEntryValues) -> int:
        """One optimistic attempt. Returns the remaining balance after consumption."""
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            async with session.begin():
                case = await session.get(ProductionCase, (values.shipment_id, values.case_number.value))
                if case is None:
                    raise NotFoundError(
                        f"Case {values.case_number} not found in shipment {values.shipment_id}"
                    )

                remaining = max(0, case.total_lines - case.consumed_lines)
                if values.lines_requested > remaining:
                    raise OverConsumptionError(values.lines_requested, remaining)

                case.consumed_lines += values.lines_requested
                case.fully_sorted = case.consumed_lines >= case.total_lines
                remaining_after = max(0, case.total_lines - case.consumed_lines)
                case.last_allocated_at = now
                case.last_allocated_by = user_id

                session.add(ProductivityEntry(
                    user_id=user_id,
                    entry_date=day,
                    entry_type=ProductivityEntryType.SORTING,
                    shipment_id=values.shipment_id,
                    case_number=values.case_number.value,
                    lines=values.lines_requested,
                    domestic_lines=values.domestic_portion,
                    bulk_lines=values.bulk_portion,
                ))
                await increment_daily_counters(
                    session,
                    user_id,
                    day,
                    sorter_lines=values.lines_requested,
                    sorter_cases=1,
                    sorter_domestic_lines=values.domestic_portion,
                    sorter_bulk_lines=values.bulk_portion,
                )
        return remaining_after

    async def _apply_packing(self, user_id: str, day: date, packing_entries: list) -> list[EntryOutcome]:
        kind = ProductivityEntryType.PACKING
        outcomes: list[EntryOutcome] = []
        for index, raw in enumerate(packing_entries):
            values, reason = parse_packing_entry(raw)
            if values is None:
                outcomes.append(_rejection(kind, index, raw, ErrorCode.VALIDATION, reason or "invalid entry"))
                continue
            try:
                await self._record_packing(user_id, day, values)
            except SQLAlchemyError as e:
                logger.error("Could not record packing entry %d for %s: %s", index, user_id, e)
                outcomes.append(_rejection(kind, index, raw, ErrorCode.SERVER_ERROR, "Could not record entry"))
                continue
            outcomes.append(EntryOutcome(kind, index, raw, True, values=values))
        return outcomes

    async def _record_packing(self, user_id: str, day: date, values: PackingEntryValues) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(ProductivityEntry(
                    user_id=user_id,
                    entry_date=day,
                    entry_type=ProductivityEntryType.PACKING,
                    location_no=values.location_no,
                    new_case_no=values.new_case_no,
                    lines=values.lines_packed,
                ))
                await increment_daily_counters(
                    session,
                    user_id,
                    day,
                    packer_lines=values.lines_packed,
                    packer_cases=1,
                )

    async def monthly_summary(self, user_id: str, month: str) -> MonthlySummary:
        user_id = str(user_id or "").strip()
        if not user_id:
            raise InvalidPayloadError("userId is required")
        async with self._session_factory() as session:
            return await monthly_summary(session, user_id, month)
