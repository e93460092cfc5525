"""Read-only queries over live case records.

Used by clients to validate a consumption report before submitting it. These
reads are not a concurrency guard; the consumption ledger re-validates inside
its own transaction.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.errors import NotFoundError, ValidationFailedError
from app.models.production import ProductionCase
from app.production_engine.validation import parse_case_number, sanitize_shipment_id


@dataclass
class CaseBalance:
    case_number: str
    remaining_lines: int


class CaseLookupService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_cases(self, shipment_id: str, *, include_exhausted: bool = False) -> list[CaseBalance]:
        """Case numbers with their remaining balance, ordered by case number.

        Fully consumed cases are left out unless ``include_exhausted`` is set.
        """
        shipment_id = (shipment_id or "").strip()
        if not shipment_id:
            raise ValidationFailedError("shipmentId is required")

        async with self._session_factory() as session:
            rows = (await session.execute(
                select(ProductionCase)
                .where(ProductionCase.shipment_id == shipment_id)
                .order_by(ProductionCase.case_number)
            )).scalars().all()

        balances = [CaseBalance(row.case_number, row.remaining_lines) for row in rows]
        if not include_exhausted:
            balances = [b for b in balances if b.remaining_lines > 0]
        return balances

    async def get_case(self, shipment_id: str, case_number: str) -> ProductionCase:
        shipment_key = sanitize_shipment_id(shipment_id)
        parsed, _ = parse_case_number(case_number)
        if not shipment_key or parsed is None:
            raise ValidationFailedError("shipmentId and caseNumber are required")

        async with self._session_factory() as session:
            record = await session.get(ProductionCase, (shipment_key, parsed.value))
        if record is None:
            raise NotFoundError(f"Case {parsed.value} not found in shipment {shipment_key}")
        return record
