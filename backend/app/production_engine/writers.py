"""Write strategies for bulk case imports.

Two interchangeable ``WriteCoordinator`` implementations:

- ``StreamingCaseWriter`` issues native upserts as concurrent tasks and
  retries transient store errors with exponential backoff. ``flush()`` is the
  barrier that waits for every in-flight chunk.
- ``ChunkedBatchCaseWriter`` commits atomic batches sized just under the
  store's per-batch ceiling, one after another.

Both keep going after a failed chunk and report every failure at the next
``flush()``, so a bad chunk never hides the status of the chunks after it.
The strategy is chosen once per job by ``select_write_coordinator``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.database import supports_native_upsert, upsert_insert
from app.errors import ServerError
from app.models.production import ProductionCase
from app.production_engine.validation import chunked

logger = logging.getLogger(__name__)

_KEY_COLUMNS = ("shipment_id", "case_number")


@dataclass
class ChunkFailure:
    shipment_id: str | None
    row_count: int
    error: str


class WriteFailedError(ServerError):
    """Raised at a flush barrier when one or more chunks could not be written."""

    def __init__(self, written: int, failures: list[ChunkFailure]):
        failed_rows = sum(f.row_count for f in failures)
        super().__init__(
            f"{len(failures)} chunk(s) failed ({failed_rows} rows); {written} rows written"
        )
        self.written = written
        self.failures = failures


@dataclass
class StoreCapabilities:
    dialect_name: str
    native_upsert: bool
    concurrent_writers: bool
    notes: list[str] = field(default_factory=list)


async def probe_store_capabilities(
    session_factory: async_sessionmaker[AsyncSession],
) -> StoreCapabilities:
    """Inspect the backing store once to decide which writer it can sustain."""
    async with session_factory() as session:
        dialect_name = session.get_bind().dialect.name

    native_upsert = supports_native_upsert(dialect_name)
    # SQLite serializes writers on a file lock; concurrent streams only add contention
    concurrent_writers = dialect_name not in ("sqlite",)
    return StoreCapabilities(
        dialect_name=dialect_name,
        native_upsert=native_upsert,
        concurrent_writers=concurrent_writers,
    )


class WriteCoordinator(ABC):
    """Accepts validated case records and reports how many were durably written."""

    name = "abstract"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._written = 0
        self._failures: list[ChunkFailure] = []
        self._closed = False

    @abstractmethod
    async def write(self, shipment_id: str, records: list[dict]) -> None:
        """Queue or commit ``records`` (column-name -> value mappings)."""

    async def _drain(self) -> None:
        """Wait for in-flight work. Strategies that commit synchronously need nothing."""

    def _record_failure(self, shipment_id: str | None, row_count: int, error: BaseException | str) -> None:
        logger.error(
            "Case write chunk failed (writer=%s, shipment=%s, rows=%d): %s",
            self.name, shipment_id, row_count, error,
        )
        self._failures.append(ChunkFailure(shipment_id, row_count, str(error)))

    async def flush(self) -> int:
        """Barrier: returns rows written since the previous flush.

        Raises WriteFailedError if any chunk since the previous flush failed.
        """
        await self._drain()
        written, failures = self._written, self._failures
        self._written, self._failures = 0, []
        if failures:
            raise WriteFailedError(written, failures)
        return written

    async def close(self) -> int:
        if self._closed:
            return 0
        self._closed = True
        return await self.flush()

    async def abort(self) -> None:
        """Drop queued work after the job has already failed."""
        self._closed = True


class ChunkedBatchCaseWriter(WriteCoordinator):
    name = "chunked"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        batch_ceiling: int = 500,
        headroom: int = 5,
    ):
        super().__init__(session_factory)
        self.batch_size = max(1, batch_ceiling - headroom)

    async def write(self, shipment_id: str, records: list[dict]) -> None:
        for chunk in chunked(records, self.batch_size):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        for record in chunk:
                            await session.merge(ProductionCase(**record))
            except SQLAlchemyError as e:
                self._record_failure(shipment_id, len(chunk), e)
                continue
            self._written += len(chunk)


class StreamingCaseWriter(WriteCoordinator):
    name = "streaming"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dialect_name: str,
        *,
        chunk_size: int = 200,
        concurrency: int = 4,
        max_retries: int = 5,
        retry_base_delay: float = 0.05,
    ):
        super().__init__(session_factory)
        self.dialect_name = dialect_name
        self.chunk_size = max(1, chunk_size)
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._pending: set[asyncio.Task] = set()

    def _upsert_statement(self):
        table = ProductionCase.__table__
        stmt = upsert_insert(self.dialect_name, table)
        overwrite = {
            column.name: stmt.excluded[column.name]
            for column in table.columns
            if column.name not in _KEY_COLUMNS and column.name != "version"
        }
        overwrite["version"] = table.c.version + 1
        return stmt.on_conflict_do_update(index_elements=list(_KEY_COLUMNS), set_=overwrite)

    async def write(self, shipment_id: str, records: list[dict]) -> None:
        for chunk in chunked(records, self.chunk_size):
            task = asyncio.create_task(self._write_chunk(shipment_id, chunk))
            self._pending.add(task)

    async def _write_chunk(self, shipment_id: str, chunk: list[dict]) -> None:
        async with self._semaphore:
            attempt = 0
            while True:
                try:
                    async with self._session_factory() as session:
                        async with session.begin():
                            await session.execute(self._upsert_statement(), chunk)
                    break
                except OperationalError as e:
                    # Lock contention / throttling: back off and retry
                    attempt += 1
                    if attempt > self.max_retries:
                        self._record_failure(shipment_id, len(chunk), e)
                        return
                    delay = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        "Retrying case chunk for shipment %s in %.2fs (attempt %d/%d): %s",
                        shipment_id, delay, attempt, self.max_retries, e,
                    )
                    await asyncio.sleep(delay)
                except SQLAlchemyError as e:
                    self._record_failure(shipment_id, len(chunk), e)
                    return
            self._written += len(chunk)

    async def _drain(self) -> None:
        if not self._pending:
            return
        tasks = list(self._pending)
        self._pending.clear()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                self._record_failure(None, 0, result)

    async def abort(self) -> None:
        await super().abort()
        tasks = list(self._pending)
        self._pending.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def build_write_coordinator(
    strategy: str,
    session_factory: async_sessionmaker[AsyncSession],
    capabilities: StoreCapabilities,
    settings: Settings,
) -> WriteCoordinator:
    if strategy == "streaming":
        return StreamingCaseWriter(
            session_factory,
            capabilities.dialect_name,
            chunk_size=settings.streaming_writer_chunk_size,
            concurrency=settings.streaming_writer_concurrency if capabilities.concurrent_writers else 1,
            max_retries=settings.streaming_writer_max_retries,
            retry_base_delay=settings.streaming_writer_retry_base_delay,
        )
    if strategy == "chunked":
        return ChunkedBatchCaseWriter(
            session_factory,
            batch_ceiling=settings.store_batch_ceiling,
            headroom=settings.store_batch_headroom,
        )
    raise ValueError(f"Unknown write strategy: {strategy}")


async def select_write_coordinator(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> WriteCoordinator:
    """Pick the writer for one import job.

    ``import_write_strategy`` may force a strategy; ``auto`` streams only when
    the store has native upserts and tolerates concurrent writers.
    """
    capabilities = await probe_store_capabilities(session_factory)
    requested = settings.import_write_strategy.lower()

    if requested == "auto":
        strategy = (
            "streaming"
            if capabilities.native_upsert and capabilities.concurrent_writers
            else "chunked"
        )
    elif requested == "streaming" and not capabilities.native_upsert:
        logger.warning(
            "Streaming writer requested but dialect %s has no native upsert; using chunked batches",
            capabilities.dialect_name,
        )
        strategy = "chunked"
    else:
        strategy = requested

    writer = build_write_coordinator(strategy, session_factory, capabilities, settings)
    logger.info("Selected %s case writer (dialect=%s)", writer.name, capabilities.dialect_name)
    return writer
