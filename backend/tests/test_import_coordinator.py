"""Tests for the time-boxed bulk import coordinator."""

import itertools
from unittest.mock import AsyncMock

import pytest

from app.errors import InvalidPayloadError, ServerError
from app.models.import_job import ImportJobStatus
from app.models.production import ProductionCase
from app.models.shipment import Shipment
from app.production_engine.import_coordinator import BulkImportCoordinator
from app.production_engine.manifest import load_manifest
from app.production_engine.writers import ChunkFailure, WriteFailedError
from conftest import fetch_case


def _row(case_number, total=10, **extra) -> dict:
    row = {
        "caseNumber": case_number,
        "criticalParts": 0,
        "totalLines": total,
        "domesticLines": total,
        "bulkLines": 0,
    }
    row.update(extra)
    return row


def _ticking_clock(step: float):
    """Monotonic clock that advances ``step`` seconds per reading."""
    counter = itertools.count()
    return lambda: next(counter) * step


@pytest.fixture
def coordinator(test_settings, session_factory):
    return BulkImportCoordinator(test_settings, session_factory)


class TestImportCases:
    async def test_imports_rows_and_writes_manifest(self, coordinator, session_factory):
        result = await coordinator.import_cases(
            {"SHP-1": [_row("C-1"), _row("C-2", total=4)]},
            meta={"fileName": "cases.xlsx", "storagePath": "shipments/SHP-1/production/1-cases.xlsx"},
            user_id="planner-1",
        )

        assert result.status == ImportJobStatus.COMPLETED
        assert result.total_items == 2
        assert result.pending_shipment_ids == []
        assert result.processed_shipment_ids == ["SHP-1"]

        case = await fetch_case(session_factory, "SHP-1", "C-2")
        assert case.total_lines == 4
        assert case.consumed_lines == 0
        assert case.uploaded_by == "planner-1"

        async with session_factory() as session:
            manifest = await load_manifest(session, "SHP-1")
            shipment = await session.get(Shipment, "SHP-1")
        assert manifest.case_numbers == ["C-1", "C-2"]
        assert manifest.count == 2
        assert manifest.file_name == "cases.xlsx"
        assert manifest.storage_path == "shipments/SHP-1/production/1-cases.xlsx"
        assert shipment.production_uploaded is True

    async def test_job_is_recorded(self, coordinator):
        result = await coordinator.import_cases({"SHP-J": [_row("C-1")]}, user_id="planner-1")

        job = await coordinator.jobs.get(result.job_id)
        assert job.status == ImportJobStatus.COMPLETED
        assert job.processed_count == 1
        assert job.shipment_ids == ["SHP-J"]
        assert job.user_id == "planner-1"
        assert job.finished_at is not None

    async def test_reimport_is_idempotent(self, coordinator, session_factory):
        payload = {"SHP-2": [_row("C-1"), _row("C-2")]}
        first = await coordinator.import_cases(payload, user_id="planner-1")
        second = await coordinator.import_cases(payload, user_id="planner-1")

        assert first.total_items == second.total_items == 2
        async with session_factory() as session:
            manifest = await load_manifest(session, "SHP-2")
        assert manifest.case_numbers == ["C-1", "C-2"]

    async def test_reimport_resets_consumption(self, coordinator, session_factory):
        await coordinator.import_cases({"SHP-3": [_row("C-1", total=10)]})
        async with session_factory() as session:
            async with session.begin():
                case = await session.get(ProductionCase, ("SHP-3", "C-1"))
                case.consumed_lines = 6

        await coordinator.import_cases({"SHP-3": [_row("C-1", total=12)]})

        case = await fetch_case(session_factory, "SHP-3", "C-1")
        assert case.total_lines == 12
        assert case.consumed_lines == 0
        assert case.fully_sorted is False

    async def test_invalid_rows_are_reported_not_fatal(self, coordinator, session_factory):
        result = await coordinator.import_cases({
            "SHP-4": [
                _row("C-1"),
                _row("###"),
                _row("C-3", total=-1, row=9),
                "not a row",
            ],
        })

        assert result.status == ImportJobStatus.COMPLETED
        assert result.total_items == 1
        reasons = {(r.index, r.reason) for r in result.rejected_rows}
        assert reasons == {
            (1, "empty_case_number"),
            (2, "totalLines:negative"),
            (3, "not_an_object"),
        }
        assert next(r for r in result.rejected_rows if r.index == 2).source_row == 9
        assert await fetch_case(session_factory, "SHP-4", "C-3") is None

    async def test_out_of_range_values_are_row_rejections(self, coordinator, session_factory):
        result = await coordinator.import_cases({
            "SHP-4A": [
                _row("C-1", total=3_000_000_000),
                _row("C" * 201),
                _row("C-2"),
            ],
            "S" * 201: [_row("C-1")],
            "SHP-4B": [_row("C-1")],
        })

        assert result.status == ImportJobStatus.COMPLETED
        assert result.total_items == 2
        assert result.processed_shipment_ids == ["SHP-4A", "SHP-4B"]
        assert {(r.index, r.reason) for r in result.rejected_rows} == {
            (0, "totalLines:too_large"),
            (1, "case_number_too_long"),
        }
        async with session_factory() as session:
            manifest = await load_manifest(session, "SHP-4A")
        assert manifest.case_numbers == ["C-2"]
        assert await fetch_case(session_factory, "SHP-4B", "C-1") is not None

    async def test_duplicate_case_numbers_last_wins(self, coordinator, session_factory):
        result = await coordinator.import_cases({"SHP-5": [_row("C-1", total=1), _row("C-1", total=8)]})

        assert result.total_items == 1
        case = await fetch_case(session_factory, "SHP-5", "C-1")
        assert case.total_lines == 8

    async def test_case_numbers_are_sanitized(self, coordinator, session_factory):
        await coordinator.import_cases({"SHP-6": [_row(" C 1# ")]})
        assert await fetch_case(session_factory, "SHP-6", "C1") is not None

    async def test_shipment_with_only_bad_rows_gets_empty_manifest(self, coordinator, session_factory):
        result = await coordinator.import_cases({"SHP-7": [_row("")]})

        assert result.total_items == 0
        async with session_factory() as session:
            manifest = await load_manifest(session, "SHP-7")
        assert manifest.case_numbers == []

    async def test_malformed_shipment_entries_are_skipped(self, coordinator):
        result = await coordinator.import_cases({"SHP-8": "oops", "  ": [_row("C-1")], "SHP-9": [_row("C-1")]})

        assert result.processed_shipment_ids == ["SHP-9"]
        assert result.total_items == 1

    @pytest.mark.parametrize("payload", [None, {}, [], "SHP-1"])
    async def test_rejects_empty_or_non_mapping_payload(self, coordinator, payload):
        with pytest.raises(InvalidPayloadError):
            await coordinator.import_cases(payload)


class TestTimeBudget:
    async def test_stops_between_shipments_when_budget_exceeded(self, test_settings, session_factory):
        settings = test_settings.model_copy(update={"import_time_budget_seconds": 1.0})
        # started=0, after first shipment=5: over budget
        coordinator = BulkImportCoordinator(settings, session_factory, clock=_ticking_clock(5.0))

        result = await coordinator.import_cases({
            "SHP-A": [_row("C-1")],
            "SHP-B": [_row("C-1")],
            "SHP-C": [_row("C-1")],
        })

        assert result.status == ImportJobStatus.TIMEOUT
        assert result.processed_shipment_ids == ["SHP-A"]
        assert result.pending_shipment_ids == ["SHP-B", "SHP-C"]
        assert await fetch_case(session_factory, "SHP-B", "C-1") is None

        job = await coordinator.jobs.get(result.job_id)
        assert job.status == ImportJobStatus.TIMEOUT
        assert job.processed_count == 1

    async def test_last_shipment_over_budget_still_completes(self, test_settings, session_factory):
        settings = test_settings.model_copy(update={"import_time_budget_seconds": 1.0})
        coordinator = BulkImportCoordinator(settings, session_factory, clock=_ticking_clock(5.0))

        result = await coordinator.import_cases({"SHP-D": [_row("C-1")]})

        assert result.status == ImportJobStatus.COMPLETED
        assert result.pending_shipment_ids == []

    async def test_resubmitting_pending_shipments_finishes_the_import(self, test_settings, session_factory):
        settings = test_settings.model_copy(update={"import_time_budget_seconds": 1.0})
        payload = {"SHP-E": [_row("C-1")], "SHP-F": [_row("C-2")]}
        first = await BulkImportCoordinator(
            settings, session_factory, clock=_ticking_clock(5.0)
        ).import_cases(payload)

        retry = {sid: payload[sid] for sid in first.pending_shipment_ids}
        second = await BulkImportCoordinator(settings, session_factory).import_cases(retry)

        assert second.status == ImportJobStatus.COMPLETED
        assert await fetch_case(session_factory, "SHP-F", "C-2") is not None


class TestFailures:
    async def test_write_failure_marks_job_failed(self, test_settings, session_factory):
        writer = AsyncMock()
        writer.flush.side_effect = WriteFailedError(0, [ChunkFailure("SHP-X", 1, "boom")])
        coordinator = BulkImportCoordinator(
            test_settings, session_factory, writer_factory=AsyncMock(return_value=writer)
        )

        with pytest.raises(WriteFailedError):
            await coordinator.import_cases({"SHP-X": [_row("C-1")]}, user_id="planner-1")

        writer.abort.assert_awaited_once()
        async with session_factory() as session:
            manifest = await load_manifest(session, "SHP-X")
        assert manifest is None

    async def test_unexpected_error_is_wrapped(self, test_settings, session_factory):
        coordinator = BulkImportCoordinator(
            test_settings, session_factory, writer_factory=AsyncMock(side_effect=RuntimeError("store down"))
        )

        with pytest.raises(ServerError) as exc_info:
            await coordinator.import_cases({"SHP-Y": [_row("C-1")]})
        assert "store down" in exc_info.value.message

    async def test_failed_job_is_persisted(self, test_settings, session_factory):
        writer = AsyncMock()
        writer.flush.side_effect = WriteFailedError(0, [ChunkFailure("SHP-Z", 1, "boom")])
        coordinator = BulkImportCoordinator(
            test_settings, session_factory, writer_factory=AsyncMock(return_value=writer)
        )
        started = []
        original_start = coordinator.jobs.start

        async def capture_start(**kwargs):
            job = await original_start(**kwargs)
            started.append(job.id)
            return job

        coordinator.jobs.start = capture_start

        with pytest.raises(WriteFailedError):
            await coordinator.import_cases({"SHP-Z": [_row("C-1")]})

        job = await coordinator.jobs.get(started[0])
        assert job.status == ImportJobStatus.FAILED
        assert "failed" in job.error
