"""Tests for import job status transitions."""

import uuid

import pytest

from app.errors import NotFoundError
from app.models.import_job import ImportJobStatus
from app.production_engine.job_ledger import ImportJobLedger, JobAlreadyFinishedError, can_transition


@pytest.fixture
def ledger(session_factory):
    return ImportJobLedger(session_factory)


class TestCanTransition:
    @pytest.mark.parametrize("target", [ImportJobStatus.COMPLETED, ImportJobStatus.TIMEOUT, ImportJobStatus.FAILED])
    def test_started_can_finish(self, target):
        assert can_transition(ImportJobStatus.STARTED, target) is True

    def test_started_to_started(self):
        assert can_transition(ImportJobStatus.STARTED, ImportJobStatus.STARTED) is False

    @pytest.mark.parametrize("current", [ImportJobStatus.COMPLETED, ImportJobStatus.TIMEOUT, ImportJobStatus.FAILED])
    def test_terminal_is_final(self, current):
        assert can_transition(current, ImportJobStatus.FAILED) is False


class TestImportJobLedger:
    async def test_start_and_finish(self, ledger):
        job = await ledger.start(user_id="planner-1", meta={"fileName": "a.xlsx"}, shipment_ids=["SHP-1"])
        assert job.status == ImportJobStatus.STARTED

        await ledger.finish(job, ImportJobStatus.COMPLETED, processed_count=12)

        stored = await ledger.get(job.id)
        assert stored.status == ImportJobStatus.COMPLETED
        assert stored.processed_count == 12
        assert stored.meta == {"fileName": "a.xlsx"}
        assert stored.duration_ms is not None and stored.duration_ms >= 0
        assert stored.error is None

    async def test_cannot_finish_twice(self, ledger):
        job = await ledger.start(user_id=None, meta=None, shipment_ids=[])
        await ledger.finish(job, ImportJobStatus.TIMEOUT, processed_count=0)

        with pytest.raises(JobAlreadyFinishedError):
            await ledger.finish(job, ImportJobStatus.COMPLETED, processed_count=0)

    async def test_stale_copy_cannot_reopen_finished_job(self, ledger):
        job = await ledger.start(user_id=None, meta=None, shipment_ids=[])
        stale = await ledger.get(job.id)
        await ledger.finish(job, ImportJobStatus.FAILED, processed_count=0, error="boom")

        with pytest.raises(JobAlreadyFinishedError):
            await ledger.finish(stale, ImportJobStatus.COMPLETED, processed_count=5)
        assert (await ledger.get(job.id)).status == ImportJobStatus.FAILED

    async def test_rejects_non_terminal_status(self, ledger):
        job = await ledger.start(user_id=None, meta=None, shipment_ids=[])
        with pytest.raises(ValueError):
            await ledger.finish(job, ImportJobStatus.STARTED, processed_count=0)

    async def test_get_unknown(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.get(uuid.uuid4())
