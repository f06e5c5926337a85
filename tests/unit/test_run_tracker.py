"""
Unit tests for run lifecycle bookkeeping
"""

import pytest
from models.base import RunStatus, ErrorKind
from models.run_log import ReconciliationRun, ReconciliationErrorRecord
from reconciliation.run_tracker import RunTracker
from core.exceptions import LoadError, RetryExhaustedError, RunStateError, ValidationError


@pytest.mark.asyncio
async def test_start_commits_started_run(db_session, fetch_all):
    tracker = RunTracker(db_session, "order_reconciliation")

    await tracker.start()

    runs = await fetch_all(ReconciliationRun)
    assert len(runs) == 1
    assert runs[0].status == RunStatus.STARTED
    assert runs[0].completed_at is None
    assert runs[0].run_id == tracker.run_id


@pytest.mark.asyncio
async def test_succeed_seals_run_with_counters(db_session, fetch_all):
    tracker = RunTracker(db_session, "order_reconciliation")
    await tracker.start()

    await tracker.succeed(rows_validated=4, rows_loaded=3)

    run = (await fetch_all(ReconciliationRun))[0]
    assert run.status == RunStatus.SUCCESS
    assert run.completed_at is not None
    assert run.duration_seconds >= 0
    assert run.rows_validated == 4
    assert run.rows_loaded == 3
    assert run.error_message is None


@pytest.mark.asyncio
async def test_fail_records_error_message(db_session, fetch_all):
    tracker = RunTracker(db_session, "order_reconciliation")
    await tracker.start()

    await tracker.fail("Load unit aborted")

    run = (await fetch_all(ReconciliationRun))[0]
    assert run.status == RunStatus.FAILED
    assert run.error_message == "Load unit aborted"


@pytest.mark.asyncio
async def test_run_cannot_be_sealed_twice(db_session):
    tracker = RunTracker(db_session, "order_reconciliation")
    await tracker.start()
    await tracker.succeed()

    with pytest.raises(RunStateError):
        await tracker.fail("too late")


@pytest.mark.asyncio
async def test_run_cannot_be_started_twice(db_session):
    tracker = RunTracker(db_session, "order_reconciliation")
    await tracker.start()

    with pytest.raises(RunStateError):
        await tracker.start()


@pytest.mark.asyncio
async def test_seal_before_start_is_rejected(db_session):
    with pytest.raises(RunStateError):
        await RunTracker(db_session, "order_reconciliation").succeed()


@pytest.mark.asyncio
async def test_unknown_counter_is_rejected(db_session):
    tracker = RunTracker(db_session, "order_reconciliation")
    await tracker.start()

    with pytest.raises(ValueError):
        await tracker.succeed(rows_teleported=1)


@pytest.mark.asyncio
async def test_record_error_takes_kind_from_exception(db_session, fetch_all):
    tracker = RunTracker(db_session, "order_reconciliation")
    await tracker.start()

    tracker.record_error(
        ValidationError("unknown product", reasons=["unknown_product"]),
        source_table="staging_orders",
        source_row_id=7
    )
    tracker.record_error(RetryExhaustedError("Retries exhausted"), source_table="staging_orders", source_row_id=8)
    tracker.record_error(LoadError("Load unit aborted"), source_table="order_lines")
    await db_session.commit()

    records = await fetch_all(ReconciliationErrorRecord, order_by=ReconciliationErrorRecord.id)
    assert [r.kind for r in records] == [ErrorKind.VALIDATION, ErrorKind.RETRY_EXHAUSTED, ErrorKind.LOAD]
    assert all(r.run_id == tracker.run_pk for r in records)
    assert records[0].source_row_id == 7
    assert records[0].details["context"]["reasons"] == ["unknown_product"]
    assert records[2].source_row_id is None


@pytest.mark.asyncio
async def test_seal_after_rollback(db_session, fetch_all):
    """A rolled-back phase must not keep the run from being sealed"""
    tracker = RunTracker(db_session, "order_reconciliation")
    await tracker.start()
    await db_session.rollback()

    tracker.record_error(LoadError("boom"), source_table="order_lines")
    await tracker.fail("boom")

    run = (await fetch_all(ReconciliationRun))[0]
    assert run.status == RunStatus.FAILED
    assert len(await fetch_all(ReconciliationErrorRecord)) == 1
