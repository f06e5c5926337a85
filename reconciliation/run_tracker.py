"""
Run log and error log bookkeeping for pipeline invocations
"""

from typing import Optional, Dict
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from models.base import RunStatus, ErrorKind
from models.run_log import ReconciliationRun, ReconciliationErrorRecord
from core.exceptions import ETLException, RunStateError
import logging
import uuid

logger = logging.getLogger(__name__)

RUN_COUNTERS = (
    "rows_validated",
    "rows_rejected",
    "rows_exhausted",
    "rows_loaded",
    "orders_created",
    "facts_inserted",
    "facts_updated",
)


class RunTracker:
    """
    Records the lifecycle of one pipeline invocation.

    STARTED -> SUCCESS | FAILED, one way only. The STARTED row is committed
    before any work begins so an interrupted process still leaves a run with
    no completed_at behind. Error records are added to the session without
    committing; they go out with the commit of the phase that produced them.
    """

    def __init__(self, db_session: AsyncSession, process_name: str):
        self.db = db_session
        self.process_name = process_name
        self.run: Optional[ReconciliationRun] = None
        # Cached so they stay readable after a rollback expires the run object
        self.run_pk: Optional[int] = None
        self.run_id: Optional[uuid.UUID] = None

    async def start(self) -> ReconciliationRun:
        """Create and commit the STARTED run record"""
        if self.run is not None:
            raise RunStateError(
                "Run already started",
                context={"run_id": str(self.run_id), "process_name": self.process_name}
            )

        self.run = ReconciliationRun(
            run_id=uuid.uuid4(),
            process_name=self.process_name,
            status=RunStatus.STARTED,
            started_at=datetime.utcnow()
        )
        self.db.add(self.run)
        await self.db.commit()
        await self.db.refresh(self.run)
        self.run_pk = self.run.id
        self.run_id = self.run.run_id

        logger.info(f"Run {self.run_id} started ({self.process_name})")
        return self.run

    async def succeed(self, **counters: int) -> ReconciliationRun:
        """Seal the run as SUCCESS"""
        return await self._seal(RunStatus.SUCCESS, None, counters)

    async def fail(self, error_message: str, **counters: int) -> ReconciliationRun:
        """Seal the run as FAILED with the triggering error text"""
        return await self._seal(RunStatus.FAILED, error_message, counters)

    async def _seal(
        self,
        status: RunStatus,
        error_message: Optional[str],
        counters: Dict[str, int]
    ) -> ReconciliationRun:
        if self.run is None:
            raise RunStateError("Run was never started", context={"process_name": self.process_name})

        # Re-read the committed state; a rolled-back phase leaves the object expired
        await self.db.refresh(self.run)
        if self.run.status != RunStatus.STARTED:
            raise RunStateError(
                "Run already sealed",
                context={
                    "run_id": str(self.run_id),
                    "current_status": self.run.status.value,
                    "requested_status": status.value
                }
            )

        unknown = set(counters) - set(RUN_COUNTERS)
        if unknown:
            raise ValueError(f"Unknown run counters: {', '.join(sorted(unknown))}")

        self.run.status = status
        self.run.completed_at = datetime.utcnow()
        self.run.duration_seconds = (
            self.run.completed_at - self.run.started_at
        ).total_seconds()
        self.run.error_message = error_message
        for name, value in counters.items():
            setattr(self.run, name, value)

        await self.db.commit()

        if status == RunStatus.SUCCESS:
            logger.info(f"Run {self.run_id} succeeded in {self.run.duration_seconds:.2f}s")
        else:
            logger.error(f"Run {self.run_id} failed: {error_message}")
        return self.run

    def record_error(
        self,
        error: ETLException,
        source_table: str,
        source_row_id: Optional[int] = None
    ) -> ReconciliationErrorRecord:
        """
        Append an error record for this run to the session.

        The record's kind comes from the exception class; the caller owns
        the commit.
        """
        if self.run is None:
            raise RunStateError("Cannot log errors before the run starts", context={"process_name": self.process_name})

        record = ReconciliationErrorRecord(
            run_id=self.run_pk,
            source_table=source_table,
            source_row_id=source_row_id,
            kind=ErrorKind(error.error_kind),
            message=error.message,
            details=error.to_dict(),
            logged_at=datetime.utcnow()
        )
        self.db.add(record)
        return record
