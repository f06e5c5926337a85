# ============================================================================
# File: reconciliation/runner.py
# Description: Orchestrates validation, load and fact merge for one run
# ============================================================================
"""
Reconciliation Runner - one invocation of the staging-to-facts pipeline.

Phases, each with its own commit:
1. Run record STARTED (committed before any work)
2. Validation pass over pending and quarantined staging rows
3. Atomic load of valid rows into orders and order lines
4. Incremental merge of the derived fact table
5. Run record sealed SUCCESS or FAILED

Validation failures are collected, never raised. A failed load or merge
rolls back its own unit, appends one error record, seals the run FAILED and
re-raises.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from reconciliation.retry import RetryCoordinator
from reconciliation.loaders.order_loader import OrderLoader
from reconciliation.fact_merge import FactMergeEngine
from reconciliation.run_tracker import RunTracker
from models.base import RunStatus
from models.orders import OrderLine
from models.fact import FactOrderLine
from schemas.reconciliation import (
    LoadResult,
    MergeResult,
    ReconciliationResult,
    ValidationSummary,
)
from core.config import settings
from core.exceptions import ETLException, LoadError, MergeError

logger = logging.getLogger(__name__)


class ReconciliationRunner:
    """
    Entry point for scheduled and manual runs.

    Responsibilities:
    - Wrap every invocation in exactly one run record
    - Keep validation failures from aborting the run
    - Abort the run on load or merge failure after the unit rolled back
    - Return phase statistics

    At most one run may be in flight against the same staging rows; the
    runner does not lock, the caller (scheduler, cron) must serialize.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        process_name: Optional[str] = None,
        max_retries: Optional[int] = None
    ):
        self.db = db_session
        self.process_name = process_name or settings.PROCESS_NAME
        self.max_retries = max_retries

    async def run(self) -> ReconciliationResult:
        """
        Run the full pipeline once.

        Returns:
            ReconciliationResult for a successful run

        Raises:
            LoadError: The load unit failed; the run is sealed FAILED
            MergeError: The merge failed; the run is sealed FAILED
            ETLException: Any other failure, wrapped after sealing the run
        """
        tracker = RunTracker(self.db, self.process_name)
        await tracker.start()

        validation = ValidationSummary()
        load = LoadResult()
        merge = MergeResult()

        try:
            # --------------------------------------------------
            # PHASE 1: VALIDATION
            # --------------------------------------------------
            coordinator = RetryCoordinator(self.db, max_retries=self.max_retries)
            validation = await coordinator.validate_pending(tracker)

            # --------------------------------------------------
            # PHASE 2: LOAD (ATOMIC)
            # --------------------------------------------------
            loader = OrderLoader(self.db)
            load = await loader.load(run_id=tracker.run_pk)

            # --------------------------------------------------
            # PHASE 3: FACT MERGE
            # --------------------------------------------------
            merge = await FactMergeEngine(self.db).merge()

        except (LoadError, MergeError) as e:
            logger.error(
                f"Reconciliation failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            source_table = (
                OrderLine.__tablename__ if isinstance(e, LoadError)
                else FactOrderLine.__tablename__
            )
            tracker.record_error(e, source_table=source_table)
            await tracker.fail(e.message, **_counters(validation, load, merge))
            raise

        except Exception as e:
            logger.exception("Unexpected error in reconciliation run")
            await self.db.rollback()

            wrapped = ETLException(
                f"Unexpected error in reconciliation run: {e}",
                context={"process_name": self.process_name},
                original_exception=e
            )
            tracker.record_error(wrapped, source_table="reconciliation_runs")
            await tracker.fail(wrapped.message, **_counters(validation, load, merge))
            raise wrapped

        await tracker.succeed(**_counters(validation, load, merge))

        result = ReconciliationResult(
            run_id=tracker.run_id,
            status=RunStatus.SUCCESS,
            validation=validation,
            load=load,
            merge=merge
        )
        logger.info(
            f"Run {tracker.run_id} complete - validated: {validation.rows_validated}, "
            f"loaded: {load.rows_loaded}, facts inserted/updated: "
            f"{merge.inserted}/{merge.updated}"
        )
        return result

    async def refresh_facts(self) -> MergeResult:
        """Run only the fact merge, under its own run record"""
        tracker = RunTracker(self.db, settings.MERGE_PROCESS_NAME)
        await tracker.start()

        try:
            merge = await FactMergeEngine(self.db).merge()
        except MergeError as e:
            tracker.record_error(e, source_table=FactOrderLine.__tablename__)
            await tracker.fail(e.message)
            raise

        await tracker.succeed(facts_inserted=merge.inserted, facts_updated=merge.updated)
        return merge


def _counters(validation: ValidationSummary, load: LoadResult, merge: MergeResult) -> dict:
    return {
        "rows_validated": validation.rows_validated,
        "rows_rejected": validation.rows_rejected,
        "rows_exhausted": validation.rows_exhausted,
        "rows_loaded": load.rows_loaded,
        "orders_created": load.orders_created,
        "facts_inserted": merge.inserted,
        "facts_updated": merge.updated,
    }
