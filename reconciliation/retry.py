"""
Quarantine, retry accounting and operator corrections for staging rows
"""

from typing import List, Optional
from datetime import datetime
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from models.staging import StagingOrder
from reconciliation.validator import (
    ValidationVerdict,
    load_reference_snapshot,
    validate_row,
)
from reconciliation.run_tracker import RunTracker
from schemas.reconciliation import ValidationSummary
from schemas.staging import StagingCorrection
from core.config import settings
from core.exceptions import (
    CorrectionError,
    RetryExhaustedError,
    StagingRowNotFoundError,
    ValidationError,
)
import logging

logger = logging.getLogger(__name__)

STAGING_TABLE = StagingOrder.__tablename__


class RetryCoordinator:
    """
    Drives validation passes over the staging buffer with bounded retries.

    Responsibilities:
    - Select rows still eligible for validation (valid=False, processed=False,
      retry_count < max_retries)
    - Count every re-validation of a previously validated row as a retry
    - Quarantine rejected rows with one error record per row per pass
    - Report a row once as exhausted when it fails its last permitted retry,
      after which it is never selected again
    - Apply operator corrections to rows that have not been processed
    """

    def __init__(self, db_session: AsyncSession, max_retries: Optional[int] = None):
        self.db = db_session
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _eligible(self):
        # Pending rows are always eligible for their first validation
        return select(StagingOrder).where(
            StagingOrder.valid.is_(False),
            StagingOrder.processed.is_(False),
            or_(
                StagingOrder.validated_at.is_(None),
                StagingOrder.retry_count < self.max_retries
            )
        )

    async def eligible_rows(self) -> List[StagingOrder]:
        """Rows the next validation pass will evaluate (pending and quarantined)"""
        result = await self.db.execute(
            self._eligible().order_by(StagingOrder.id)
        )
        return list(result.scalars().all())

    async def quarantined(self) -> List[StagingOrder]:
        """Rejected rows that still have retry budget"""
        result = await self.db.execute(
            self._eligible()
            .where(StagingOrder.validated_at.isnot(None))
            .order_by(StagingOrder.id)
        )
        return list(result.scalars().all())

    async def exhausted(self) -> List[StagingOrder]:
        """Rejected rows that have used up their retries"""
        result = await self.db.execute(
            select(StagingOrder).where(
                StagingOrder.valid.is_(False),
                StagingOrder.processed.is_(False),
                StagingOrder.validated_at.isnot(None),
                StagingOrder.retry_count >= self.max_retries
            ).order_by(StagingOrder.id)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Retry accounting
    # ------------------------------------------------------------------

    def register_attempt(self, row: StagingOrder) -> bool:
        """
        Count a validation attempt.

        The first validation of a row is not a retry. Every later one
        increments retry_count before the validator sees the row.

        Returns:
            True if this attempt is a retry
        """
        if row.validated_at is None:
            return False
        row.retry_count += 1
        return True

    def is_exhausted(self, row: StagingOrder) -> bool:
        return row.retry_count >= self.max_retries

    # ------------------------------------------------------------------
    # Validation pass
    # ------------------------------------------------------------------

    async def validate_pending(self, tracker: RunTracker) -> ValidationSummary:
        """
        Validate every eligible row and commit the verdicts.

        Rejections are collected as error records on the tracker's run; they
        never abort the pass.
        """
        reference = await load_reference_snapshot(self.db)
        rows = await self.eligible_rows()
        summary = ValidationSummary()

        logger.info(f"Validating {len(rows)} staging rows (max_retries={self.max_retries})")

        for row in rows:
            if self.register_attempt(row):
                summary.rows_retried += 1

            verdict = validate_row(row, reference)
            row.validated_at = datetime.utcnow()
            summary.rows_validated += 1

            if verdict.valid:
                row.valid = True
                row.last_error = None
                summary.rows_accepted += 1
                continue

            row.last_error = verdict.message
            error = self._rejection(row, verdict)
            tracker.record_error(error, source_table=STAGING_TABLE, source_row_id=row.id)

            if isinstance(error, RetryExhaustedError):
                summary.rows_exhausted += 1
                summary.exhausted_row_ids.append(row.id)
                logger.warning(
                    f"Staging row {row.id} exhausted after {row.retry_count} retries: {verdict.message}"
                )
            else:
                summary.rows_rejected += 1
                summary.rejected_row_ids.append(row.id)
                logger.warning(f"Staging row {row.id} quarantined: {verdict.message}")

        await self.db.commit()

        logger.info(
            f"Validation complete: {summary.rows_accepted} accepted, "
            f"{summary.rows_rejected} quarantined, {summary.rows_exhausted} exhausted"
        )
        return summary

    def _rejection(self, row: StagingOrder, verdict: ValidationVerdict) -> ValidationError:
        context = {
            "staging_row_id": row.id,
            "retry_count": row.retry_count,
            "max_retries": self.max_retries,
        }
        reasons = [reason.value for reason in verdict.reasons]
        if self.is_exhausted(row):
            return RetryExhaustedError(
                f"Retries exhausted: {verdict.message}", reasons=reasons, context=context
            )
        return ValidationError(verdict.message, reasons=reasons, context=context)

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------

    async def apply_correction(self, row_id: int, correction: StagingCorrection) -> StagingOrder:
        """
        Rewrite fields of an unprocessed staging row and commit.

        The row is set back to valid=False and re-validated on the next pass
        unless the operator sets ``mark_valid``.

        Raises:
            StagingRowNotFoundError: No staging row with this id
            CorrectionError: Row already processed
        """
        row = await self.db.get(StagingOrder, row_id)
        if row is None:
            raise StagingRowNotFoundError("Staging row not found", context={"staging_row_id": row_id})
        if row.processed:
            raise CorrectionError(
                "Processed staging rows are immutable",
                context={"staging_row_id": row_id}
            )

        changes = correction.changes()
        for field, value in changes.items():
            setattr(row, field, value)
        row.corrected_at = datetime.utcnow()
        # Corrected data is re-validated unless the operator vouches for it
        row.valid = correction.mark_valid

        await self.db.commit()

        logger.info(
            f"Staging row {row_id} corrected ({', '.join(sorted(changes)) or 'no field changes'}"
            f"{', marked valid' if correction.mark_valid else ''})"
        )
        return row
