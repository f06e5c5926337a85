"""
Quarantine inspection and correction endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from schemas.staging import StagingCorrection, StagingRowResponse
from reconciliation.retry import RetryCoordinator
from core.exceptions import CorrectionError, StagingRowNotFoundError
from typing import List
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/staging", tags=["Staging"])


@router.get("/quarantined", response_model=List[StagingRowResponse])
async def list_quarantined(db: AsyncSession = Depends(get_db)):
    """Rejected rows that will be retried on the next run"""
    rows = await RetryCoordinator(db).quarantined()
    return [StagingRowResponse.model_validate(row) for row in rows]


@router.get("/exhausted", response_model=List[StagingRowResponse])
async def list_exhausted(db: AsyncSession = Depends(get_db)):
    """Rejected rows that ran out of retries"""
    rows = await RetryCoordinator(db).exhausted()
    return [StagingRowResponse.model_validate(row) for row in rows]


@router.patch("/{row_id}", response_model=StagingRowResponse)
async def correct_row(
    row_id: int,
    correction: StagingCorrection,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Apply an operator correction to an unprocessed staging row"""
    request_id = getattr(request.state, "request_id", "-")
    
    try:
        row = await RetryCoordinator(db).apply_correction(row_id, correction)
    except CorrectionError as e:
        logger.warning(f"[{request_id}] Correction rejected for row {row_id}: {e.message}")
        status_code = 404 if isinstance(e, StagingRowNotFoundError) else 409
        raise HTTPException(status_code=status_code, detail=e.message)
    
    return StagingRowResponse.model_validate(row)
