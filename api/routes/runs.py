"""
Run log and error log endpoints, plus manual run trigger
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from schemas.api import RunResponse, ErrorRecordResponse, Page, PaginationMetadata
from schemas.reconciliation import ReconciliationResult
from models.base import RunStatus, ErrorKind
from models.run_log import ReconciliationRun, ReconciliationErrorRecord
from reconciliation.runner import ReconciliationRunner
from core.exceptions import ETLException
from typing import List, Optional
from datetime import datetime
from uuid import UUID
import math
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/runs", tags=["Runs"])


@router.get("", response_model=Page[RunResponse])
async def list_runs(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Runs per page"),
    process_name: Optional[str] = Query(None, description="Filter by process name"),
    status: Optional[RunStatus] = Query(None, description="Filter by run status"),
    started_after: Optional[datetime] = Query(None, description="Runs started at or after"),
    started_before: Optional[datetime] = Query(None, description="Runs started before"),
    db: AsyncSession = Depends(get_db)
):
    """Run log, newest first"""
    filters = []
    if process_name:
        filters.append(ReconciliationRun.process_name == process_name)
    if status:
        filters.append(ReconciliationRun.status == status)
    if started_after:
        filters.append(ReconciliationRun.started_at >= started_after)
    if started_before:
        filters.append(ReconciliationRun.started_at < started_before)
    
    total = (await db.execute(
        select(func.count()).select_from(ReconciliationRun).where(*filters)
    )).scalar() or 0
    
    result = await db.execute(
        select(ReconciliationRun)
        .where(*filters)
        .order_by(ReconciliationRun.started_at.desc(), ReconciliationRun.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    runs = result.scalars().all()
    
    total_pages = math.ceil(total / page_size) if total else 0
    return Page[RunResponse](
        data=[RunResponse.model_validate(run) for run in runs],
        pagination=PaginationMetadata(
            page=page,
            page_size=page_size,
            total_items=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1
        )
    )


@router.post("", response_model=ReconciliationResult, status_code=201)
async def trigger_run(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Run reconciliation once, synchronously.
    
    Refused with 409 while another run (scheduled or manual) is in flight
    in this process.
    """
    request_id = getattr(request.state, "request_id", "-")
    run_lock = request.app.state.scheduler.run_lock
    
    if run_lock.locked():
        logger.warning(f"[{request_id}] Manual run refused: a run is already in progress")
        raise HTTPException(status_code=409, detail="A reconciliation run is already in progress")
    
    async with run_lock:
        logger.info(f"[{request_id}] Manual reconciliation run requested")
        try:
            return await ReconciliationRunner(db).run()
        except ETLException as e:
            raise HTTPException(status_code=500, detail=e.to_dict())


async def _get_run(db: AsyncSession, run_id: UUID) -> ReconciliationRun:
    result = await db.execute(
        select(ReconciliationRun).where(ReconciliationRun.run_id == run_id)
    )
    run = result.scalar_one_or_none()
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return run


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(run_id: UUID, db: AsyncSession = Depends(get_db)):
    return RunResponse.model_validate(await _get_run(db, run_id))


@router.get("/{run_id}/errors", response_model=List[ErrorRecordResponse])
async def get_run_errors(
    run_id: UUID,
    kind: Optional[ErrorKind] = Query(None, description="Filter by error kind"),
    db: AsyncSession = Depends(get_db)
):
    """Error log entries recorded by one run"""
    run = await _get_run(db, run_id)
    
    query = select(ReconciliationErrorRecord).where(ReconciliationErrorRecord.run_id == run.id)
    if kind:
        query = query.where(ReconciliationErrorRecord.kind == kind)
    
    result = await db.execute(query.order_by(ReconciliationErrorRecord.id))
    return [ErrorRecordResponse.model_validate(record) for record in result.scalars().all()]
