"""
Health check endpoint with database and run status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text, func
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, ProcessStatus
from models.run_log import ReconciliationRun
from reconciliation.retry import RetryCoordinator
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.
    
    Returns:
    - Database connectivity status
    - Latest run per process
    - Quarantine and exhaustion backlog
    """
    db_connected = False
    
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")
        return HealthCheckResponse(database_connected=False)
    
    processes = []
    quarantined = exhausted = 0
    
    try:
        latest = (
            select(ReconciliationRun.process_name, func.max(ReconciliationRun.id).label("id"))
            .group_by(ReconciliationRun.process_name)
            .subquery()
        )
        result = await db.execute(
            select(ReconciliationRun)
            .join(latest, latest.c.id == ReconciliationRun.id)
            .order_by(ReconciliationRun.process_name)
        )
        processes = [ProcessStatus.model_validate(run) for run in result.scalars().all()]
        
        coordinator = RetryCoordinator(db)
        quarantined = len(await coordinator.quarantined())
        exhausted = len(await coordinator.exhausted())
    except Exception as e:
        logger.error(f"Failed to fetch run status: {str(e)}")
    
    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        processes=processes,
        quarantined_rows=quarantined,
        exhausted_rows=exhausted
    )
