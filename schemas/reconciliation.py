"""
Result objects returned by the pipeline phases
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from models.base import RunStatus


class ValidationSummary(BaseModel):
    """Outcome of one validation pass"""
    rows_validated: int = 0
    rows_accepted: int = 0
    rows_rejected: int = 0
    rows_exhausted: int = 0
    rows_retried: int = 0
    rejected_row_ids: List[int] = Field(default_factory=list)
    exhausted_row_ids: List[int] = Field(default_factory=list)


class LoadResult(BaseModel):
    """Outcome of one committed load unit"""
    rows_loaded: int = 0
    orders_created: int = 0
    lines_created: int = 0
    affected_order_ids: List[int] = Field(default_factory=list)


class MergeResult(BaseModel):
    """Outcome of one fact merge"""
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    stale: int = 0


class ReconciliationResult(BaseModel):
    """Outcome of a full reconciliation run"""
    run_id: UUID
    status: RunStatus
    validation: ValidationSummary
    load: LoadResult
    merge: MergeResult
    error_message: Optional[str] = None

    class Config:
        use_enum_values = True
