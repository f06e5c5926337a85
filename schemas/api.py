"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any, Generic, TypeVar
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from models.base import RunStatus, ErrorKind

T = TypeVar("T")


class PaginationMetadata(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool
    has_previous: bool


class Page(BaseModel, Generic[T]):
    """Paginated envelope"""
    data: List[T]
    pagination: PaginationMetadata


# ============================================================================
# Run Log Schemas
# ============================================================================

class RunResponse(BaseModel):
    """Run log entry"""
    run_id: UUID
    process_name: str
    status: RunStatus
    started_at: datetime
    completed_at: Optional[datetime]
    duration_seconds: Optional[float]
    rows_validated: int = 0
    rows_rejected: int = 0
    rows_exhausted: int = 0
    rows_loaded: int = 0
    orders_created: int = 0
    facts_inserted: int = 0
    facts_updated: int = 0
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class ErrorRecordResponse(BaseModel):
    """Error log entry"""
    id: int
    source_table: str
    source_row_id: Optional[int]
    kind: ErrorKind
    message: str
    details: Optional[Dict[str, Any]] = None
    logged_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


# ============================================================================
# Fact Schemas
# ============================================================================

class FactResponse(BaseModel):
    """Derived order line fact"""
    order_id: int
    product_id: int
    customer_id: int
    order_date: date
    quantity: int
    line_total: Decimal
    payment_method: Optional[str]
    payment_status: Optional[str]
    last_updated: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Health Check Schemas
# ============================================================================

class ProcessStatus(BaseModel):
    """Most recent run of one process"""
    process_name: str
    status: RunStatus
    started_at: datetime
    completed_at: Optional[datetime]
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    processes: List[ProcessStatus] = Field(default_factory=list)
    quarantined_rows: int = 0
    exhausted_rows: int = 0

    @model_validator(mode="after")
    def determine_status(self):
        """Unhealthy without a database, degraded if any process last failed"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif any(p.status == RunStatus.FAILED for p in self.processes):
            self.status = "degraded"
        else:
            self.status = "healthy"
        return self
