from sqlalchemy import (
    Column, BigInteger, String, Enum, DateTime, Float, Integer, Text,
    ForeignKey, Index, JSON, Uuid
)
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from models.base import Base, BigIntPK, RunStatus, ErrorKind


class ReconciliationRun(Base):
    """
    One row per pipeline invocation.

    Purpose:
    - Audit trail of every run
    - A row left in STARTED with no completed_at marks an interrupted run
    - Per-phase counters for monitoring

    Sealed once (SUCCESS or FAILED) and never mutated afterwards.
    """
    __tablename__ = "reconciliation_runs"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    run_id = Column(Uuid, default=uuid.uuid4, unique=True, nullable=False, index=True)
    process_name = Column(String(100), nullable=False, index=True)

    status = Column(Enum(RunStatus), default=RunStatus.STARTED, nullable=False, index=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    rows_validated = Column(Integer, default=0)
    rows_rejected = Column(Integer, default=0)
    rows_exhausted = Column(Integer, default=0)
    rows_loaded = Column(Integer, default=0)
    orders_created = Column(Integer, default=0)
    facts_inserted = Column(Integer, default=0)
    facts_updated = Column(Integer, default=0)

    error_message = Column(Text, nullable=True)

    errors = relationship("ReconciliationErrorRecord", back_populates="run")

    __table_args__ = (
        Index("idx_run_process_started", "process_name", "started_at"),
        Index("idx_run_status", "status", "started_at"),
    )


class ReconciliationErrorRecord(Base):
    """Append-only error log, many rows per run"""
    __tablename__ = "reconciliation_errors"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    run_id = Column(BigInteger, ForeignKey("reconciliation_runs.id"), nullable=False, index=True)

    source_table = Column(String(100), nullable=False)
    source_row_id = Column(BigInteger, nullable=True, index=True)
    kind = Column(Enum(ErrorKind), nullable=False, index=True)
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    logged_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    run = relationship("ReconciliationRun", back_populates="errors")
