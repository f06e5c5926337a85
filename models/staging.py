from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Boolean,
    ForeignKey, Index, BigInteger, Text
)
from datetime import datetime
from models.base import Base, BigIntPK


class StagingOrder(Base):
    """
    Intake buffer for order rows awaiting reconciliation.

    Purpose:
    - Append-only audit trail of everything that was ever submitted
    - Quarantine for rows that fail validation
    - Retry bookkeeping (retry_count only ever increases)

    Lifecycle:
    - pending:      valid=False, validated_at IS NULL
    - quarantined:  valid=False, validated_at set, retry_count < MAX_RETRIES
    - exhausted:    valid=False, validated_at set, retry_count >= MAX_RETRIES
    - loadable:     valid=True,  processed=False
    - processed:    processed=True (immutable from here on)

    References are deliberately not foreign keys: a staging row may point at
    a customer or product that does not exist, which is exactly what the
    validator is there to catch.
    """
    __tablename__ = "staging_orders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # Intake payload
    customer_ref = Column(BigInteger, nullable=True)
    product_ref = Column(BigInteger, nullable=True)
    quantity = Column(Integer, nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=True)
    order_date = Column(Date, nullable=True)
    source_file = Column(String(500), nullable=True)
    ingested_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Validation / retry tracking
    valid = Column(Boolean, nullable=False, default=False)
    retry_count = Column(Integer, nullable=False, default=0)
    validated_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)
    corrected_at = Column(DateTime, nullable=True)

    # Load tracking
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime, nullable=True)
    load_run_id = Column(BigInteger, ForeignKey("reconciliation_runs.id"), nullable=True, index=True)

    __table_args__ = (
        Index("idx_staging_loadable", "valid", "processed"),
        Index("idx_staging_retry", "valid", "processed", "retry_count"),
    )
