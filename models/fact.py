from sqlalchemy import Column, String, Integer, Numeric, Date, DateTime, BigInteger, Index
from datetime import datetime
from models.base import Base


class FactOrderLine(Base):
    """
    Derived, pre-joined order line fact for reporting.

    Owned exclusively by the merge engine. One row per (order, product);
    ``last_updated`` advances only when a tracked field (quantity,
    line_total, payment_method, payment_status) changes.
    """
    __tablename__ = "fact_order_lines"

    order_id = Column(BigInteger, primary_key=True, autoincrement=False)
    product_id = Column(BigInteger, primary_key=True, autoincrement=False)

    customer_id = Column(BigInteger, nullable=False, index=True)
    order_date = Column(Date, nullable=False, index=True)

    # Tracked fields
    quantity = Column(Integer, nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(50), nullable=True)
    payment_status = Column(String(20), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_updated = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_fact_last_updated", "last_updated"),
    )
