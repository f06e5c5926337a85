from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Enum,
    ForeignKey, Index, UniqueConstraint, BigInteger
)
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
from models.base import Base, BigIntPK, PaymentStatus


class Order(Base):
    """
    Normalized order header.

    One row per distinct (customer, order_date); that pair is the loader's
    de-duplication key. ``total`` is denormalized from the order's lines and
    is only ever written by the order-total recompute hook.
    """
    __tablename__ = "orders"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, ForeignKey("customers.id"), nullable=False, index=True)
    order_date = Column(Date, nullable=False, index=True)
    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    load_run_id = Column(BigInteger, ForeignKey("reconciliation_runs.id"), nullable=True, index=True)

    customer = relationship("Customer")
    lines = relationship("OrderLine", back_populates="order")
    payments = relationship("Payment", back_populates="order")

    __table_args__ = (
        UniqueConstraint("customer_id", "order_date", name="uq_orders_customer_date"),
    )


class OrderLine(Base):
    """Normalized order line, unique per (order, product)"""
    __tablename__ = "order_lines"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    staging_row_id = Column(BigInteger, ForeignKey("staging_orders.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    order = relationship("Order", back_populates="lines")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_lines_order_product"),
    )


class Payment(Base):
    """
    Payment against an order.

    Payments are recorded by the operational side. The fact merge uses the
    latest payment (highest id) of each order.
    """
    __tablename__ = "payments"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    method = Column(String(50), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    amount = Column(Numeric(12, 2), nullable=True)
    paid_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="payments")

    __table_args__ = (
        Index("idx_payments_order_id_id", "order_id", "id"),
    )
