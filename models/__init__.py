"""
SQLAlchemy ORM models for the record store.

Models:
    base: Declarative base and shared enums (RunStatus, ErrorKind, PaymentStatus)
    reference: Customer and product reference data
    orders: Normalized orders, order lines and payments
    staging: Staging buffer for incoming order rows
    fact: Derived order line fact table
    run_log: Run log and error log

Ownership:
    - customers, products, payments: operational side (read-only here)
    - staging_orders: intake appends, validator/loader update flags
    - orders, order_lines: loader and OrderLineWriter
    - fact_order_lines: merge engine only
    - reconciliation_runs, reconciliation_errors: RunTracker only

Column types are kept portable (generic JSON, Uuid, Numeric) so the same
schema runs on PostgreSQL in production and SQLite in tests.
"""

from models.base import Base, RunStatus, ErrorKind, PaymentStatus
from models.reference import Customer, Product
from models.orders import Order, OrderLine, Payment
from models.staging import StagingOrder
from models.fact import FactOrderLine
from models.run_log import ReconciliationRun, ReconciliationErrorRecord

__all__ = [
    "Base",
    "RunStatus",
    "ErrorKind",
    "PaymentStatus",
    "Customer",
    "Product",
    "Order",
    "OrderLine",
    "Payment",
    "StagingOrder",
    "FactOrderLine",
    "ReconciliationRun",
    "ReconciliationErrorRecord",
]
