"""
Business-rule validation for staging rows.

Pure functions only: a verdict depends on the row and the reference
snapshot passed in, nothing else, so re-validating an unchanged row against
unchanged reference data always gives the same answer.
"""

from typing import Any, FrozenSet, Tuple
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.reference import Customer, Product
import enum


class RejectReason(str, enum.Enum):
    """Which business predicate a staging row failed"""
    MISSING_FIELD = "missing_field"
    UNKNOWN_CUSTOMER = "unknown_customer"
    UNKNOWN_PRODUCT = "unknown_product"
    NON_POSITIVE_QUANTITY = "non_positive_quantity"
    NON_POSITIVE_PRICE = "non_positive_price"

    @property
    def message(self) -> str:
        return _REASON_MESSAGES[self]


_REASON_MESSAGES = {
    RejectReason.MISSING_FIELD: "missing required field",
    RejectReason.UNKNOWN_CUSTOMER: "unknown customer",
    RejectReason.UNKNOWN_PRODUCT: "unknown product",
    RejectReason.NON_POSITIVE_QUANTITY: "quantity must be positive",
    RejectReason.NON_POSITIVE_PRICE: "unit price must be positive",
}

REQUIRED_FIELDS = ("customer_ref", "product_ref", "quantity", "unit_price", "order_date")


class ReferenceSnapshot(BaseModel):
    """Read-only view of the reference sets a validation pass checks against"""
    customer_ids: FrozenSet[int] = frozenset()
    product_ids: FrozenSet[int] = frozenset()

    class Config:
        frozen = True


class ValidationVerdict(BaseModel):
    """
    Result of validating one staging row.

    ``reasons`` lists every failed predicate in check order; ``reason`` is
    the first of them, or None for a valid row.
    """
    valid: bool
    reasons: Tuple[RejectReason, ...] = ()
    missing_fields: Tuple[str, ...] = ()

    class Config:
        frozen = True

    @property
    def reason(self):
        return self.reasons[0] if self.reasons else None

    @property
    def message(self) -> str:
        if self.valid:
            return "ok"
        parts = []
        for reason in self.reasons:
            if reason is RejectReason.MISSING_FIELD:
                parts.append(f"{reason.message}: {', '.join(self.missing_fields)}")
            else:
                parts.append(reason.message)
        return "; ".join(parts)


def validate_row(row: Any, reference: ReferenceSnapshot) -> ValidationVerdict:
    """
    Validate a staging row against reference data.

    A row is valid iff its customer exists, its product exists, quantity > 0
    and unit_price > 0. Any object exposing the staging attributes works
    (ORM row, schema, namespace).
    """
    reasons = []

    missing = tuple(name for name in REQUIRED_FIELDS if getattr(row, name, None) is None)
    if missing:
        reasons.append(RejectReason.MISSING_FIELD)

    customer_ref = getattr(row, "customer_ref", None)
    if customer_ref is not None and customer_ref not in reference.customer_ids:
        reasons.append(RejectReason.UNKNOWN_CUSTOMER)

    product_ref = getattr(row, "product_ref", None)
    if product_ref is not None and product_ref not in reference.product_ids:
        reasons.append(RejectReason.UNKNOWN_PRODUCT)

    quantity = getattr(row, "quantity", None)
    if quantity is not None and quantity <= 0:
        reasons.append(RejectReason.NON_POSITIVE_QUANTITY)

    unit_price = getattr(row, "unit_price", None)
    if unit_price is not None and unit_price <= 0:
        reasons.append(RejectReason.NON_POSITIVE_PRICE)

    return ValidationVerdict(
        valid=not reasons,
        reasons=tuple(reasons),
        missing_fields=missing,
    )


async def load_reference_snapshot(db_session: AsyncSession) -> ReferenceSnapshot:
    """Read the current customer and product id sets once per pass"""
    customer_result = await db_session.execute(select(Customer.id))
    product_result = await db_session.execute(select(Product.id))
    return ReferenceSnapshot(
        customer_ids=frozenset(customer_result.scalars().all()),
        product_ids=frozenset(product_result.scalars().all()),
    )
