"""
Pydantic schemas for staging intake and operator corrections
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal


class StagingRowIn(BaseModel):
    """
    Schema for appending a row to the staging buffer.

    Only coerces types. Business rules (known customer/product, positive
    quantity and price) are the validator's job, so a row with
    ``quantity=0`` is accepted here and quarantined later.
    """

    customer_ref: Optional[int] = None
    product_ref: Optional[int] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
    order_date: Optional[date] = None
    source_file: Optional[str] = Field(None, max_length=500)

    @field_validator("customer_ref", "product_ref", "quantity", "unit_price", "order_date", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """CSV cells arrive as empty strings or NaN"""
        if v is None:
            return None
        if isinstance(v, str) and not v.strip():
            return None
        if isinstance(v, float) and v != v:
            return None
        return v

    @field_validator("order_date", mode="before")
    @classmethod
    def parse_order_date(cls, v):
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str):
            return v.strip()[:10]
        return v


class StagingCorrection(BaseModel):
    """
    Operator correction for a quarantined staging row.

    Unset fields are left alone. ``mark_valid`` lets the operator vouch for
    the row directly; otherwise it goes back through the validator on the
    next run.
    """

    customer_ref: Optional[int] = None
    product_ref: Optional[int] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
    order_date: Optional[date] = None
    mark_valid: bool = False

    def changes(self) -> dict:
        """Field updates explicitly set by the caller"""
        return self.model_dump(exclude_unset=True, exclude={"mark_valid"})


class StagingRowResponse(BaseModel):
    """Staging row as exposed by the API"""
    id: int
    customer_ref: Optional[int]
    product_ref: Optional[int]
    quantity: Optional[int]
    unit_price: Optional[Decimal]
    order_date: Optional[date]
    source_file: Optional[str]
    valid: bool
    processed: bool
    retry_count: int
    validated_at: Optional[datetime]
    last_error: Optional[str]
    corrected_at: Optional[datetime]
    ingested_at: datetime

    class Config:
        from_attributes = True
