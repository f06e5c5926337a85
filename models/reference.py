from sqlalchemy import Column, String, Numeric, DateTime
from datetime import datetime
from models.base import Base, BigIntPK


class Customer(Base):
    """
    Customer reference data.

    Owned by the operational side; the pipeline only reads it to validate
    staging rows and to satisfy the orders foreign key.
    """
    __tablename__ = "customers"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=True, unique=True)
    city = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Product(Base):
    """Product reference data (read-only to the pipeline)"""
    __tablename__ = "products"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True, index=True)
    list_price = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
