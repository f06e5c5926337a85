"""
Pytest configuration and fixtures
"""

import os
import pytest
import pytest_asyncio
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import build_engine, build_session_maker
from models import Base, Customer, Product, Payment, PaymentStatus, StagingOrder

# Point at a disposable PostgreSQL database to run the suite against it
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create test database engine with a fresh schema"""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'reconciliation_test.db'}"
    engine = build_engine(url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return build_session_maker(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def reference_data(db_session):
    """Customers 1-3 and products 1-5"""
    db_session.add_all([
        Customer(id=1, name="Ada Lovelace", email="ada@example.com", city="London"),
        Customer(id=2, name="Grace Hopper", email="grace@example.com", city="Arlington"),
        Customer(id=3, name="Edsger Dijkstra", email="edsger@example.com", city="Nuenen"),
    ])
    db_session.add_all([
        Product(id=1, name="Keyboard", category="peripherals", list_price=Decimal("49.90")),
        Product(id=2, name="Mouse", category="peripherals", list_price=Decimal("19.90")),
        Product(id=3, name="Monitor", category="displays", list_price=Decimal("199.00")),
        Product(id=4, name="Cable", category="accessories", list_price=Decimal("4.50")),
        Product(id=5, name="Dock", category="accessories", list_price=Decimal("89.00")),
    ])
    await db_session.commit()


@pytest.fixture
def stage_row(db_session):
    """Factory appending a pending staging row"""

    async def _stage(**fields) -> StagingOrder:
        values = {
            "customer_ref": 1,
            "product_ref": 1,
            "quantity": 2,
            "unit_price": Decimal("10.00"),
            "order_date": date(2023, 3, 1),
            "source_file": "orders_20230301.csv",
            "valid": False,
            "processed": False,
            "retry_count": 0,
        }
        values.update(fields)
        row = StagingOrder(**values)
        db_session.add(row)
        await db_session.commit()
        return row

    return _stage


@pytest.fixture
def add_payment(db_session):
    """Factory recording a payment against an order"""

    async def _pay(order_id: int, method: str = "card", status: PaymentStatus = PaymentStatus.COMPLETED) -> Payment:
        payment = Payment(order_id=order_id, method=method, status=status)
        db_session.add(payment)
        await db_session.commit()
        return payment

    return _pay


@pytest.fixture
def fetch_all(db_session):
    """Re-read every row of a model, bypassing identity-map state"""

    async def _fetch(model, *criteria, order_by=None):
        query = select(model).where(*criteria).execution_options(populate_existing=True)
        if order_by is not None:
            query = query.order_by(order_by)
        result = await db_session.execute(query)
        return list(result.scalars().all())

    return _fetch
