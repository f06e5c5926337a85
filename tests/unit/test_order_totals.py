"""
Unit tests for order line writes and order total recomputation
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock
from models.orders import Order, OrderLine
from reconciliation.order_totals import (
    OrderLineWriter,
    line_total,
    recompute_order_totals,
    to_money,
)


def test_to_money_rounds_half_up():
    assert to_money("2.005") == Decimal("2.01")
    assert to_money(None) == Decimal("0.00")
    assert to_money(3) == Decimal("3.00")


def test_line_total():
    assert line_total(3, Decimal("19.99")) == Decimal("59.97")


@pytest.fixture
def make_orders(db_session, reference_data):
    async def _make(count=1):
        orders = [
            Order(customer_id=1, order_date=date(2023, 3, day))
            for day in range(1, count + 1)
        ]
        db_session.add_all(orders)
        await db_session.flush()
        return orders
    return _make


async def order_total(fetch_all, order_id):
    return (await fetch_all(Order, Order.id == order_id))[0].total


class TestOrderLineWriter:
    """Totals follow every change set"""

    @pytest.mark.asyncio
    async def test_add_lines_sets_totals(self, db_session, make_orders, fetch_all):
        order, = await make_orders()
        writer = OrderLineWriter(db_session)

        await writer.add_lines([
            OrderLine(order_id=order.id, product_id=1, quantity=2, unit_price=Decimal("10.00")),
            OrderLine(order_id=order.id, product_id=2, quantity=1, unit_price=Decimal("4.50")),
        ])
        await db_session.commit()

        lines = await fetch_all(OrderLine, order_by=OrderLine.product_id)
        assert [line.line_total for line in lines] == [Decimal("20.00"), Decimal("4.50")]
        assert await order_total(fetch_all, order.id) == Decimal("24.50")

    @pytest.mark.asyncio
    async def test_update_line_recomputes(self, db_session, make_orders, fetch_all):
        order, = await make_orders()
        writer = OrderLineWriter(db_session)
        line, = await writer.add_lines([
            OrderLine(order_id=order.id, product_id=1, quantity=2, unit_price=Decimal("10.00"))
        ])

        await writer.update_line(line.id, quantity=5)
        await db_session.commit()

        assert await order_total(fetch_all, order.id) == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_moving_line_updates_both_orders(self, db_session, make_orders, fetch_all):
        first, second = await make_orders(2)
        writer = OrderLineWriter(db_session)
        line, = await writer.add_lines([
            OrderLine(order_id=first.id, product_id=1, quantity=1, unit_price=Decimal("8.00"))
        ])

        await writer.update_line(line.id, order_id=second.id)
        await db_session.commit()

        assert await order_total(fetch_all, first.id) == Decimal("0.00")
        assert await order_total(fetch_all, second.id) == Decimal("8.00")

    @pytest.mark.asyncio
    async def test_deleting_last_line_zeroes_total(self, db_session, make_orders, fetch_all):
        order, = await make_orders()
        writer = OrderLineWriter(db_session)
        lines = await writer.add_lines([
            OrderLine(order_id=order.id, product_id=1, quantity=1, unit_price=Decimal("3.00")),
            OrderLine(order_id=order.id, product_id=2, quantity=1, unit_price=Decimal("7.00")),
        ])

        deleted = await writer.delete_lines([line.id for line in lines])
        await db_session.commit()

        assert deleted == 2
        assert await fetch_all(OrderLine) == []
        assert await order_total(fetch_all, order.id) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_update_missing_line(self, db_session):
        with pytest.raises(LookupError):
            await OrderLineWriter(db_session).update_line(12345, quantity=1)

    @pytest.mark.asyncio
    async def test_hook_runs_once_per_change_set(self, db_session, make_orders):
        first, second = await make_orders(2)
        hook = AsyncMock(side_effect=recompute_order_totals)
        writer = OrderLineWriter(db_session, on_lines_changed=hook)

        await writer.add_lines([
            OrderLine(order_id=first.id, product_id=1, quantity=1, unit_price=Decimal("1.00")),
            OrderLine(order_id=first.id, product_id=2, quantity=1, unit_price=Decimal("1.00")),
            OrderLine(order_id=second.id, product_id=1, quantity=1, unit_price=Decimal("1.00")),
        ])

        hook.assert_awaited_once()
        assert hook.await_args.args[1] == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_empty_change_set_skips_hook(self, db_session):
        hook = AsyncMock()
        writer = OrderLineWriter(db_session, on_lines_changed=hook)

        assert await writer.add_lines([]) == []
        assert await writer.delete_lines([]) == 0
        hook.assert_not_awaited()


@pytest.mark.asyncio
async def test_recompute_repairs_drifted_total(db_session, make_orders, fetch_all):
    order, = await make_orders()
    await OrderLineWriter(db_session).add_lines([
        OrderLine(order_id=order.id, product_id=3, quantity=2, unit_price=Decimal("15.00"))
    ])
    order.total = Decimal("999.00")
    await db_session.flush()

    totals = await recompute_order_totals(db_session, [order.id, order.id])
    await db_session.commit()

    assert totals == {order.id: Decimal("30.00")}
    assert await order_total(fetch_all, order.id) == Decimal("30.00")
