"""
Unit tests for the atomic order loader
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from models.orders import Order, OrderLine
from models.staging import StagingOrder
from reconciliation.loaders import OrderLoader
from reconciliation.run_tracker import RunTracker
from core.exceptions import LoadError


class TestOrderLoader:
    """Loading validated staging rows"""

    @pytest.mark.asyncio
    async def test_rows_grouped_into_one_order(self, db_session, reference_data, stage_row, fetch_all):
        await stage_row(customer_ref=3, product_ref=1, quantity=2, unit_price=Decimal("10.00"), valid=True)
        await stage_row(customer_ref=3, product_ref=2, quantity=1, unit_price=Decimal("5.00"), valid=True)

        result = await OrderLoader(db_session).load()

        orders = await fetch_all(Order)
        lines = await fetch_all(OrderLine, order_by=OrderLine.product_id)
        assert result.rows_loaded == 2
        assert result.orders_created == 1
        assert result.lines_created == 2
        assert result.affected_order_ids == [orders[0].id]
        assert len(orders) == 1
        assert orders[0].customer_id == 3
        assert orders[0].order_date == date(2023, 3, 1)
        assert orders[0].total == Decimal("25.00")
        assert [line.order_id for line in lines] == [orders[0].id, orders[0].id]
        assert all(row.processed for row in await fetch_all(StagingOrder))

    @pytest.mark.asyncio
    async def test_existing_order_is_reused(self, db_session, reference_data, stage_row, fetch_all):
        await stage_row(product_ref=1, valid=True)
        await OrderLoader(db_session).load()
        await stage_row(product_ref=2, valid=True)

        result = await OrderLoader(db_session).load()

        orders = await fetch_all(Order)
        assert result.orders_created == 0
        assert len(orders) == 1
        assert orders[0].total == Decimal("40.00")

    @pytest.mark.asyncio
    async def test_distinct_dates_make_distinct_orders(self, db_session, reference_data, stage_row, fetch_all):
        await stage_row(order_date=date(2023, 3, 1), valid=True)
        await stage_row(order_date=date(2023, 3, 2), valid=True)

        result = await OrderLoader(db_session).load()

        assert result.orders_created == 2
        assert len(await fetch_all(Order)) == 2

    @pytest.mark.asyncio
    async def test_only_valid_unprocessed_rows_load(self, db_session, reference_data, stage_row, fetch_all):
        await stage_row(valid=False)
        await stage_row(product_ref=2, valid=True)

        result = await OrderLoader(db_session).load()

        assert result.rows_loaded == 1
        rows = await fetch_all(StagingOrder, order_by=StagingOrder.id)
        assert [row.processed for row in rows] == [False, True]

    @pytest.mark.asyncio
    async def test_second_load_is_noop(self, db_session, reference_data, stage_row, fetch_all):
        await stage_row(valid=True)
        await OrderLoader(db_session).load()

        result = await OrderLoader(db_session).load()

        assert result.rows_loaded == 0
        assert len(await fetch_all(OrderLine)) == 1

    @pytest.mark.asyncio
    async def test_run_id_stamped(self, db_session, reference_data, stage_row, fetch_all):
        tracker = RunTracker(db_session, "order_reconciliation")
        await tracker.start()
        await stage_row(valid=True)

        await OrderLoader(db_session).load(run_id=tracker.run_pk)

        assert (await fetch_all(Order))[0].load_run_id == tracker.run_pk
        assert (await fetch_all(StagingOrder))[0].load_run_id == tracker.run_pk

    @pytest.mark.asyncio
    async def test_constraint_violation_rolls_back_everything(self, db_session, reference_data, stage_row, fetch_all):
        """Two rows for the same order and product break the unit as a whole"""
        await stage_row(product_ref=3, valid=True)
        await stage_row(product_ref=4, valid=True)
        await stage_row(product_ref=4, quantity=1, valid=True)

        with pytest.raises(LoadError) as exc_info:
            await OrderLoader(db_session).load()

        assert exc_info.value.context["constraint_violation"] is True
        assert exc_info.value.context["rows_in_snapshot"] == 3
        assert await fetch_all(Order) == []
        assert await fetch_all(OrderLine) == []
        assert not any(row.processed for row in await fetch_all(StagingOrder))

    @pytest.mark.asyncio
    async def test_failure_marking_processed_rolls_back(self, db_session, reference_data, stage_row, fetch_all):
        await stage_row(valid=True)

        with patch(
            "reconciliation.loaders.order_loader.update",
            side_effect=OperationalError("UPDATE staging_orders", {}, Exception("database is locked"))
        ):
            with pytest.raises(LoadError) as exc_info:
                await OrderLoader(db_session).load()

        assert exc_info.value.context["operation"] == "UPDATE staging_orders"
        assert "database is locked" in exc_info.value.message
        assert await fetch_all(Order) == []
        assert await fetch_all(OrderLine) == []
        assert (await fetch_all(StagingOrder))[0].processed is False

    @pytest.mark.asyncio
    async def test_rows_staged_mid_load_wait_for_next_load(
        self, db_session, session_maker, reference_data, stage_row, fetch_all
    ):
        """Only rows loadable when the load started are marked processed"""
        await stage_row(customer_ref=1, product_ref=1, valid=True)
        late_ids = []
        real_ensure_orders = OrderLoader._ensure_orders

        async def stage_late_row_then_ensure(self, keys, run_id):
            async with session_maker() as other_session:
                late = StagingOrder(
                    customer_ref=2, product_ref=3, quantity=1, unit_price=Decimal("7.00"),
                    order_date=date(2023, 3, 1), valid=True, processed=False, retry_count=0
                )
                other_session.add(late)
                await other_session.commit()
                late_ids.append(late.id)
            return await real_ensure_orders(self, keys, run_id)

        with patch.object(OrderLoader, "_ensure_orders", stage_late_row_then_ensure):
            result = await OrderLoader(db_session).load()

        late_id, = late_ids
        assert result.rows_loaded == 1
        late = (await fetch_all(StagingOrder, StagingOrder.id == late_id))[0]
        assert late.processed is False
        assert await fetch_all(OrderLine, OrderLine.staging_row_id == late_id) == []

        next_result = await OrderLoader(db_session).load()

        assert next_result.rows_loaded == 1
        assert (await fetch_all(StagingOrder, StagingOrder.id == late_id))[0].processed is True
        assert len(await fetch_all(OrderLine, OrderLine.staging_row_id == late_id)) == 1

    @pytest.mark.asyncio
    async def test_empty_snapshot(self, db_session):
        result = await OrderLoader(db_session).load()

        assert result.rows_loaded == 0
        assert result.affected_order_ids == []
