"""
Load validated staging rows into normalized orders and order lines
"""

from typing import Dict, List, Optional, Tuple
from datetime import date, datetime
from sqlalchemy import select, update, and_, or_
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from models.orders import Order, OrderLine
from models.staging import StagingOrder
from reconciliation.order_totals import OrderLineWriter
from schemas.reconciliation import LoadResult
from core.exceptions import LoadError
import logging

logger = logging.getLogger(__name__)

OrderKey = Tuple[int, date]


class OrderLoader:
    """
    Load staging rows into orders and order lines as one atomic unit.

    Ensures:
    - The input is a snapshot of rows with valid=True, processed=False taken
      at call time; rows arriving mid-run wait for the next run
    - One order per distinct (customer, order_date), reusing existing orders
    - Lines go through OrderLineWriter so order totals stay consistent
    - Orders, lines and the processed flags commit together or not at all

    Concurrent loaders over the same staging rows are not supported; callers
    must run at most one load at a time.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        line_writer: Optional[OrderLineWriter] = None
    ):
        self.db = db_session
        self.line_writer = line_writer or OrderLineWriter(db_session)

    async def snapshot(self) -> List[StagingOrder]:
        """Materialize the loadable staging rows as of now"""
        result = await self.db.execute(
            select(StagingOrder).where(
                StagingOrder.valid.is_(True),
                StagingOrder.processed.is_(False)
            ).order_by(StagingOrder.id)
        )
        return list(result.scalars().all())

    async def load(self, run_id: Optional[int] = None) -> LoadResult:
        """
        Run the load unit.

        Args:
            run_id: Primary key of the owning run, stamped on new orders and
                processed staging rows

        Returns:
            LoadResult with counts and the ids of orders whose lines changed

        Raises:
            LoadError: The unit failed and was rolled back
        """
        operation = "SELECT staging_orders"
        rows_in_snapshot = 0

        try:
            rows = await self.snapshot()
            rows_in_snapshot = len(rows)

            if not rows:
                logger.info("No loadable staging rows")
                return LoadResult()

            # Snapshot plain values; ORM rows expire if the unit rolls back
            row_ids = [row.id for row in rows]
            row_keys = [(row.customer_ref, row.order_date) for row in rows]
            logger.info(f"Loading {len(rows)} staging rows")

            # Step 1: orders for (customer, order_date) pairs not yet present
            operation = "INSERT orders"
            orders_by_key, created_orders = await self._ensure_orders(set(row_keys), run_id)

            # Step 2: one line per staging row, parent resolved by the same key
            operation = "INSERT order_lines"
            lines = [
                OrderLine(
                    order_id=orders_by_key[(row.customer_ref, row.order_date)].id,
                    product_id=row.product_ref,
                    quantity=row.quantity,
                    unit_price=row.unit_price,
                    staging_row_id=row.id
                )
                for row in rows
            ]
            await self.line_writer.add_lines(lines)

            # Step 3: mark the snapshot processed
            operation = "UPDATE staging_orders"
            await self.db.execute(
                update(StagingOrder)
                .where(StagingOrder.id.in_(row_ids))
                .values(processed=True, processed_at=datetime.utcnow(), load_run_id=run_id)
            )

            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LoadError(
                f"Load unit aborted during {operation}: {_describe(e)}",
                context={
                    "operation": operation,
                    "table_name": operation.split()[-1],
                    "rows_in_snapshot": rows_in_snapshot,
                    "constraint_violation": isinstance(e, IntegrityError)
                },
                original_exception=e
            )
        except Exception as e:
            await self.db.rollback()
            raise LoadError(
                f"Load unit aborted during {operation}: {e}",
                context={"operation": operation, "rows_in_snapshot": rows_in_snapshot},
                original_exception=e
            )

        affected = sorted({order.id for order in orders_by_key.values()})
        result = LoadResult(
            rows_loaded=len(row_ids),
            orders_created=len(created_orders),
            lines_created=len(lines),
            affected_order_ids=affected
        )
        logger.info(
            f"Loaded {result.rows_loaded} rows: "
            f"{result.orders_created} new orders, {result.lines_created} lines"
        )
        return result

    async def _ensure_orders(
        self,
        keys: set,
        run_id: Optional[int]
    ) -> Tuple[Dict[OrderKey, Order], List[Order]]:
        """Resolve existing orders for the keys and insert the missing ones"""
        existing = await self.db.execute(
            select(Order).where(
                or_(*[
                    and_(Order.customer_id == customer_id, Order.order_date == order_date)
                    for customer_id, order_date in keys
                ])
            )
        )
        orders_by_key = {
            (order.customer_id, order.order_date): order
            for order in existing.scalars().all()
        }

        created = []
        for customer_id, order_date in sorted(keys - set(orders_by_key)):
            order = Order(customer_id=customer_id, order_date=order_date, load_run_id=run_id)
            self.db.add(order)
            orders_by_key[(customer_id, order_date)] = order
            created.append(order)

        if created:
            await self.db.flush()
        return orders_by_key, created


def _describe(error: SQLAlchemyError) -> str:
    """First line of the driver message, without the SQL echo"""
    original = getattr(error, "orig", None)
    text = str(original) if original is not None else str(error)
    return text.splitlines()[0] if text else type(error).__name__
