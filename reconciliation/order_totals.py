"""
Order line mutation with synchronous order-total maintenance.

Every change to ``order_lines`` goes through OrderLineWriter. After each
change set the writer flushes and recomputes the total of every affected
order exactly once, inside the caller's transaction, so a committed line is
never visible without its matching order total.
"""

from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from models.orders import Order, OrderLine
import logging

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize a numeric value to cents"""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price) -> Decimal:
    return to_money(Decimal(quantity) * to_money(unit_price))


async def recompute_order_totals(
    db_session: AsyncSession,
    order_ids: Iterable[int]
) -> Dict[int, Decimal]:
    """
    Write ``orders.total = sum(order_lines.line_total)`` for the given orders.

    Reads the post-change line set, so an order whose last line was deleted
    ends up at zero. Does not commit.
    """
    order_ids = sorted(set(order_ids))
    if not order_ids:
        return {}

    result = await db_session.execute(
        select(OrderLine.order_id, func.sum(OrderLine.line_total))
        .where(OrderLine.order_id.in_(order_ids))
        .group_by(OrderLine.order_id)
    )
    sums = {order_id: to_money(total) for order_id, total in result.all()}

    totals = {}
    for order_id in order_ids:
        total = sums.get(order_id, Decimal("0.00"))
        await db_session.execute(
            update(Order).where(Order.id == order_id).values(total=total)
        )
        totals[order_id] = total

    logger.debug(f"Recomputed totals for {len(totals)} orders")
    return totals


RecomputeHook = Callable[[AsyncSession, Iterable[int]], Awaitable[Dict[int, Decimal]]]


class OrderLineWriter:
    """
    The only sanctioned mutator of order lines.

    Each public method is one change set: it applies the mutation, flushes,
    and invokes the recompute hook once with the distinct affected order ids.
    Nothing here commits; the caller's transaction decides.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        on_lines_changed: Optional[RecomputeHook] = None
    ):
        self.db = db_session
        self.on_lines_changed = on_lines_changed or recompute_order_totals

    async def add_lines(self, lines: List[OrderLine]) -> List[OrderLine]:
        """Insert new lines, deriving line_total from quantity and unit_price"""
        if not lines:
            return []

        for line in lines:
            line.unit_price = to_money(line.unit_price)
            line.line_total = line_total(line.quantity, line.unit_price)
            self.db.add(line)

        await self.db.flush()
        await self._after_change({line.order_id for line in lines})
        return lines

    async def update_line(
        self,
        line_id: int,
        quantity: Optional[int] = None,
        unit_price=None,
        order_id: Optional[int] = None
    ) -> OrderLine:
        """Change a line's quantity, price or parent order"""
        line = await self.db.get(OrderLine, line_id)
        if line is None:
            raise LookupError(f"Order line {line_id} not found")

        affected: Set[int] = {line.order_id}
        if quantity is not None:
            line.quantity = quantity
        if unit_price is not None:
            line.unit_price = to_money(unit_price)
        if order_id is not None:
            line.order_id = order_id
            affected.add(order_id)
        line.line_total = line_total(line.quantity, line.unit_price)

        await self.db.flush()
        await self._after_change(affected)
        return line

    async def delete_lines(self, line_ids: Iterable[int]) -> int:
        """Delete lines by id; returns how many existed"""
        line_ids = list(line_ids)
        if not line_ids:
            return 0

        result = await self.db.execute(
            select(OrderLine).where(OrderLine.id.in_(line_ids))
        )
        lines = result.scalars().all()
        affected = {line.order_id for line in lines}

        for line in lines:
            await self.db.delete(line)

        await self.db.flush()
        await self._after_change(affected)
        return len(lines)

    async def _after_change(self, order_ids: Set[int]) -> None:
        await self.on_lines_changed(self.db, order_ids)
