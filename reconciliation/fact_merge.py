"""
Incremental merge of the derived order line fact table.

Reconciles ``fact_order_lines`` against the live join
orders x order_lines x latest payment:

- key in join, not in facts        -> insert
- key in both, tracked field moved -> update and stamp last_updated
- key in both, nothing moved       -> untouched (no write at all)
- key in facts, not in join        -> counted as stale, left in place

Merge cost scales with the number of changed keys, and running it twice in
a row is a no-op the second time.
"""

from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from models.orders import Order, OrderLine, Payment
from models.fact import FactOrderLine
from reconciliation.order_totals import to_money
from schemas.reconciliation import MergeResult
from core.exceptions import MergeError
import logging

logger = logging.getLogger(__name__)

FactKey = Tuple[int, int]

TRACKED_FIELDS = ("quantity", "line_total", "payment_method", "payment_status")


class SourceFact(NamedTuple):
    """One row of the source join, already shaped like a fact"""
    order_id: int
    product_id: int
    customer_id: int
    order_date: date
    quantity: int
    line_total: Decimal
    payment_method: Optional[str]
    payment_status: Optional[str]

    @property
    def key(self) -> FactKey:
        return (self.order_id, self.product_id)


class FactDiff(BaseModel):
    """Set difference between the source join and the fact table"""
    inserts: List[SourceFact] = Field(default_factory=list)
    updates: List[SourceFact] = Field(default_factory=list)
    unchanged_keys: List[FactKey] = Field(default_factory=list)
    stale_keys: List[FactKey] = Field(default_factory=list)

    class Config:
        arbitrary_types_allowed = True


def _normalized(field: str, value):
    if field == "line_total":
        return to_money(value)
    return value


def changed_fields(source: SourceFact, fact) -> List[str]:
    """Tracked fields whose values differ between source and fact"""
    return [
        field for field in TRACKED_FIELDS
        if _normalized(field, getattr(source, field)) != _normalized(field, getattr(fact, field))
    ]


def diff_facts(source_rows: Iterable[SourceFact], existing: Dict[FactKey, object]) -> FactDiff:
    """
    Classify every key as insert, update, unchanged or stale.

    Args:
        source_rows: Current join rows
        existing: Fact rows (anything with the tracked attributes) by key
    """
    diff = FactDiff()
    seen = set()

    for source in source_rows:
        seen.add(source.key)
        fact = existing.get(source.key)
        if fact is None:
            diff.inserts.append(source)
        elif changed_fields(source, fact):
            diff.updates.append(source)
        else:
            diff.unchanged_keys.append(source.key)

    diff.stale_keys = sorted(key for key in existing if key not in seen)
    return diff


def _payment_status_value(status) -> Optional[str]:
    if status is None:
        return None
    return getattr(status, "value", status)


class FactMergeEngine:
    """
    Keeps ``fact_order_lines`` in step with normalized orders and payments.

    The only writer of the fact table. Reads committed state only: the merge
    runs in its own transaction and rolls back on any failure.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def source_rows(self) -> List[SourceFact]:
        """Current join of orders, lines and each order's latest payment"""
        latest_payment = (
            select(Payment.order_id, func.max(Payment.id).label("payment_id"))
            .group_by(Payment.order_id)
            .subquery()
        )
        result = await self.db.execute(
            select(
                OrderLine.order_id,
                OrderLine.product_id,
                Order.customer_id,
                Order.order_date,
                OrderLine.quantity,
                OrderLine.line_total,
                Payment.method,
                Payment.status,
            )
            .join(Order, Order.id == OrderLine.order_id)
            .join(latest_payment, latest_payment.c.order_id == Order.id)
            .join(Payment, Payment.id == latest_payment.c.payment_id)
            .order_by(OrderLine.order_id, OrderLine.product_id)
        )
        return [
            SourceFact(
                order_id=order_id,
                product_id=product_id,
                customer_id=customer_id,
                order_date=order_date,
                quantity=quantity,
                line_total=to_money(total),
                payment_method=method,
                payment_status=_payment_status_value(status),
            )
            for order_id, product_id, customer_id, order_date, quantity, total, method, status
            in result.all()
        ]

    async def existing_facts(self) -> Dict[FactKey, FactOrderLine]:
        result = await self.db.execute(select(FactOrderLine))
        return {
            (fact.order_id, fact.product_id): fact
            for fact in result.scalars().all()
        }

    async def merge(self) -> MergeResult:
        """
        Bring the fact table up to date and commit.

        Raises:
            MergeError: The merge failed and was rolled back
        """
        try:
            source = await self.source_rows()
            existing = await self.existing_facts()
            diff = diff_facts(source, existing)
            now = datetime.utcnow()

            for row in diff.inserts:
                self.db.add(FactOrderLine(
                    order_id=row.order_id,
                    product_id=row.product_id,
                    customer_id=row.customer_id,
                    order_date=row.order_date,
                    quantity=row.quantity,
                    line_total=row.line_total,
                    payment_method=row.payment_method,
                    payment_status=row.payment_status,
                    created_at=now,
                    last_updated=now,
                ))

            for row in diff.updates:
                fact = existing[row.key]
                for field in changed_fields(row, fact):
                    setattr(fact, field, getattr(row, field))
                fact.last_updated = now

            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MergeError(
                "Fact merge aborted",
                context={"table_name": FactOrderLine.__tablename__},
                original_exception=e
            )

        if diff.stale_keys:
            logger.warning(
                f"{len(diff.stale_keys)} fact rows no longer match any order line; left in place"
            )

        result = MergeResult(
            inserted=len(diff.inserts),
            updated=len(diff.updates),
            unchanged=len(diff.unchanged_keys),
            stale=len(diff.stale_keys),
        )
        logger.info(
            f"Fact merge: {result.inserted} inserted, {result.updated} updated, "
            f"{result.unchanged} unchanged"
        )
        return result
