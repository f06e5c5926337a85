"""
Derived fact read endpoint
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from schemas.api import FactResponse, Page, PaginationMetadata
from models.fact import FactOrderLine
from typing import Optional
from datetime import date, datetime
import math

router = APIRouter(prefix="/facts", tags=["Facts"])


@router.get("", response_model=Page[FactResponse])
async def list_facts(
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    customer_id: Optional[int] = Query(None),
    order_date_from: Optional[date] = Query(None),
    order_date_to: Optional[date] = Query(None),
    updated_since: Optional[datetime] = Query(None, description="Facts changed at or after"),
    db: AsyncSession = Depends(get_db)
):
    filters = []
    if customer_id is not None:
        filters.append(FactOrderLine.customer_id == customer_id)
    if order_date_from:
        filters.append(FactOrderLine.order_date >= order_date_from)
    if order_date_to:
        filters.append(FactOrderLine.order_date <= order_date_to)
    if updated_since:
        filters.append(FactOrderLine.last_updated >= updated_since)
    
    total = (await db.execute(
        select(func.count()).select_from(FactOrderLine).where(*filters)
    )).scalar() or 0
    
    result = await db.execute(
        select(FactOrderLine)
        .where(*filters)
        .order_by(FactOrderLine.order_id, FactOrderLine.product_id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    
    total_pages = math.ceil(total / page_size) if total else 0
    return Page[FactResponse](
        data=[FactResponse.model_validate(fact) for fact in result.scalars().all()],
        pagination=PaginationMetadata(
            page=page,
            page_size=page_size,
            total_items=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1
        )
    )
