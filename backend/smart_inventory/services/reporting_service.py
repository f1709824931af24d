# Overview: Read-only sales and stock rollups scoped to a caller-supplied branch set.

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Branch, InventoryRecord, Order, OrderItem, Product
from ..time_utils import start_of_day, start_of_month, utcnow
from ..validation import to_money
from .inventory_service import _require_branch
"""
Reporting never locks rows and never joins a write transaction. Reads see
the latest committed state; in-flight writes may be missed.

Calendar boundaries ("today", "this month") are computed in UTC, the same
clock used for Order.created_at.
"""


def _branch_list(branch_ids: Iterable[int]) -> list[int]:
    return [int(b) for b in branch_ids]


def _sum_totals(branch_ids: list[int], start: datetime, end: datetime | None = None) -> Decimal:
    if not branch_ids:
        return to_money(0)
    query = db.session.query(func.coalesce(func.sum(Order.total), 0)).filter(
        Order.branch_id.in_(branch_ids),
        Order.created_at >= start,
    )
    if end is not None:
        query = query.filter(Order.created_at < end)
    return to_money(query.scalar())


def today_sales(branch_ids: Iterable[int], *, now: datetime | None = None) -> Decimal:
    day_start = start_of_day(now)
    return _sum_totals(_branch_list(branch_ids), day_start, day_start + timedelta(days=1))


def monthly_sales(branch_ids: Iterable[int], *, now: datetime | None = None) -> Decimal:
    return _sum_totals(_branch_list(branch_ids), start_of_month(now))


def total_orders(branch_ids: Iterable[int]) -> int:
    branch_ids = _branch_list(branch_ids)
    if not branch_ids:
        return 0
    return int(
        db.session.query(func.count(Order.id)).filter(Order.branch_id.in_(branch_ids)).scalar() or 0
    )


def top_products(branch_ids: Iterable[int], *, limit: int | None = None) -> list[dict]:
    """Top-N products by cumulative quantity sold across the branch set."""
    if limit is None:
        limit = int(current_app.config.get("TOP_PRODUCTS_LIMIT", 5))
    branch_ids = _branch_list(branch_ids)
    if not branch_ids or limit <= 0:
        return []

    total_sold = func.sum(OrderItem.quantity).label("total_sold")
    rows = (
        db.session.query(Product.id, Product.name, total_sold)
        .join(Order, Order.id == OrderItem.order_id)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(Order.branch_id.in_(branch_ids))
        .group_by(Product.id, Product.name)
        .order_by(total_sold.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"product_id": row.id, "name": row.name, "total_sold": int(row.total_sold or 0)}
        for row in rows
    ]


def low_stock(branch_ids: Iterable[int], *, threshold: int | None = None) -> list[dict]:
    """Inventory records at or below the threshold, with product and branch names."""
    if threshold is None:
        threshold = int(current_app.config.get("LOW_STOCK_THRESHOLD", 10))
    branch_ids = _branch_list(branch_ids)
    if not branch_ids:
        return []

    rows = (
        db.session.query(InventoryRecord, Product.name, Branch.name)
        .join(Product, Product.id == InventoryRecord.product_id)
        .join(Branch, Branch.id == InventoryRecord.branch_id)
        .filter(
            InventoryRecord.branch_id.in_(branch_ids),
            InventoryRecord.quantity <= threshold,
        )
        .order_by(InventoryRecord.quantity.asc(), InventoryRecord.id.asc())
        .all()
    )
    return [
        {
            "id": record.id,
            "branch_id": record.branch_id,
            "branch_name": branch_name,
            "product_id": record.product_id,
            "product_name": product_name,
            "quantity": record.quantity,
        }
        for record, product_name, branch_name in rows
    ]


def summary_report(branch_ids: Iterable[int], *, now: datetime | None = None, top_limit: int | None = None) -> dict:
    branch_ids = _branch_list(branch_ids)
    now = now or utcnow()
    return {
        "branch_ids": branch_ids,
        "today_sales": str(today_sales(branch_ids, now=now)),
        "monthly_sales": str(monthly_sales(branch_ids, now=now)),
        "total_orders": total_orders(branch_ids),
        "top_products": top_products(branch_ids, limit=top_limit),
        "low_stock": low_stock(branch_ids),
    }


def branch_report(branch_id: int, *, now: datetime | None = None, top_limit: int | None = None) -> dict:
    _require_branch(branch_id)
    return summary_report([branch_id], now=now, top_limit=top_limit)
