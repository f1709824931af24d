# Overview: Stock ledger; owns per-(branch, product) quantities and the movement log.

# backend/smart_inventory/services/inventory_service.py

from __future__ import annotations

from typing import Iterable
from uuid import uuid4

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    InsufficientStock,
    InvariantViolation,
    NotFoundError,
    ProductInactive,
    ValidationError,
)
from ..models import (
    Branch,
    InventoryRecord,
    Product,
    StockMovement,
    MOVEMENT_ADD,
    MOVEMENT_ADJUST,
    MOVEMENT_TRANSFER_IN,
    MOVEMENT_TRANSFER_OUT,
)
from ..validation import MAX_QUANTITY, coerce_int, money_str, require_positive_quantity
from .concurrency import begin_write, lock_for_update, run_with_retry
"""
Stock Ledger Invariants (authoritative)

State:
- One InventoryRecord per (branch, product); created lazily by add/transfer-in.
- quantity >= 0 at all times. It is read only under an exclusive row lock
  and the lock is held until commit or rollback.

Locking:
- Every mutating operation runs inside begin_write() + run_with_retry():
  one transaction, full rollback on any error, Contention after repeated
  lock timeouts.
- Transfers touch two rows; they are locked in (branch_id, product_id)
  order so opposite-direction transfers cannot deadlock.
- Quantity and product checks (missing, inactive) run before begin_write()
  takes any lock; is_active is re-read inside the transaction.
- Stock totals stay within MAX_QUANTITY, the Integer column range.

Audit:
- add, adjust and transfer append StockMovement rows (signed delta) in the
  same transaction. A transfer writes transfer_out (-qty) and transfer_in
  (+qty) sharing one transfer_ref.
- Sale deductions are recorded by the Order/OrderItem rows, not movements.
"""


def _require_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError(f"Branch {branch_id} not found", {"branch_id": branch_id})
    return branch


def _require_product(product_id: int, *, require_active: bool = True, operation: str | None = None) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", {"product_id": product_id})
    if require_active and not product.is_active:
        raise ProductInactive(
            f"Product {product_id} is inactive",
            {"product_id": product_id, "operation": operation},
        )
    return product


def _confirm_product_active(product: Product, *, operation: str) -> None:
    """Re-read is_active inside the write transaction after the lock-free check."""
    db.session.refresh(product)
    if not product.is_active:
        raise ProductInactive(
            f"Product {product.id} is inactive",
            {"product_id": product.id, "operation": operation},
        )


def _check_ceiling(record: InventoryRecord, increment: int, *, operation: str) -> None:
    if record.quantity + increment > MAX_QUANTITY:
        raise ValidationError(
            f"Stock cannot exceed {MAX_QUANTITY} units",
            {
                "operation": operation,
                "branch_id": record.branch_id,
                "product_id": record.product_id,
                "current": record.quantity,
                "requested": increment,
            },
        )


def _lock_record(branch_id: int, product_id: int) -> InventoryRecord | None:
    query = db.session.query(InventoryRecord).filter_by(branch_id=branch_id, product_id=product_id)
    return lock_for_update(query).first()


def _find_or_create_locked(branch_id: int, product_id: int) -> InventoryRecord:
    """
    Locked find-or-create with an initial quantity of 0.

    A concurrent creator hitting uq_inventory_branch_product only rolls back
    the savepoint; the row it lost to is then read under lock.
    """
    record = _lock_record(branch_id, product_id)
    if record is not None:
        return record

    try:
        with db.session.begin_nested():
            record = InventoryRecord(branch_id=branch_id, product_id=product_id, quantity=0)
            db.session.add(record)
    except IntegrityError:
        record = _lock_record(branch_id, product_id)
        if record is None:
            raise
    return record


def _append_movement(
    *,
    branch_id: int,
    product_id: int,
    movement_type: str,
    quantity: int,
    actor_user_id: int | None = None,
    note: str | None = None,
    transfer_ref: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        branch_id=branch_id,
        product_id=product_id,
        type=movement_type,
        quantity=quantity,
        actor_user_id=actor_user_id,
        note=note,
        transfer_ref=transfer_ref,
    )
    db.session.add(movement)
    return movement


def _decrement_locked(branch_id: int, product_id: int, quantity: int, *, operation: str) -> InventoryRecord:
    """Core sale deduction without begin/retry/commit. Caller owns the transaction."""
    record = _lock_record(branch_id, product_id)
    available = record.quantity if record is not None else 0
    if record is None or record.quantity < quantity:
        raise InsufficientStock(
            f"Insufficient stock for product ID: {product_id}",
            {
                "operation": operation,
                "branch_id": branch_id,
                "product_id": product_id,
                "requested": quantity,
                "available": available,
            },
        )
    record.quantity = record.quantity - quantity
    return record


def add_stock(
    branch_id: int,
    product_id: int,
    quantity,
    *,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> InventoryRecord:
    """Increase stock, creating the inventory record on first use."""
    qty = require_positive_quantity(quantity)

    def _op():
        product = _require_product(product_id, operation="add_stock")
        begin_write()
        _require_branch(branch_id)
        _confirm_product_active(product, operation="add_stock")

        record = _find_or_create_locked(branch_id, product_id)
        _check_ceiling(record, qty, operation="add_stock")
        record.quantity = record.quantity + qty

        _append_movement(
            branch_id=branch_id,
            product_id=product_id,
            movement_type=MOVEMENT_ADD,
            quantity=qty,
            actor_user_id=actor_user_id,
            note=note,
        )

        db.session.commit()
        current_app.logger.info(
            "add_stock branch=%s product=%s qty=%s", branch_id, product_id, qty
        )
        return record

    return run_with_retry(_op, operation="add_stock")


def adjust_stock(
    branch_id: int,
    product_id: int,
    delta,
    *,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> InventoryRecord:
    """
    Apply a signed correction (shrinkage, recount, ...) to an existing record.

    Unlike add_stock the record must already exist. A result below zero
    raises InvariantViolation and leaves the record untouched.
    """
    delta = coerce_int(delta, "quantity")
    if delta == 0:
        raise ValidationError("quantity must be non-zero for an adjustment", {"field": "quantity"})

    def _op():
        product = _require_product(product_id, operation="adjust_stock")
        begin_write()
        _require_branch(branch_id)
        _confirm_product_active(product, operation="adjust_stock")

        record = _lock_record(branch_id, product_id)
        if record is None:
            raise NotFoundError(
                "No inventory record found for this product at the selected branch. Please add stock first.",
                {"operation": "adjust_stock", "branch_id": branch_id, "product_id": product_id},
            )

        if delta > 0:
            _check_ceiling(record, delta, operation="adjust_stock")
        new_qty = record.quantity + delta
        if new_qty < 0:
            raise InvariantViolation(
                "Stock cannot go negative",
                {
                    "operation": "adjust_stock",
                    "branch_id": branch_id,
                    "product_id": product_id,
                    "current": record.quantity,
                    "delta": delta,
                },
            )

        record.quantity = new_qty
        _append_movement(
            branch_id=branch_id,
            product_id=product_id,
            movement_type=MOVEMENT_ADJUST,
            quantity=delta,
            actor_user_id=actor_user_id,
            note=note,
        )

        db.session.commit()
        current_app.logger.info(
            "adjust_stock branch=%s product=%s delta=%s", branch_id, product_id, delta
        )
        return record

    return run_with_retry(_op, operation="adjust_stock")


def transfer(
    from_branch_id: int,
    to_branch_id: int,
    product_id: int,
    quantity,
    *,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> tuple[InventoryRecord, InventoryRecord]:
    """
    Move stock between branches as one atomic unit.

    Returns (source_record, destination_record). Either both sides change and
    both movements are logged, or nothing persists.
    """
    qty = require_positive_quantity(quantity)
    if from_branch_id == to_branch_id:
        raise ValidationError(
            "Cannot transfer to the same branch",
            {"from_branch_id": from_branch_id, "to_branch_id": to_branch_id},
        )

    def _op():
        product = _require_product(product_id, operation="transfer")
        begin_write()
        _require_branch(from_branch_id)
        _require_branch(to_branch_id)
        _confirm_product_active(product, operation="transfer")

        source = destination = None
        for branch_id in sorted((from_branch_id, to_branch_id)):
            if branch_id == from_branch_id:
                source = _lock_record(from_branch_id, product_id)
                if source is None:
                    raise NotFoundError(
                        "No inventory record found for this product at the source branch",
                        {"operation": "transfer", "branch_id": from_branch_id, "product_id": product_id},
                    )
            else:
                destination = _find_or_create_locked(to_branch_id, product_id)

        if source.quantity < qty:
            raise InsufficientStock(
                "Not enough stock",
                {
                    "operation": "transfer",
                    "branch_id": from_branch_id,
                    "product_id": product_id,
                    "requested": qty,
                    "available": source.quantity,
                },
            )

        _check_ceiling(destination, qty, operation="transfer")

        source.quantity = source.quantity - qty
        destination.quantity = destination.quantity + qty

        transfer_ref = uuid4().hex
        _append_movement(
            branch_id=from_branch_id,
            product_id=product_id,
            movement_type=MOVEMENT_TRANSFER_OUT,
            quantity=-qty,
            actor_user_id=actor_user_id,
            note=note,
            transfer_ref=transfer_ref,
        )
        _append_movement(
            branch_id=to_branch_id,
            product_id=product_id,
            movement_type=MOVEMENT_TRANSFER_IN,
            quantity=qty,
            actor_user_id=actor_user_id,
            note=note,
            transfer_ref=transfer_ref,
        )

        db.session.commit()
        current_app.logger.info(
            "transfer from=%s to=%s product=%s qty=%s ref=%s",
            from_branch_id, to_branch_id, product_id, qty, transfer_ref,
        )
        return source, destination

    return run_with_retry(_op, operation="transfer")


def decrement_for_sale(branch_id: int, product_id: int, quantity) -> InventoryRecord:
    """
    Lock the record, check availability and deduct quantity.

    Order fulfillment uses the same locked check through _decrement_locked
    inside its own transaction; this standalone form commits on its own.

    Returns the record AFTER the deduction, not a pre-decrement snapshot.
    Callers that want the quantity before the sale add qty back; price
    lookup goes through record.product and is unaffected.
    """
    qty = require_positive_quantity(quantity)

    def _op():
        product = _require_product(product_id, operation="decrement_for_sale")
        begin_write()
        _confirm_product_active(product, operation="decrement_for_sale")
        record = _decrement_locked(branch_id, product_id, qty, operation="decrement_for_sale")
        db.session.commit()
        return record

    return run_with_retry(_op, operation="decrement_for_sale")


def get_inventory_record(branch_id: int, product_id: int) -> InventoryRecord | None:
    return db.session.query(InventoryRecord).filter_by(branch_id=branch_id, product_id=product_id).first()


def get_quantity(branch_id: int, product_id: int) -> int:
    record = get_inventory_record(branch_id, product_id)
    return record.quantity if record is not None else 0


def list_inventory(branch_ids: Iterable[int] | None = None) -> list[InventoryRecord]:
    """All inventory records, optionally restricted to a branch set (None = every branch)."""
    query = db.session.query(InventoryRecord)
    if branch_ids is not None:
        branch_ids = list(branch_ids)
        if not branch_ids:
            return []
        query = query.filter(InventoryRecord.branch_id.in_(branch_ids))
    return query.order_by(InventoryRecord.branch_id.asc(), InventoryRecord.product_id.asc()).all()


def list_branch_products(branch_id: int) -> list[dict]:
    """Products currently in stock (> 0) at a branch, as a sellable listing."""
    rows = (
        db.session.query(InventoryRecord, Product)
        .join(Product, Product.id == InventoryRecord.product_id)
        .filter(InventoryRecord.branch_id == branch_id, InventoryRecord.quantity > 0)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [
        {
            "id": product.id,
            "name": product.name,
            "sale_price": money_str(product.sale_price),
            "tax_percentage": money_str(product.tax_percentage),
            "stock": record.quantity,
            "status": "active" if product.is_active else "inactive",
        }
        for record, product in rows
    ]


def list_movements(
    branch_ids: Iterable[int] | None = None,
    *,
    product_id: int | None = None,
    limit: int = 200,
) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if branch_ids is not None:
        branch_ids = list(branch_ids)
        if not branch_ids:
            return []
        query = query.filter(StockMovement.branch_id.in_(branch_ids))
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)

    return query.order_by(
        StockMovement.created_at.desc(),
        StockMovement.id.desc(),
    ).limit(limit).all()


def inventory_stats(branch_ids: Iterable[int] | None = None, *, threshold: int | None = None) -> dict:
    """Totals across inventory records: volume, low/out-of-stock counts and distinct products."""
    if threshold is None:
        threshold = int(current_app.config.get("LOW_STOCK_THRESHOLD", 10))

    query = db.session.query(
        func.coalesce(func.sum(InventoryRecord.quantity), 0).label("total_volume"),
        func.coalesce(func.sum(case((InventoryRecord.quantity <= threshold, 1), else_=0)), 0).label("low_stock_count"),
        func.coalesce(func.sum(case((InventoryRecord.quantity <= 0, 1), else_=0)), 0).label("out_of_stock_count"),
        func.count(func.distinct(InventoryRecord.product_id)).label("total_skus"),
    )
    if branch_ids is not None:
        branch_ids = list(branch_ids)
        if not branch_ids:
            return {"total_volume": 0, "low_stock_count": 0, "out_of_stock_count": 0, "total_skus": 0}
        query = query.filter(InventoryRecord.branch_id.in_(branch_ids))

    row = query.one()
    return {
        "total_volume": int(row.total_volume or 0),
        "low_stock_count": int(row.low_stock_count or 0),
        "out_of_stock_count": int(row.out_of_stock_count or 0),
        "total_skus": int(row.total_skus or 0),
    }
