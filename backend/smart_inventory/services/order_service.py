"""
Order fulfillment: atomic conversion of a multi-line cart into stock
deductions plus a priced order.

WHY one transaction: every line's inventory row stays locked from its
availability check until commit, so a failure on a later line leaves no
order, no items and no deducted stock behind.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Order, OrderItem, User
from ..validation import MAX_PRICE, parse_order_lines, to_money
from .concurrency import begin_write, run_with_retry
from .inventory_service import _confirm_product_active, _decrement_locked, _require_branch, _require_product


HUNDRED = Decimal("100")


def price_line(sale_price, tax_percentage, quantity: int) -> tuple[Decimal, Decimal]:
    """
    Line price = unit price x qty; line tax = price x tax% / 100.

    Tax is rounded half-up to cents per line before being summed.
    """
    line_price = to_money(to_money(sale_price) * quantity)
    line_tax = to_money(line_price * to_money(tax_percentage) / HUNDRED)
    return line_price, line_tax


def create_order(branch_id: int, user_id: int, lines) -> Order:
    """
    Create an order at a branch for the acting user.

    lines: iterable of {"product_id", "quantity"} dicts or (product_id, qty)
    pairs. Duplicate products are independent lines, checked and deducted
    one after the other.

    Raises:
        ValidationError: empty lines or a non-positive quantity, or a total
            past what Numeric(12, 2) holds
        NotFoundError: unknown branch, user or product
        ProductInactive: a line references an inactive product
        InsufficientStock: a line exceeds the stock left at the branch
        Contention: the inventory lock could not be acquired
    """
    parsed = parse_order_lines(lines)

    def _op():
        # Missing and inactive products fail before any lock is taken
        products = {
            product_id: _require_product(product_id, operation="create_order")
            for product_id, _ in parsed
        }

        begin_write()
        _require_branch(branch_id)
        if db.session.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found", {"user_id": user_id})

        subtotal = Decimal("0.00")
        tax_total = Decimal("0.00")
        items: list[OrderItem] = []

        for product_id, quantity in parsed:
            product = products[product_id]
            _confirm_product_active(product, operation="create_order")
            _decrement_locked(branch_id, product_id, quantity, operation="create_order")

            line_price, line_tax = price_line(product.sale_price, product.tax_percentage, quantity)
            subtotal += line_price
            tax_total += line_tax

            items.append(OrderItem(
                product_id=product.id,
                quantity=quantity,
                price=to_money(product.sale_price),
                tax=line_tax,
            ))

        if subtotal + tax_total > MAX_PRICE:
            raise ValidationError(
                f"Order total cannot exceed {MAX_PRICE}",
                {"operation": "create_order", "branch_id": branch_id},
            )

        order = Order(
            branch_id=branch_id,
            user_id=user_id,
            subtotal=to_money(subtotal),
            tax=to_money(tax_total),
            total=to_money(subtotal + tax_total),
        )
        order.items = items
        db.session.add(order)

        db.session.commit()
        current_app.logger.info(
            "create_order id=%s branch=%s user=%s lines=%d total=%s",
            order.id, branch_id, user_id, len(items), order.total,
        )
        return order

    return run_with_retry(_op, operation="create_order")


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", {"order_id": order_id})
    return order


def list_orders(branch_ids: Iterable[int] | None = None, *, limit: int = 50) -> list[Order]:
    query = db.session.query(Order)
    if branch_ids is not None:
        branch_ids = list(branch_ids)
        if not branch_ids:
            return []
        query = query.filter(Order.branch_id.in_(branch_ids))
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
