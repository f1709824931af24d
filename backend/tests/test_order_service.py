"""
Order fulfillment tests.

An order either commits with every line priced and every line's stock
deducted, or it leaves no trace at all.
"""

from decimal import Decimal

import pytest

from smart_inventory.errors import InsufficientStock, NotFoundError, ProductInactive, ValidationError
from smart_inventory.models import Order, OrderItem, StockMovement
from smart_inventory.services import inventory_service, order_service


def test_price_line_rounds_tax_per_line():
    assert order_service.price_line(Decimal("20.00"), Decimal("10"), 3) == (Decimal("60.00"), Decimal("6.00"))
    # 3 x 3.33 = 9.99; 9.99 x 7.5% = 0.74925 -> 0.75
    assert order_service.price_line("3.33", "7.5", 3) == (Decimal("9.99"), Decimal("0.75"))
    assert order_service.price_line("5.00", "0", 2) == (Decimal("10.00"), Decimal("0.00"))


def test_create_order_prices_and_deducts(db_session, branch_a, seller, product, set_stock):
    set_stock(branch_a, product, 5)

    order = order_service.create_order(branch_a.id, seller.id, [{"product_id": product.id, "quantity": 3}])

    assert order.subtotal == Decimal("60.00")
    assert order.tax == Decimal("6.00")
    assert order.total == Decimal("66.00")
    assert order.branch_id == branch_a.id
    assert order.user_id == seller.id

    assert len(order.items) == 1
    item = order.items[0]
    assert item.product_id == product.id
    assert item.quantity == 3
    assert item.price == Decimal("20.00")
    assert item.tax == Decimal("6.00")

    assert inventory_service.get_quantity(branch_a.id, product.id) == 2
    assert db_session.query(StockMovement).count() == 0


def test_insufficient_stock_creates_nothing(db_session, branch_a, seller, product, set_stock):
    set_stock(branch_a, product, 2)

    with pytest.raises(InsufficientStock) as exc_info:
        order_service.create_order(branch_a.id, seller.id, [{"product_id": product.id, "quantity": 3}])

    assert str(exc_info.value) == f"Insufficient stock for product ID: {product.id}"
    assert exc_info.value.details["available"] == 2
    assert inventory_service.get_quantity(branch_a.id, product.id) == 2
    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0


def test_multi_line_failure_rolls_back_earlier_lines(db_session, branch_a, seller, make_product, set_stock):
    first = make_product(sale_price="5.00")
    second = make_product(sale_price="7.00")
    set_stock(branch_a, first, 10)
    set_stock(branch_a, second, 1)

    with pytest.raises(InsufficientStock):
        order_service.create_order(branch_a.id, seller.id, [
            {"product_id": first.id, "quantity": 4},
            {"product_id": second.id, "quantity": 2},
        ])

    assert inventory_service.get_quantity(branch_a.id, first.id) == 10
    assert inventory_service.get_quantity(branch_a.id, second.id) == 1
    assert db_session.query(Order).count() == 0


def test_multi_line_totals(db_session, branch_a, seller, make_product, set_stock):
    first = make_product(sale_price="5.00", tax_percentage="0")
    second = make_product(sale_price="12.50", tax_percentage="8")
    set_stock(branch_a, first, 10)
    set_stock(branch_a, second, 10)

    order = order_service.create_order(branch_a.id, seller.id, [(first.id, 2), (second.id, 3)])

    # 10.00 + 37.50; tax 0.00 + 3.00
    assert order.subtotal == Decimal("47.50")
    assert order.tax == Decimal("3.00")
    assert order.total == Decimal("50.50")
    assert [item.product_id for item in order.items] == [first.id, second.id]


def test_duplicate_lines_deduct_in_sequence(db_session, branch_a, seller, product, set_stock):
    set_stock(branch_a, product, 5)

    order = order_service.create_order(branch_a.id, seller.id, [
        {"product_id": product.id, "quantity": 2},
        {"product_id": product.id, "quantity": 3},
    ])
    assert len(order.items) == 2
    assert inventory_service.get_quantity(branch_a.id, product.id) == 0

    restocked = inventory_service.add_stock(branch_a.id, product.id, 4)
    assert restocked.quantity == 4

    # Combined demand 5 exceeds 4 even though each line fits on its own
    with pytest.raises(InsufficientStock):
        order_service.create_order(branch_a.id, seller.id, [
            {"product_id": product.id, "quantity": 3},
            {"product_id": product.id, "quantity": 2},
        ])
    assert inventory_service.get_quantity(branch_a.id, product.id) == 4


@pytest.mark.parametrize("lines", [
    [],
    None,
    [{"product_id": 1}],
    [{"product_id": 1, "quantity": 0}],
    [{"product_id": 1, "quantity": -2}],
    ["bogus"],
])
def test_invalid_lines_rejected(db_session, branch_a, seller, lines):
    with pytest.raises(ValidationError):
        order_service.create_order(branch_a.id, seller.id, lines)

    assert db_session.query(Order).count() == 0


def test_inactive_product_rejected(db_session, branch_a, seller, make_product, set_stock):
    inactive = make_product(is_active=False)
    set_stock(branch_a, inactive, 5)

    with pytest.raises(ProductInactive):
        order_service.create_order(branch_a.id, seller.id, [(inactive.id, 1)])

    assert inventory_service.get_quantity(branch_a.id, inactive.id) == 5


def test_unknown_references(db_session, branch_a, seller, product, set_stock):
    set_stock(branch_a, product, 5)

    with pytest.raises(NotFoundError):
        order_service.create_order(99999, seller.id, [(product.id, 1)])
    with pytest.raises(NotFoundError):
        order_service.create_order(branch_a.id, 99999, [(product.id, 1)])
    with pytest.raises(NotFoundError):
        order_service.create_order(branch_a.id, seller.id, [(99999, 1)])

    assert inventory_service.get_quantity(branch_a.id, product.id) == 5


def test_product_without_stock_at_branch(db_session, branch_a, branch_b, seller, product, set_stock):
    set_stock(branch_b, product, 5)

    with pytest.raises(InsufficientStock):
        order_service.create_order(branch_a.id, seller.id, [(product.id, 1)])


def test_get_and_list_orders(db_session, branch_a, branch_b, seller, product, set_stock):
    set_stock(branch_a, product, 10)
    set_stock(branch_b, product, 10)

    first = order_service.create_order(branch_a.id, seller.id, [(product.id, 1)])
    second = order_service.create_order(branch_b.id, seller.id, [(product.id, 2)])

    assert order_service.get_order(first.id).id == first.id
    with pytest.raises(NotFoundError):
        order_service.get_order(99999)

    assert [o.id for o in order_service.list_orders()] == [second.id, first.id]
    assert [o.id for o in order_service.list_orders([branch_a.id])] == [first.id]
    assert order_service.list_orders([]) == []

    payload = second.to_dict()
    assert payload["total"] == "44.00"
    assert payload["items"][0]["quantity"] == 2


def test_oversized_line_quantity_rejected(db_session, branch_a, seller, product, set_stock):
    set_stock(branch_a, product, 5)

    with pytest.raises(ValidationError):
        order_service.create_order(branch_a.id, seller.id, [(product.id, 2**63)])

    assert inventory_service.get_quantity(branch_a.id, product.id) == 5


def test_total_past_money_column_rejected(db_session, branch_a, seller, make_product, set_stock):
    pricey = make_product(sale_price="9999999999.99", tax_percentage="0")
    set_stock(branch_a, pricey, 2)

    with pytest.raises(ValidationError):
        order_service.create_order(branch_a.id, seller.id, [(pricey.id, 2)])

    assert inventory_service.get_quantity(branch_a.id, pricey.id) == 2
    assert db_session.query(Order).count() == 0
