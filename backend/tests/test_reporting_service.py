# Overview: Reporting rollups over orders and inventory, with a pinned clock.

from datetime import datetime
from decimal import Decimal

import pytest

from smart_inventory.errors import NotFoundError
from smart_inventory.models import Order, OrderItem
from smart_inventory.services import order_service, reporting_service


NOW = datetime(2026, 10, 19, 15, 30)


@pytest.fixture
def record_order(db_session, seller):
    """Insert a historical order with a fixed timestamp."""
    def _record(branch, total, created_at, lines=()):
        order = Order(
            branch_id=branch.id,
            user_id=seller.id,
            subtotal=Decimal(total),
            tax=Decimal("0.00"),
            total=Decimal(total),
            created_at=created_at,
        )
        for product, qty in lines:
            order.items.append(OrderItem(
                product_id=product.id,
                quantity=qty,
                price=product.sale_price,
                tax=Decimal("0.00"),
            ))
        db_session.add(order)
        db_session.commit()
        return order

    return _record


def test_sales_windows(db_session, branch_a, branch_b, record_order):
    record_order(branch_a, "10.00", datetime(2026, 10, 19, 0, 0))
    record_order(branch_a, "5.50", datetime(2026, 10, 19, 23, 59))
    record_order(branch_a, "7.00", datetime(2026, 10, 18, 23, 59))
    record_order(branch_a, "100.00", datetime(2026, 9, 30, 12, 0))
    record_order(branch_b, "3.00", datetime(2026, 10, 19, 9, 0))

    scope = [branch_a.id]
    assert reporting_service.today_sales(scope, now=NOW) == Decimal("15.50")
    assert reporting_service.monthly_sales(scope, now=NOW) == Decimal("22.50")
    assert reporting_service.total_orders(scope) == 4

    both = [branch_a.id, branch_b.id]
    assert reporting_service.today_sales(both, now=NOW) == Decimal("18.50")
    assert reporting_service.total_orders(both) == 5


def test_empty_scope_yields_zeroes(db_session, branch_a, record_order):
    record_order(branch_a, "10.00", NOW)

    assert reporting_service.today_sales([], now=NOW) == Decimal("0.00")
    assert reporting_service.monthly_sales([], now=NOW) == Decimal("0.00")
    assert reporting_service.total_orders([]) == 0
    assert reporting_service.top_products([]) == []
    assert reporting_service.low_stock([]) == []


def test_top_products_ranked_by_quantity(db_session, branch_a, branch_b, make_product, record_order):
    apple = make_product(name="Apple")
    pear = make_product(name="Pear")
    plum = make_product(name="Plum")

    record_order(branch_a, "1.00", NOW, lines=[(apple, 2), (pear, 5)])
    record_order(branch_a, "1.00", NOW, lines=[(apple, 4), (plum, 1)])
    record_order(branch_b, "1.00", NOW, lines=[(plum, 50)])

    top = reporting_service.top_products([branch_a.id])
    assert top == [
        {"product_id": apple.id, "name": "Apple", "total_sold": 6},
        {"product_id": pear.id, "name": "Pear", "total_sold": 5},
        {"product_id": plum.id, "name": "Plum", "total_sold": 1},
    ]

    assert [row["product_id"] for row in reporting_service.top_products([branch_a.id], limit=1)] == [apple.id]
    assert reporting_service.top_products([branch_a.id, branch_b.id])[0]["name"] == "Plum"


def test_top_products_default_limit(app, db_session, branch_a, make_product, record_order):
    products = [make_product() for _ in range(7)]
    record_order(branch_a, "1.00", NOW, lines=[(p, i + 1) for i, p in enumerate(products)])

    top = reporting_service.top_products([branch_a.id])

    assert len(top) == app.config["TOP_PRODUCTS_LIMIT"] == 5
    assert top[0]["product_id"] == products[-1].id


def test_low_stock_threshold_is_inclusive(db_session, branch_a, branch_b, make_product, set_stock):
    p1, p2, p3 = make_product(name="Bolt"), make_product(name="Nut"), make_product(name="Gear")
    set_stock(branch_a, p1, 10)
    set_stock(branch_a, p2, 11)
    set_stock(branch_a, p3, 0)
    set_stock(branch_b, p2, 3)

    rows = reporting_service.low_stock([branch_a.id])

    assert [(r["product_name"], r["quantity"]) for r in rows] == [("Gear", 0), ("Bolt", 10)]
    assert rows[0]["branch_name"] == "Main Street"

    assert len(reporting_service.low_stock([branch_a.id, branch_b.id])) == 3
    assert reporting_service.low_stock([branch_a.id], threshold=0)[0]["product_id"] == p3.id


def test_summary_report_shape(db_session, branch_a, seller, product, set_stock):
    set_stock(branch_a, product, 12)
    order_service.create_order(branch_a.id, seller.id, [(product.id, 3)])

    report = reporting_service.summary_report([branch_a.id])

    assert report["branch_ids"] == [branch_a.id]
    assert report["today_sales"] == "66.00"
    assert report["monthly_sales"] == "66.00"
    assert report["total_orders"] == 1
    assert report["top_products"] == [{"product_id": product.id, "name": "Widget", "total_sold": 3}]
    assert [row["quantity"] for row in report["low_stock"]] == [9]


def test_branch_report(db_session, branch_a, branch_b, record_order):
    record_order(branch_a, "4.00", NOW)
    record_order(branch_b, "6.00", NOW)

    report = reporting_service.branch_report(branch_b.id, now=NOW)
    assert report["branch_ids"] == [branch_b.id]
    assert report["today_sales"] == "6.00"
    assert report["total_orders"] == 1

    with pytest.raises(NotFoundError):
        reporting_service.branch_report(99999)
