from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import InvariantViolation
from ..time_utils import to_utc_z, utcnow
from ..validation import money_str


MOVEMENT_ADD = "add"
MOVEMENT_ADJUST = "adjust"
MOVEMENT_TRANSFER_OUT = "transfer_out"
MOVEMENT_TRANSFER_IN = "transfer_in"

MOVEMENT_TYPES = (MOVEMENT_ADD, MOVEMENT_ADJUST, MOVEMENT_TRANSFER_OUT, MOVEMENT_TRANSFER_IN)


class Product(db.Model):
    """
    Product master data.

    SKU is globally unique. Inactive products stay valid for historical
    orders and movements but are rejected by every stock-mutating and
    order-creating operation.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("tax_percentage >= 0 AND tax_percentage <= 100", name="ck_products_tax_range"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "cost_price": money_str(self.cost_price),
            "sale_price": money_str(self.sale_price),
            "tax_percentage": money_str(self.tax_percentage),
            "is_active": self.is_active,
            "status": "active" if self.is_active else "inactive",
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryRecord(db.Model):
    """
    Live stock count for one (branch, product) pair.

    Exactly one row per pair, created lazily on the first stock addition.
    quantity >= 0 is checked under lock before every decrement and is
    backed by a CHECK constraint.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "product_id", name="uq_inventory_branch_product"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        db.Index("ix_inventory_branch_quantity", "branch_id", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch")
    product = db.relationship("Product")

    def __repr__(self) -> str:
        return f"<InventoryRecord branch_id={self.branch_id} product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self, *, with_names: bool = False) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }
        if with_names:
            data["product"] = {"id": self.product_id, "name": self.product.name if self.product else None}
            data["branch"] = {"id": self.branch_id, "name": self.branch.name if self.branch else None}
        return data


class StockMovement(db.Model):
    """
    Append-only audit row for an inventory quantity change.

    quantity is the signed delta applied to the record: +qty for add and
    transfer_in, -qty for transfer_out, the given delta for adjust. The two
    rows written by a transfer share transfer_ref.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint(
            "type IN ('add', 'adjust', 'transfer_out', 'transfer_in')",
            name="ck_stock_movements_type",
        ),
        db.Index("ix_stock_movements_branch_product_created", "branch_id", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    transfer_ref = db.Column(db.String(32), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    branch = db.relationship("Branch")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "product": {"name": self.product.name if self.product else None},
            "branch": {"name": self.branch.name if self.branch else None},
            "type": self.type,
            "quantity": self.quantity,
            "note": self.note,
            "actor_user_id": self.actor_user_id,
            "transfer_ref": self.transfer_ref,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise InvariantViolation("Stock movements are append-only", {"movement_id": target.id})


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise InvariantViolation("Stock movements are append-only", {"movement_id": target.id})
