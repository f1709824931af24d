# backend/smart_inventory/services/products_service.py
"""
Product catalog writes needed by the stock core.

SKU is unique across the catalog; prices are non-negative and
tax_percentage lies in 0..100. Deactivating a product keeps it valid for
history but blocks every stock mutation and sale.
"""
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Product
from ..validation import enforce_rules_product
from .concurrency import lock_for_update, run_with_retry

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "cost_price", "sale_price", "tax_percentage", "is_active"}
PRODUCT_REQUIRED_FIELDS = {"name", "sku", "sale_price"}


def _clean_patch(patch: dict | None, *, partial: bool) -> dict:
    if patch is None:
        patch = {}
    if not isinstance(patch, dict):
        raise ValidationError("Invalid product payload")

    unknown = sorted(k for k in patch if k not in PRODUCT_MUTABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", {"fields": unknown})

    if not partial:
        missing = sorted(f for f in PRODUCT_REQUIRED_FIELDS if f not in patch)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", {"fields": missing})

    cleaned = dict(patch)
    enforce_rules_product(cleaned)
    return cleaned


def _ensure_sku_free(sku: str, *, exclude_product_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_product_id is not None:
        query = query.filter(Product.id != exclude_product_id)
    if query.first() is not None:
        raise ConflictError(f"SKU {sku!r} already exists", {"sku": sku})


def _commit_catalog_write(sku: str | None) -> None:
    """Commit; a concurrent insert that won uq_products_sku surfaces as ConflictError."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if "sku" in str(exc.orig).lower():
            raise ConflictError(f"SKU {sku!r} already exists", {"sku": sku}) from exc
        raise


def create_product(patch: dict) -> Product:
    cleaned = _clean_patch(patch, partial=False)

    def _op():
        _ensure_sku_free(cleaned["sku"])
        product = Product(**cleaned)
        db.session.add(product)
        _commit_catalog_write(cleaned["sku"])
        return product

    return run_with_retry(_op, operation="create_product")


def update_product(product_id: int, patch: dict) -> Product:
    cleaned = _clean_patch(patch, partial=True)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", {"product_id": product_id})

        if "sku" in cleaned and cleaned["sku"] != product.sku:
            _ensure_sku_free(cleaned["sku"], exclude_product_id=product_id)

        for key, value in cleaned.items():
            setattr(product, key, value)

        _commit_catalog_write(cleaned.get("sku"))
        return product

    return run_with_retry(_op, operation="update_product")


def set_product_active(product_id: int, is_active: bool) -> Product:
    return update_product(product_id, {"is_active": is_active})


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", {"product_id": product_id})
    return product


def list_products(search: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()
