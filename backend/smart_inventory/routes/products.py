# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/smart_inventory/routes/products.py
"""
Product catalog routes.

Any acting user can read the catalog. Creating, editing and (de)activating
products is reserved to super admins.
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_actor, require_role, error_response
from ..errors import InventoryError, ValidationError
from ..models import ROLE_SUPER_ADMIN
from ..services import products_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_actor
def list_products_route():
    search = request.args.get("search")
    products = products_service.list_products(search)
    return jsonify({"items": [p.to_dict() for p in products]}), 200


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except InventoryError as e:
        return error_response(e)
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("")
@require_actor
@require_role(ROLE_SUPER_ADMIN)
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(payload)
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_actor
@require_role(ROLE_SUPER_ADMIN)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, payload)
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/<int:product_id>/status")
@require_actor
@require_role(ROLE_SUPER_ADMIN)
def set_product_status_route(product_id: int):
    """Body: {"is_active": false}. Inactive products stay in history but cannot be stocked or sold."""
    payload = request.get_json(silent=True) or {}
    try:
        if "is_active" not in payload:
            raise ValidationError("is_active is required", {"field": "is_active"})
        product = products_service.set_product_active(product_id, payload["is_active"])
    except InventoryError as e:
        return error_response(e)

    current_app.logger.info("product %s is_active=%s", product.id, product.is_active)
    return jsonify({"product": product.to_dict()}), 200
