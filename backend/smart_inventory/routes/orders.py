# Overview: Flask API routes for point-of-sale orders.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, error_response
from ..errors import InventoryError, NotFoundError, ValidationError
from ..services import order_service
from ..services.access_service import branch_scope_for, can_access_branch
from ..validation import coerce_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_actor
def create_order_route():
    """
    Create an order and deduct its stock in one transaction.

    Body: {"branch_id": 1, "items": [{"product_id": 1, "quantity": 3}, ...]}
    """
    payload = request.get_json(silent=True) or {}
    try:
        if payload.get("branch_id") is None:
            raise ValidationError("branch_id is required", {"field": "branch_id"})
        order = order_service.create_order(
            coerce_int(payload["branch_id"], "branch_id"),
            g.current_user.id,
            payload.get("items"),
        )
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Order created successfully", "order": order.to_dict()}), 201


@orders_bp.get("/<int:order_id>")
@require_actor
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        if not can_access_branch(g.current_user, order.branch_id):
            # Do not reveal orders of other branches
            raise NotFoundError(f"Order {order_id} not found", {"order_id": order_id})
    except InventoryError as e:
        return error_response(e)

    return jsonify({"order": order.to_dict()}), 200


@orders_bp.get("")
@require_actor
def list_orders_route():
    limit = request.args.get("limit", 50, type=int)
    orders = order_service.list_orders(branch_scope_for(g.current_user), limit=max(1, min(limit, 500)))
    return jsonify({"items": [o.to_dict(include_items=False) for o in orders]}), 200
