# backend/smart_inventory/routes/inventory.py
"""
Stock ledger routes.

Mutations (add/adjust/transfer) each run as one transaction in the
inventory service. Listings are scoped to the branches the acting user
can see.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, error_response
from ..errors import InventoryError, ValidationError
from ..services import inventory_service
from ..services.access_service import branch_scope_for
from ..validation import coerce_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _required_int(payload: dict, field: str) -> int:
    if payload.get(field) is None:
        raise ValidationError(f"{field} is required", {"field": field})
    return coerce_int(payload[field], field)


@inventory_bp.post("/add")
@require_actor
def add_stock_route():
    payload = request.get_json(silent=True) or {}
    try:
        record = inventory_service.add_stock(
            _required_int(payload, "branch_id"),
            _required_int(payload, "product_id"),
            payload.get("quantity"),
            actor_user_id=g.current_user.id,
            note=payload.get("note"),
        )
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"inventory": record.to_dict()}), 201


@inventory_bp.post("/adjust")
@require_actor
def adjust_stock_route():
    payload = request.get_json(silent=True) or {}
    try:
        record = inventory_service.adjust_stock(
            _required_int(payload, "branch_id"),
            _required_int(payload, "product_id"),
            _required_int(payload, "quantity"),
            actor_user_id=g.current_user.id,
            note=payload.get("note"),
        )
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"inventory": record.to_dict()}), 200


@inventory_bp.post("/transfer")
@require_actor
def transfer_route():
    payload = request.get_json(silent=True) or {}
    try:
        source, destination = inventory_service.transfer(
            _required_int(payload, "from_branch_id"),
            _required_int(payload, "to_branch_id"),
            _required_int(payload, "product_id"),
            payload.get("quantity"),
            actor_user_id=g.current_user.id,
            note=payload.get("note"),
        )
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to transfer stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "message": "Stock transferred successfully",
        "source": source.to_dict(),
        "destination": destination.to_dict(),
    }), 200


@inventory_bp.get("")
@require_actor
def list_inventory_route():
    records = inventory_service.list_inventory(branch_scope_for(g.current_user))
    return jsonify({"items": [r.to_dict(with_names=True) for r in records]}), 200


@inventory_bp.get("/history")
@require_actor
def history_route():
    limit = request.args.get("limit", 200, type=int)
    product_id = request.args.get("product_id", type=int)
    movements = inventory_service.list_movements(
        branch_scope_for(g.current_user),
        product_id=product_id,
        limit=max(1, min(limit, 1000)),
    )
    return jsonify({"items": [m.to_dict() for m in movements]}), 200


@inventory_bp.get("/stats")
@require_actor
def stats_route():
    return jsonify(inventory_service.inventory_stats(branch_scope_for(g.current_user))), 200


@inventory_bp.get("/branches/<int:branch_id>/products")
@require_actor
def branch_products_route(branch_id: int):
    return jsonify({"items": inventory_service.list_branch_products(branch_id)}), 200
