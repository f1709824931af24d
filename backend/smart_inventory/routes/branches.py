# Overview: Flask API routes for branches and their manager assignment.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_role, error_response
from ..errors import InventoryError, NotFoundError
from ..models import ROLE_SUPER_ADMIN
from ..services import branch_service
from ..services.access_service import branch_scope_for, can_access_branch
from ..validation import coerce_int


branches_bp = Blueprint("branches", __name__, url_prefix="/api/branches")


@branches_bp.get("")
@require_actor
def list_branches_route():
    scope = branch_scope_for(g.current_user)
    branches = [branch_service.get_branch(branch_id) for branch_id in scope]
    return jsonify({"items": [b.to_dict() for b in branches if b is not None]}), 200


@branches_bp.get("/<int:branch_id>")
@require_actor
def get_branch_route(branch_id: int):
    branch = branch_service.get_branch(branch_id)
    if branch is None or not can_access_branch(g.current_user, branch_id):
        return error_response(NotFoundError(f"Branch {branch_id} not found", {"branch_id": branch_id}))
    return jsonify({"branch": branch.to_dict()}), 200


@branches_bp.post("")
@require_actor
@require_role(ROLE_SUPER_ADMIN)
def create_branch_route():
    payload = request.get_json(silent=True) or {}
    try:
        manager_id = payload.get("manager_id")
        branch = branch_service.create_branch(
            payload.get("name"),
            payload.get("address"),
            manager_id=coerce_int(manager_id, "manager_id") if manager_id is not None else None,
        )
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create branch")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"branch": branch.to_dict()}), 201


@branches_bp.put("/<int:branch_id>/manager")
@require_actor
@require_role(ROLE_SUPER_ADMIN)
def assign_manager_route(branch_id: int):
    """Body: {"manager_id": 3}, or {"manager_id": null} to clear."""
    payload = request.get_json(silent=True) or {}
    try:
        manager_id = payload.get("manager_id")
        branch = branch_service.assign_manager(
            branch_id,
            coerce_int(manager_id, "manager_id") if manager_id is not None else None,
        )
    except InventoryError as e:
        return error_response(e)

    return jsonify({"branch": branch.to_dict()}), 200
