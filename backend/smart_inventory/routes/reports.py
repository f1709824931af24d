from flask import Blueprint, jsonify, request, g

from ..decorators import require_actor, error_response
from ..errors import InventoryError
from ..services import reporting_service
from ..services.access_service import branch_scope_for, can_access_branch


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_actor
def summary_report():
    top = request.args.get("top", type=int)
    report = reporting_service.summary_report(branch_scope_for(g.current_user), top_limit=top)
    return jsonify(report), 200


@reports_bp.get("/branches/<int:branch_id>")
@require_actor
def branch_report(branch_id: int):
    if not can_access_branch(g.current_user, branch_id):
        return jsonify({"error": "Access denied. You can only view reports for your own branch."}), 403

    top = request.args.get("top", type=int)
    try:
        report = reporting_service.branch_report(branch_id, top_limit=top)
    except InventoryError as exc:
        return error_response(exc)
    return jsonify(report), 200
