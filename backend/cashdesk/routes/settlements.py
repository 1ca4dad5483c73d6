# Overview: Flask API routes for settlements and variance follow-up.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import settlement_service
from ..validation import CashRegisterError, require_json_object
from ..decorators import require_auth
from .responses import error_response, range_args


settlements_bp = Blueprint("settlements", __name__, url_prefix="/api/settlements")


@settlements_bp.get("/")
@settlements_bp.get("")
@require_auth
def list_settlements_route():
    """
    Settlements for the caller's store, newest first.

    Query params:
        start, end: ISO-8601 datetimes, inclusive (optional)
    """
    try:
        start, end = range_args(request.args)
        records = settlement_service.list_settlements(g.store_id, start=start, end=end)
        return jsonify({"settlements": [r.to_dict() for r in records]}), 200
    except CashRegisterError as e:
        return error_response(e)


@settlements_bp.get("/<int:settlement_id>")
@require_auth
def get_settlement_route(settlement_id: int):
    try:
        record = settlement_service.get_settlement(g.store_id, settlement_id)
        return jsonify({"settlement": record.to_dict()}), 200
    except CashRegisterError as e:
        return error_response(e)


@settlements_bp.post("/variances/<int:variance_id>/investigation")
@require_auth
def update_variance_route(variance_id: int):
    """
    Move a variance through its investigation.

    Request body:
    {
        "status": "RESOLVED",  // INVESTIGATING, RESOLVED, WRITTEN_OFF
        "notes": "Miscounted change"  (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        variance = settlement_service.update_variance_investigation(
            store_id=g.store_id,
            variance_id=variance_id,
            user_id=g.current_user.id,
            status=data.get("status"),
            notes=data.get("notes"),
        )
        return jsonify({"variance": variance.to_dict()}), 200
    except CashRegisterError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update variance investigation")
        return jsonify({"error": "Internal server error"}), 500
