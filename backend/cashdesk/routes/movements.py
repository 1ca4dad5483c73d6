# Overview: Flask API routes for cash movements; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import movement_service
from ..validation import CashRegisterError, TransientPersistenceError, ValidationError, require_json_object
from ..decorators import require_auth
from .responses import error_response, range_args, transient_error_response, with_retry


movements_bp = Blueprint("movements", __name__, url_prefix="/api/cash-movements")


@movements_bp.post("/")
@movements_bp.post("")
@require_auth
def record_movement_route():
    """
    Record a cash in/out on the store's open register.

    Request body:
    {
        "kind": "EXPENSE",
        "amount_cents": -20000,  // signed: + in, - out
        "linked_payment_id": 12,  (optional, cash payments only)
        "note": "Cleaning supplies"  (optional)
    }

    Returns 409 when no register is open or the payment is already linked.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        for field in ("kind", "amount_cents"):
            if field not in data:
                raise ValidationError(f"{field} required", {"field": field})

        linked_payment_id = data.get("linked_payment_id")
        if linked_payment_id is not None and (
            isinstance(linked_payment_id, bool) or not isinstance(linked_payment_id, int)
        ):
            raise ValidationError("linked_payment_id must be an integer", {"field": "linked_payment_id"})

        movement = with_retry(lambda: movement_service.record_movement(
            store_id=g.store_id,
            user_id=g.current_user.id,
            kind=data["kind"],
            amount_cents=data["amount_cents"],
            linked_payment_id=linked_payment_id,
            note=data.get("note"),
        ))

        return jsonify({"movement": movement.to_dict()}), 201

    except CashRegisterError as e:
        return error_response(e)
    except TransientPersistenceError as e:
        return transient_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record cash movement")
        return jsonify({"error": "Internal server error"}), 500


@movements_bp.get("/")
@movements_bp.get("")
@require_auth
def list_store_movements_route():
    """
    Cash movements across all of the store's sessions, newest first.

    Query params (optional):
        start, end: ISO-8601 dates/datetimes, inclusive
        direction: IN or OUT
    """
    try:
        start, end = range_args(request.args)
        movements = movement_service.list_store_movements(
            g.store_id, start=start, end=end, direction=request.args.get("direction"),
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except CashRegisterError as e:
        return error_response(e)
