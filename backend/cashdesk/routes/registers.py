# Overview: Flask API routes for cash register sessions; parses input and returns JSON responses.

# backend/cashdesk/routes/registers.py
"""
Cash Register API Routes

Session lifecycle: open -> record movements -> close (immutable once closed).

SECURITY:
- Every route requires a bearer token
- The store always comes from the token; sessions of other stores are 403
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import register_service, movement_service
from ..validation import CashRegisterError, TransientPersistenceError, ValidationError, require_json_object
from ..decorators import require_auth
from .responses import error_response, transient_error_response, store_access_denied, with_retry


registers_bp = Blueprint("registers", __name__, url_prefix="/api/cash-registers")


def _load_scoped_session(session_id: int):
    session = register_service.get_session(session_id)
    if session.store_id != g.store_id:
        return None
    return session


@registers_bp.post("/open")
@require_auth
def open_register_route():
    """
    Open the store's cash register.

    Request body:
    {
        "starting_balance_cents": 100000  // Float placed in drawer
    }

    Returns 409 if the store already has an open register.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        if "starting_balance_cents" not in data:
            raise ValidationError("starting_balance_cents required", {"field": "starting_balance_cents"})

        session = with_retry(lambda: register_service.open_register(
            store_id=g.store_id,
            user_id=g.current_user.id,
            starting_balance_cents=data["starting_balance_cents"],
        ))

        return jsonify({"session": session.to_dict()}), 201

    except CashRegisterError as e:
        return error_response(e)
    except TransientPersistenceError as e:
        return transient_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open cash register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/current")
@require_auth
def current_register_route():
    """Currently open session for the caller's store (null when closed)."""
    session = register_service.get_current_open_session(g.store_id)
    return jsonify({"session": session.to_dict() if session else None}), 200


@registers_bp.get("/")
@registers_bp.get("")
@require_auth
def list_registers_route():
    """
    Session history for the caller's store, newest first.

    Query params:
        status: OPEN or CLOSED (optional)
    """
    try:
        sessions = register_service.list_store_sessions(g.store_id, request.args.get("status"))
        return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200
    except CashRegisterError as e:
        return error_response(e)


@registers_bp.get("/<int:session_id>")
@require_auth
def get_register_route(session_id: int):
    try:
        session = _load_scoped_session(session_id)
        if session is None:
            return store_access_denied()
        return jsonify({"session": session.to_dict()}), 200
    except CashRegisterError as e:
        return error_response(e)


@registers_bp.get("/<int:session_id>/summary")
@require_auth
def register_summary_route(session_id: int):
    try:
        if _load_scoped_session(session_id) is None:
            return store_access_denied()
        return jsonify(register_service.get_session_summary(session_id)), 200
    except CashRegisterError as e:
        return error_response(e)


@registers_bp.post("/<int:session_id>/close")
@require_auth
def close_register_route(session_id: int):
    """
    Close a session and settle the counted cash.

    Request body:
    {
        "actual_balance_cents": 130000,  // Cash counted in drawer
        "notes": "Counted twice"  (optional)
    }

    Returns the SettlementRecord. Closing twice returns 409.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        if "actual_balance_cents" not in data:
            raise ValidationError("actual_balance_cents required", {"field": "actual_balance_cents"})

        if _load_scoped_session(session_id) is None:
            return store_access_denied()

        record = with_retry(lambda: register_service.close_register(
            session_id=session_id,
            user_id=g.current_user.id,
            actual_balance_cents=data["actual_balance_cents"],
            notes=data.get("notes"),
        ))

        return jsonify({"settlement": record.to_dict()}), 200

    except CashRegisterError as e:
        return error_response(e)
    except TransientPersistenceError as e:
        return transient_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close cash register")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/<int:session_id>/movements")
@require_auth
def list_movements_route(session_id: int):
    try:
        if _load_scoped_session(session_id) is None:
            return store_access_denied()
        movements = movement_service.list_session_movements(session_id)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except CashRegisterError as e:
        return error_response(e)


@registers_bp.get("/<int:session_id>/snapshots")
@require_auth
def list_snapshots_route(session_id: int):
    try:
        if _load_scoped_session(session_id) is None:
            return store_access_denied()
        snapshots = register_service.list_snapshots(session_id, request.args.get("limit", type=int))
        return jsonify({"snapshots": [s.to_dict() for s in snapshots]}), 200
    except CashRegisterError as e:
        return error_response(e)


@registers_bp.post("/<int:session_id>/snapshots")
@require_auth
def take_snapshot_route(session_id: int):
    """
    Record the running balance of an open session.

    Request body:
    {
        "snapshot_type": "MANUAL",  // MANUAL, AUTOMATIC or RECONCILIATION
        "notes": "Mid-day check"  (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        if _load_scoped_session(session_id) is None:
            return store_access_denied()

        snapshot = register_service.take_snapshot(
            session_id=session_id,
            user_id=g.current_user.id,
            snapshot_type=data.get("snapshot_type", register_service.SNAPSHOT_MANUAL),
            notes=data.get("notes"),
        )
        return jsonify({"snapshot": snapshot.to_dict()}), 201

    except CashRegisterError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to take cash register snapshot")
        return jsonify({"error": "Internal server error"}), 500
