# Overview: Flask API routes for payments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import movement_service, payment_service
from ..validation import CashRegisterError, TransientPersistenceError, ValidationError, require_json_object
from ..decorators import require_auth
from .responses import error_response, range_args, transient_error_response, with_retry


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")

DOCUMENT_FIELDS = ("sale_id", "purchase_id", "expense_id", "return_id")


@payments_bp.post("/")
@payments_bp.post("")
@require_auth
def record_payment_route():
    """
    Record a payment.

    Request body:
    {
        "sale_id": 42,  // exactly one of sale_id, purchase_id, expense_id, return_id
        "amount_cents": 50000,
        "method": "CASH",  // CASH, BANK_TRANSFER, CHECK, CREDIT_CARD, OTHER
        "reference": "CHK-1001",  (optional)
        "notes": "..."  (optional)
    }

    CASH payments require an open register; the linked cash movement is
    created in the same transaction.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        for field in ("amount_cents", "method"):
            if field not in data:
                raise ValidationError(f"{field} required", {"field": field})

        documents = {}
        for field in DOCUMENT_FIELDS:
            value = data.get(field)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValidationError(f"{field} must be an integer", {"field": field})
            documents[field] = value

        payment = with_retry(lambda: payment_service.record_payment(
            store_id=g.store_id,
            user_id=g.current_user.id,
            amount_cents=data["amount_cents"],
            method=data["method"],
            reference=data.get("reference"),
            notes=data.get("notes"),
            **documents,
        ))

        return jsonify({"payment": payment.to_dict()}), 201

    except CashRegisterError as e:
        return error_response(e)
    except TransientPersistenceError as e:
        return transient_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


def _document_args() -> dict:
    documents = {}
    for field in DOCUMENT_FIELDS:
        raw = request.args.get(field)
        if raw is None or raw == "":
            continue
        if not raw.isdigit():
            raise ValidationError(f"{field} must be an integer", {"field": field, "value": raw})
        documents[field] = int(raw)
    return documents


@payments_bp.get("/")
@payments_bp.get("")
@require_auth
def list_payments_route():
    """
    Payments for the caller's store, newest first.

    Query params (optional, combined):
        method: CASH, BANK_TRANSFER, CHECK, CREDIT_CARD, OTHER
        start, end: ISO-8601 dates/datetimes, inclusive
        sale_id | purchase_id | expense_id | return_id
    """
    try:
        start, end = range_args(request.args)
        payments = payment_service.list_payments(
            g.store_id,
            request.args.get("method"),
            start=start,
            end=end,
            **_document_args(),
        )
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except CashRegisterError as e:
        return error_response(e)


@payments_bp.get("/total")
@require_auth
def total_payments_route():
    """Total paid against one document, e.g. ?sale_id=42."""
    try:
        documents = _document_args()
        total = payment_service.total_payments(g.store_id, **documents)
        return jsonify({"documents": documents, "total_cents": total}), 200
    except CashRegisterError as e:
        return error_response(e)


@payments_bp.get("/summary")
@require_auth
def payment_summary_route():
    """In/out totals per payment method. Query params: start, end (inclusive)."""
    try:
        start, end = range_args(request.args)
        summary = payment_service.summarize_payments_by_method(g.store_id, start, end)
        return jsonify(summary), 200
    except CashRegisterError as e:
        return error_response(e)


@payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(g.store_id, payment_id)
        return jsonify({"payment": payment.to_dict()}), 200
    except CashRegisterError as e:
        return error_response(e)


@payments_bp.get("/<int:payment_id>/movements")
@require_auth
def payment_movements_route(payment_id: int):
    try:
        movements = movement_service.list_payment_movements(g.store_id, payment_id)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except CashRegisterError as e:
        return error_response(e)
