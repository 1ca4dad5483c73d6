# Overview: Shared JSON error mapping for the API blueprints.

from flask import current_app, jsonify

from ..extensions import db
from ..services.concurrency import run_with_retry
from ..time_utils import parse_range_bound
from ..validation import CashRegisterError, ErrorKind, ValidationError


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 409,
}


def error_response(exc: CashRegisterError):
    """Roll back the unit of work and render a business error."""
    db.session.rollback()
    return jsonify(exc.to_dict()), STATUS_BY_KIND[exc.kind]


def transient_error_response(exc: Exception):
    db.session.rollback()
    current_app.logger.warning("Transient database failure: %s", exc.__cause__ or exc)
    return jsonify({"error": str(exc)}), 503


def store_access_denied():
    return jsonify({"error": "Store access denied"}), 403


def with_retry(func):
    """Run a whole service call, retrying transient DB failures only."""
    return run_with_retry(func, attempts=current_app.config.get("DB_RETRY_ATTEMPTS", 3))


def range_args(args):
    """Inclusive (start, end) from ?start=&end= query params."""
    bounds = []
    for name in ("start", "end"):
        raw = args.get(name)
        try:
            bounds.append(parse_range_bound(raw, end=(name == "end")))
        except ValueError:
            raise ValidationError(f"{name} must be an ISO-8601 date or datetime", {"field": name, "value": raw})
    return tuple(bounds)
