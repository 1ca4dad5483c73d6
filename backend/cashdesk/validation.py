from __future__ import annotations

import enum
from typing import Any


# Maximum single amount: 9,999,999.99 (999,999,999 minor units)
# Keeps sums well inside a 64-bit column and rejects nonsensical input
MAX_AMOUNT_CENTS = 999_999_999


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    INVALID_STATE = "INVALID_STATE"
    NOT_FOUND = "NOT_FOUND"


class CashRegisterError(Exception):
    """
    Business-rule failure raised by the service layer.

    Every failure carries a closed `kind`, a human-readable message and a
    structured context map for the caller. These are never retried.
    """
    kind: ErrorKind

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind.value,
            "context": self.context,
        }


class ValidationError(CashRegisterError, ValueError):
    """400-level input problem (shape, sign, range)."""
    kind = ErrorKind.VALIDATION


class ConflictError(CashRegisterError, ValueError):
    """409-level uniqueness conflict (double open, double link)."""
    kind = ErrorKind.CONFLICT


class InvalidStateError(CashRegisterError):
    """Operation not valid for the current session status."""
    kind = ErrorKind.INVALID_STATE


class NotFoundError(CashRegisterError):
    """Referenced session, payment, settlement or store is missing."""
    kind = ErrorKind.NOT_FOUND


class TransientPersistenceError(Exception):
    """
    Database stayed unavailable after the caller's retry budget.

    Deliberately outside the ErrorKind taxonomy: this is the only failure
    a client may safely retry.
    """


def coerce_cents(value: Any, field: str, *, allow_negative: bool = False) -> int:
    """
    Strictly coerce a money amount expressed in minor units.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals
    and scientific notation so rounding never happens silently.
    """
    if value is None:
        raise ValidationError(f"{field} is required", {"field": field})

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", {"field": field})

    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", {"field": field})
        # Reject scientific notation (e.g., "1e5")
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                {"field": field},
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", {"field": field})
        try:
            amount = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", {"field": field})
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", {"field": field})
    else:
        raise ValidationError(f"{field} must be an integer", {"field": field})

    if not allow_negative and amount < 0:
        raise ValidationError(f"{field} must be >= 0", {"field": field, "value": amount})
    if abs(amount) > MAX_AMOUNT_CENTS:
        raise ValidationError(
            f"{field} cannot exceed {MAX_AMOUNT_CENTS} ({MAX_AMOUNT_CENTS / 100:,.2f})",
            {"field": field, "value": amount},
        )
    return amount


def coerce_choice(value: Any, field: str, choices) -> str:
    """Normalize an enum-like string field (case-insensitive) against allowed values."""
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required", {"field": field})
    normalized = str(value).strip().upper()
    if normalized not in choices:
        raise ValidationError(
            f"Invalid {field}: {value}. Must be one of {sorted(choices)}",
            {"field": field, "value": value},
        )
    return normalized


def require_json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def check_range(start, end) -> None:
    """Both bounds optional; when both are given start must not be after end."""
    if start and end and start > end:
        raise ValidationError("start must be before end", {"start": str(start), "end": str(end)})
