from __future__ import annotations

from typing import Any


# Maximum single amount: UGX 99,999,999,999
# Keeps sums of a busy day well inside a 64-bit integer column
MAX_AMOUNT_UGX = 99_999_999_999


class ValidationError(ValueError):
    """400-level input problem. Nothing was written."""


class LifecycleError(ValidationError):
    """
    Raised when a status transition is not in the entity's transition table.

    This is a domain error, not a technical error. It indicates
    that the caller attempted an operation that violates business rules.
    """


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., batch already paid)."""


class AuthorizationError(PermissionError):
    """403-level separation-of-duties violation (e.g., approving one's own price)."""


class InsufficientFundsError(ValueError):
    """Requested cash-out exceeds the current cash balance. Nothing was written."""

    def __init__(self, available_ugx: int, requested_ugx: int):
        self.available_ugx = available_ugx
        self.requested_ugx = requested_ugx
        super().__init__(
            f"Insufficient funds. Available balance: UGX {available_ugx:,}, "
            f"requested: UGX {requested_ugx:,}"
        )


def require_identifier(value: Any, field: str) -> Any:
    """Reject None, blank strings and booleans for identifier inputs."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        return stripped
    return value


def require_text(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def coerce_amount(value: Any, field: str, *, allow_zero: bool = False) -> int:
    """
    Coerce a money input to whole UGX.

    Accepts ints, integral floats and plain digit strings. Rejects booleans,
    fractions, scientific notation and anything outside 0..MAX_AMOUNT_UGX.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")

    if isinstance(value, int):
        amount = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be a whole UGX amount")
        amount = int(value)
    elif isinstance(value, str):
        stripped = value.strip().replace(",", "")
        if not stripped:
            raise ValidationError(f"{field} is required")
        # Reject scientific notation (e.g., "1e6")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be a whole UGX amount")
        try:
            amount = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be > 0" if not allow_zero else f"{field} must be >= 0")
    if amount > MAX_AMOUNT_UGX:
        raise ValidationError(f"{field} cannot exceed UGX {MAX_AMOUNT_UGX:,}")
    return amount


def coerce_percentage(value: Any, field: str) -> float | None:
    """Optional grading percentage in 0..100."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        pct = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return pct


def require_int_id(value: Any, field: str) -> int:
    """Row and acting-user ids are integers; "7" and 7 must compare equal."""
    value = require_identifier(value, field)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    raise ValidationError(f"{field} must be an integer id")
