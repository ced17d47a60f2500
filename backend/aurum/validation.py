"""
Error taxonomy and request coercion helpers.

Every service failure is one of the AurumError subclasses below. Each
carries a stable machine-readable `kind` and the HTTP status the routes
answer with; the message is safe to show to the caller.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, TypeVar

WEIGHT_PLACES = 3
MONEY_PLACES = 2

# Weight below this is treated as zero (bulk stock, refinery remainders)
WEIGHT_EPSILON = 0.01

E = TypeVar("E", bound=Enum)


class AurumError(Exception):
    """Base class for errors surfaced to API callers."""
    kind = "ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AurumError):
    """400-level input problem, rejected before any mutation."""
    kind = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(AurumError):
    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(AurumError):
    """409-level business rule conflict (item already sold, balance exceeded, duplicate key)."""
    kind = "CONFLICT"
    status_code = 409


class IntegrityViolation(AurumError):
    """Server-computed figures disagree with what the caller supplied."""
    kind = "INTEGRITY_VIOLATION"
    status_code = 422


class StorageError(AurumError):
    """Underlying store unavailable or rejected the write."""
    kind = "STORAGE_ERROR"
    status_code = 503


def round_weight(value: float) -> float:
    return round(float(value), WEIGHT_PLACES)


def round_money(value: float) -> float:
    return round(float(value), MONEY_PLACES)


def parse_number(
    value: Any,
    field: str,
    *,
    default: float | None = None,
    allow_negative: bool = False,
) -> float:
    """
    Coerce a JSON scalar into a finite float.

    Missing values (None / "") fall back to `default`; when no default is
    given the field is required.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field} is required")
        return float(default)

    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a finite number")
    if not allow_negative and number < 0:
        raise ValidationError(f"{field} must be >= 0")
    return number


def parse_weight(value: Any, field: str, *, default: float | None = None) -> float:
    return round_weight(parse_number(value, field, default=default))


def parse_amount(value: Any, field: str, *, default: float | None = None) -> float:
    return round_money(parse_number(value, field, default=default))


def parse_int(value: Any, field: str, *, default: int | None = None, minimum: int | None = None) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        value = int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if "." in stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer")
        try:
            value = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return value


def parse_choice(value: Any, enum_cls: type[E], field: str, *, default: E | None = None) -> E:
    """Map a request string onto an enum member (case-insensitive)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field}: {value}. Must be one of {allowed}")


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, *, max_length: int = 255) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text[:max_length] or None


def first_present(data: dict, *keys: str) -> Any:
    """Value of the first of `keys` that is present and not null."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None
