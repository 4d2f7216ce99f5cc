from __future__ import annotations
from datetime import datetime
from palletrack.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Float, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, ConflictError  # noqa: F401  (re-exported for routes)


# Four exact digits; the PIN is the login lookup key
PIN_LENGTH = 4

# Upper bound on pallets per leaf; keeps typos like 10000 out of the roll-ups
MAX_CAPACITY = 100_000

HEX_COLOR_LENGTHS = {4, 7}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, (Float, Numeric)):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValidationError(f"{col.key} must be a number")
        raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Blank optional strings are stored as NULL
        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _enforce_color(patch: dict) -> None:
    color = patch.get("color")
    if color is None:
        return
    if not color.startswith("#") or len(color) not in HEX_COLOR_LENGTHS:
        raise ValidationError("color must be a hex value like #22c55e")
    try:
        int(color[1:], 16)
    except ValueError:
        raise ValidationError("color must be a hex value like #22c55e")


def enforce_rules_location(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Tree rules (leaf-only capacity, cycles) live in location_service.
    """
    for dim in ("width", "height"):
        if dim in patch and patch[dim] is not None and patch[dim] < 1:
            raise ValidationError(f"{dim} must be >= 1")

    for coord in ("x", "y"):
        if coord in patch and patch[coord] is not None and patch[coord] < 0:
            raise ValidationError(f"{coord} must be >= 0")

    if "capacity" in patch and patch["capacity"] is not None:
        validate_capacity(patch["capacity"])

    _enforce_color(patch)


def validate_capacity(capacity) -> int | None:
    if capacity is None:
        return None
    capacity = coerce_int("capacity", capacity)
    if capacity < 0:
        raise ValidationError("capacity must be >= 0")
    if capacity > MAX_CAPACITY:
        raise ValidationError(f"capacity cannot exceed {MAX_CAPACITY}")
    return capacity


def enforce_rules_product(patch: dict) -> None:
    if "resource_weight" in patch and patch["resource_weight"] is not None:
        if patch["resource_weight"] < 0:
            raise ValidationError("resource_weight must be >= 0")

    _enforce_color(patch)


def validate_pin(pin) -> str:
    """PINs are exactly four ASCII digits, passed as a string."""
    if not isinstance(pin, str) or len(pin) != PIN_LENGTH or not (pin.isascii() and pin.isdigit()):
        raise ValidationError(f"PIN must be exactly {PIN_LENGTH} digits")
    return pin


def validate_quantity(key: str, value) -> int:
    if value is None:
        raise ValidationError(f"{key} is required")
    qty = coerce_int(key, value)
    if qty < 0:
        raise ValidationError(f"{key} must be >= 0")
    return qty
