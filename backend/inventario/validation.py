from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Integer, Numeric, String, Text

from inventario.time_utils import parse_iso_date


# Largest value a Numeric(12, 2) column holds
MAX_MONEY = Decimal("9999999999.99")
CENTS = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level clash with existing data (duplicate SKU or account code, open shift)."""


class NotFoundError(LookupError):
    """404-level: the referenced row does not exist in the caller's tenant."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write, and which must be present on create.

    Anything outside writable_fields is rejected, so tenant and audit
    columns (inventory_id, created_by_user_id) can never come from JSON.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def parse_money(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    """
    Parse a JSON money value (number or numeric string) into a 2-place Decimal.

    Floats go through str() so 0.1 stays 0.10 instead of its binary expansion.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if not allow_negative and amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} exceeds {MAX_MONEY}")
    return amount


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects bools, floats with a fraction, and blanks."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "." in stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be an integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_date_field(value: Any, field: str) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    if parsed is None:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    return parsed


def _coerce(column, value: Any):
    """Convert one JSON value to the Python type of its column."""
    coltype = column.type
    if isinstance(coltype, Integer):
        return parse_int(value, column.key)
    if isinstance(coltype, Numeric):
        return parse_money(value, column.key, allow_negative=True)
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if not text:
            if not column.nullable:
                raise ValidationError(f"{column.key} cannot be blank")
            return None
        if isinstance(coltype, String) and coltype.length and len(text) > coltype.length:
            raise ValidationError(f"{column.key} exceeds max length {coltype.length}")
        return text
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against the policy and the model's column metadata.

    Returns a patch of coerced values keyed by column. With partial=False
    (create) every required field must be present; with partial=True
    (update) only the keys sent are checked.
    """
    payload = {} if payload is None else payload
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create.difference(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    rejected = sorted(k for k in payload if k not in policy.writable_fields or k not in columns)
    if rejected:
        raise ValidationError(f"Field not allowed: {', '.join(rejected)}")

    patch: dict = {}
    for key, raw in payload.items():
        column = columns[key]
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce(column, raw)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """Product rules that column metadata cannot express."""
    if patch.get("quantity") is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")

    if patch.get("units_per_box") is not None and patch["units_per_box"] < 1:
        raise ValidationError("units_per_box must be >= 1")

    if patch.get("unit_price") is not None and not (0 <= patch["unit_price"] <= MAX_MONEY):
        raise ValidationError(f"unit_price must be between 0 and {MAX_MONEY}")


def format_money(value: Decimal | None) -> str | None:
    """Serialize a money value as a fixed 2-place string for JSON."""
    if value is None:
        return None
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))
