from __future__ import annotations
from datetime import datetime
from backspace.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from backspace.money import MAX_AMOUNT_PIASTERS
from backspace.models.customers import CUSTOMER_TYPES
from backspace.models.inventory import INVENTORY_CATEGORIES


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "customer_type", "notes"},
    required_on_create={"name", "phone"},
)

RESOURCE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "resource_type", "rate_per_hour", "max_price"},
    required_on_create={"name", "resource_type", "rate_per_hour"},
)

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "price", "quantity", "min_stock"},
    required_on_create={"name", "price"},
)

# Catalog edits never touch stock; stock moves through adjust_quantity only
INVENTORY_ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "price", "min_stock"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Money is piasters; a float here means someone sent major units
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
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

    Blank optional strings become None so optional fields are never stored
    as empty-string sentinels.
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

        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank")
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        value = patch[key]
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        if value > MAX_AMOUNT_PIASTERS:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_PIASTERS}")


def enforce_rules_customer(patch: dict) -> None:
    if "customer_type" in patch and patch["customer_type"] not in CUSTOMER_TYPES:
        raise ValidationError(f"customer_type must be one of {', '.join(CUSTOMER_TYPES)}")
    if patch.get("email") and "@" not in patch["email"]:
        raise ValidationError("email is not valid")


def enforce_rules_resource(patch: dict) -> None:
    _check_amount(patch, "rate_per_hour")
    _check_amount(patch, "max_price")


def enforce_rules_inventory_item(patch: dict) -> None:
    _check_amount(patch, "price")
    if "category" in patch and patch["category"] not in INVENTORY_CATEGORIES:
        raise ValidationError(f"category must be one of {', '.join(INVENTORY_CATEGORIES)}")
    for key in ("quantity", "min_stock"):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")


def clean_optional_text(value: Any, key: str, max_length: int = 255) -> str | None:
    """Free-text inputs (notes, reasons): str or None, stripped, blank -> None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value or None


def require_id_list(value: Any, key: str) -> list[int]:
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list of integers")
    for item in value:
        if not isinstance(item, int) or isinstance(item, bool):
            raise ValidationError(f"{key} must contain integers only")
    return value
