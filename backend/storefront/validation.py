from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_QUANTITY = 10_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required on create
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()  # type: ignore[assignment]


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_cents(value: Any, field: str, *, allow_negative: bool = False) -> int:
    cents = coerce_int(value, field)
    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if abs(cents) > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")
    return cents


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def parse_json_list(value: Any, field: str) -> list:
    """
    Accept a list, or a JSON-encoded list (multipart form fields arrive as strings).
    None / "" -> [].
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValidationError(f"{field} must be a JSON array")
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    return value


def coerce_id_list(value: Any, field: str) -> list[int]:
    return [coerce_int(v, field) for v in parse_json_list(value, field)]


MAX_PER_PAGE = 100


def parse_pagination(page: Any, per_page: Any, default_per_page: int = 20) -> tuple[int, int]:
    """page >= 1 and 1 <= per_page <= MAX_PER_PAGE; anything else is a ValidationError."""
    page = coerce_int(page, "page")
    per_page = default_per_page if per_page in (None, "") else coerce_int(per_page, "per_page")
    if page < 1:
        raise ValidationError("page must be >= 1")
    if per_page < 1 or per_page > MAX_PER_PAGE:
        raise ValidationError(f"per_page must be between 1 and {MAX_PER_PAGE}")
    return page, per_page


def require_fields(payload: dict, fields) -> None:
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(sorted(missing))}")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None
    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)
    if isinstance(coltype, Boolean):
        return coerce_bool(value)
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
    Validates + normalizes incoming data against SQLAlchemy column metadata
    and a policy allowlist. Keys outside writable_fields are ignored here
    (nested collections like variants are handled by the owning service).

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        require_fields(payload, policy.required_on_create or set())

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields:
            continue
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules that are not captured by SQLAlchemy metadata alone."""
    if "price_cents" in patch and patch["price_cents"] is not None:
        coerce_cents(patch["price_cents"], "price_cents")


def enforce_rules_cart_item(quantity: int, unit_total_cents: int) -> None:
    if quantity < 1:
        raise ValidationError("quantity must be >= 1")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")
    if unit_total_cents <= 0:
        raise ValidationError("unit_total_cents must be > 0")
