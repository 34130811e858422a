# Overview: Flask API routes for the caller's shipping and billing addresses.

from flask import Blueprint, g

from ..decorators import require_caller
from ..errors import ValidationError
from ..services.tenant_service import create_address, list_addresses
from . import request_payload

addresses_bp = Blueprint("addresses", __name__, url_prefix="/api/addresses")


@addresses_bp.get("")
@require_caller
def list_my_addresses():
    items = [a.to_dict() for a in list_addresses(g.caller.user_id)]
    return {"items": items, "count": len(items)}


@addresses_bp.post("")
@require_caller
def create_my_address():
    payload = request_payload()
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    address = create_address(
        user_id=g.caller.user_id,
        kind=payload.get("kind") or "shipping",
        line1=(payload.get("line1") or "").strip(),
        city=(payload.get("city") or "").strip(),
        **{k: payload[k] for k in ("line2", "state", "postal_code", "country") if payload.get(k)},
    )
    return address.to_dict(), 201
