# Overview: Flask API routes for logo positions on product variant mockups.

"""
Logo position routes.

MULTI-TENANT: Reads return positions of the caller's org plus global ones,
for logos the caller can see. Writes require staff roles.
"""
from flask import Blueprint, g

from ..decorators import require_caller, require_capability
from ..services import get_services
from . import request_payload

positions_bp = Blueprint("positions", __name__, url_prefix="/api/logo-positions")


@positions_bp.post("")
@require_caller
@require_capability("MANAGE_LOGO_POSITIONS")
def save_position():
    return get_services().positions.save_position(request_payload(), g.caller), 201


@positions_bp.delete("/<int:position_id>")
@require_caller
@require_capability("MANAGE_LOGO_POSITIONS")
def delete_position(position_id: int):
    get_services().positions.delete_position(position_id, g.caller)
    return {"success": True}


@positions_bp.get("/product-variants/<int:product_variant_id>")
@require_caller
def product_variant_logos(product_variant_id: int):
    """Logos grouped logo -> variant -> placements, each placement with its box."""
    items = get_services().positions.list_product_variant_logos(product_variant_id, g.caller)
    return {"items": items, "count": len(items)}
