# Overview: Flask API routes for composing and removing customizations.

from flask import Blueprint, g

from ..decorators import require_caller
from ..services import get_services
from . import request_payload, request_uploads

customizations_bp = Blueprint("customizations", __name__, url_prefix="/api/customizations")


@customizations_bp.get("")
@require_caller
def list_customizations():
    items = get_services().customizations.list_customizations(g.caller)
    return {"items": items, "count": len(items)}


@customizations_bp.post("")
@require_caller
def compose_customization():
    """
    Body: product_variant_id, logo_variant_id, placement_id, optional
    preview_asset_ref; or multipart with the rendered preview under "preview".
    """
    payload = request_payload()
    previews = request_uploads("preview")
    created = get_services().customizations.compose(
        payload.get("user_id"),
        payload.get("product_variant_id"),
        payload.get("logo_variant_id"),
        payload.get("placement_id"),
        g.caller,
        preview_asset_ref=payload.get("preview_asset_ref"),
        preview=previews[0] if previews else None,
    )
    return created, 201


@customizations_bp.delete("/<int:customization_id>")
@require_caller
def delete_customization(customization_id: int):
    get_services().customizations.delete_customization(customization_id, g.caller)
    return {"success": True}
