# Overview: Flask API routes for logos, logo variants and placements.

"""
Logo routes.

Create accepts JSON:
    {"title", "org_id"?, "placements": [names],
     "variants": [{"color", "asset_url", "placements"?}]}
or multipart form data with title, placements (JSON), colors (JSON list)
and one file per color under "files" (matched by position).
"""
from flask import Blueprint, request, g

from ..decorators import require_caller, require_capability
from ..errors import ValidationError
from ..services import get_services
from ..validation import coerce_int, parse_json_list
from . import request_payload, request_uploads

logos_bp = Blueprint("logos", __name__, url_prefix="/api/logos")


def _variants_from_request(payload: dict) -> list[dict]:
    files = request_uploads("files")
    if not files:
        return parse_json_list(payload.get("variants"), "variants")
    colors = parse_json_list(payload.get("colors"), "colors")
    if len(colors) != len(files):
        raise ValidationError("colors must list one color per uploaded file")
    return [{"color": color, "upload": upload} for color, upload in zip(colors, files)]


@logos_bp.get("")
@require_caller
def list_logos():
    items = get_services().logos.list_logos(g.caller)
    return {"items": items, "count": len(items)}


@logos_bp.get("/summary")
@require_caller
@require_capability("VIEW_CATALOG_REPORTS")
def logo_summary():
    return get_services().logos.logo_summary(
        g.caller, request.args.get("org_id"), request.args.get("timeframe")
    )


@logos_bp.get("/<int:logo_id>")
@require_caller
def get_logo(logo_id: int):
    return get_services().logos.get_logo(logo_id, g.caller)


@logos_bp.post("")
@require_caller
@require_capability("MANAGE_LOGOS")
def create_logo():
    payload = request_payload()
    org_id = payload.get("org_id")
    created = get_services().logos.create_logo(
        payload.get("title"),
        _variants_from_request(payload),
        parse_json_list(payload.get("placements"), "placements"),
        g.caller,
        org_id=coerce_int(org_id, "org_id") if org_id not in (None, "") else None,
    )
    return created, 201


@logos_bp.delete("/<int:logo_id>")
@require_caller
@require_capability("MANAGE_LOGOS")
def delete_logo(logo_id: int):
    get_services().logos.delete_logo(logo_id, g.caller)
    return {"success": True}


@logos_bp.post("/<int:logo_id>/variants")
@require_caller
@require_capability("MANAGE_LOGOS")
def add_variant(logo_id: int):
    payload = request_payload()
    files = request_uploads("file")
    variant = get_services().logos.add_variant(
        logo_id,
        payload.get("color"),
        payload.get("asset_url"),
        parse_json_list(payload.get("placements"), "placements"),
        g.caller,
        upload=files[0] if files else None,
    )
    return variant, 201


@logos_bp.delete("/variants/<int:variant_id>")
@require_caller
@require_capability("MANAGE_LOGOS")
def delete_variant(variant_id: int):
    get_services().logos.delete_variant(variant_id, g.caller)
    return {"success": True}


@logos_bp.get("/variants/<int:variant_id>/placements")
@require_caller
def list_variant_placements(variant_id: int):
    items = get_services().logos.list_variant_placements(variant_id, g.caller)
    return {"items": items, "count": len(items)}


@logos_bp.post("/variants/<int:variant_id>/placements")
@require_caller
@require_capability("MANAGE_LOGOS")
def attach_placements(variant_id: int):
    """Idempotent: re-posting an attached placement is a no-op."""
    payload = request_payload()
    names = parse_json_list(payload.get("placements"), "placements")
    items = get_services().logos.attach_placements(variant_id, names, g.caller)
    return {"items": items, "count": len(items)}


@logos_bp.delete("/variants/<int:variant_id>/placements")
@require_caller
@require_capability("MANAGE_LOGOS")
def detach_all_placements(variant_id: int):
    removed = get_services().logos.detach_all_placements(variant_id, g.caller)
    return {"success": True, "removed": removed}
