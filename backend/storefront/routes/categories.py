# Overview: Flask API routes for product categories.

from flask import Blueprint, g

from ..decorators import require_caller, require_capability
from ..services import get_services
from . import request_payload

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_caller
def list_categories():
    items = get_services().categories.list_categories(g.caller)
    return {"items": items, "count": len(items)}


@categories_bp.post("")
@require_caller
@require_capability("MANAGE_CATEGORIES")
def create_category():
    return get_services().categories.create_category(request_payload(), g.caller), 201


@categories_bp.put("/<int:category_id>")
@require_caller
@require_capability("MANAGE_CATEGORIES")
def update_category(category_id: int):
    return get_services().categories.update_category(category_id, request_payload(), g.caller)


@categories_bp.delete("/<int:category_id>")
@require_caller
@require_capability("MANAGE_CATEGORIES")
def delete_category(category_id: int):
    get_services().categories.delete_category(category_id, g.caller)
    return {"success": True}
