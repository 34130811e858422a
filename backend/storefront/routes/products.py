# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/storefront/routes/products.py
"""
Product catalog routes.

MULTI-TENANT: Reads return the caller's org products plus the global
catalog. Writes go to the caller's org (SuperAdmin may pass org_id).

Create/update accept JSON, or multipart form data where nested fields
(variants, images, group_visibility, ...) are JSON strings and product
images are posted as files under "images".
"""
from flask import Blueprint, request, g

from ..decorators import require_caller, require_capability
from ..services import get_services
from . import request_payload, request_uploads

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_caller
def list_products():
    """
    Query params: title, sku, is_active, category_id, org_id (SuperAdmin),
    page, per_page. Without page every visible product is returned.
    """
    return get_services().catalog.list_products(request.args.to_dict(), g.caller)


@products_bp.get("/summary")
@require_caller
@require_capability("VIEW_CATALOG_REPORTS")
def products_summary():
    """Query params: timeframe (day|week|month|year), org_id (SuperAdmin)."""
    return get_services().catalog.products_summary(
        g.caller, request.args.get("org_id"), request.args.get("timeframe")
    )


@products_bp.get("/lookup/<sku>")
@require_caller
def lookup_by_sku(sku: str):
    """Matches product SKUs and variant SKUs."""
    items = get_services().catalog.find_products_by_sku(sku, g.caller)
    return {"items": items, "count": len(items)}


@products_bp.get("/<int:product_id>")
@require_caller
def get_product(product_id: int):
    return get_services().catalog.get_product(product_id, g.caller)


@products_bp.post("")
@require_caller
@require_capability("MANAGE_PRODUCTS")
def create_product():
    created = get_services().catalog.create_product(request_payload(), g.caller, uploads=request_uploads())
    return created, 201


@products_bp.patch("/<int:product_id>")
@require_caller
@require_capability("MANAGE_PRODUCTS")
def update_product(product_id: int):
    """Non-destructive: omitted fields, variants and images are left untouched."""
    return get_services().catalog.update_product(
        product_id, request_payload(), g.caller, uploads=request_uploads()
    )


@products_bp.delete("/<int:product_id>")
@require_caller
@require_capability("MANAGE_PRODUCTS")
def delete_product(product_id: int):
    get_services().catalog.delete_product(product_id, g.caller)
    return {"success": True, "message": "Product deleted successfully."}
