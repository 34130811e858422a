# Overview: Flask API routes for the caller's cart.

from flask import Blueprint, g

from ..decorators import require_caller
from ..services import get_services
from . import request_payload

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_caller
def list_cart():
    return get_services().cart.list_open_items(g.caller)


@cart_bp.post("")
@require_caller
def add_to_cart():
    return get_services().cart.add_item(request_payload(), g.caller), 201


@cart_bp.delete("/<int:item_id>")
@require_caller
def remove_from_cart(item_id: int):
    get_services().cart.remove_item(item_id, g.caller)
    return {"success": True}
