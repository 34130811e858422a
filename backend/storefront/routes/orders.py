# Overview: Flask API routes for checkout and order administration.

"""
Order routes.

MULTI-TENANT: Users see their own orders, Admin/Manager their org's orders,
SuperAdmin every order. Status changes and notes require staff roles.
"""
from flask import Blueprint, request, g

from ..decorators import require_caller, require_capability
from ..services import get_services
from . import request_payload

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_caller
def create_order():
    """Checkout: converts every open cart item into one Pending order."""
    payload = request_payload()
    order = get_services().orders.create_order(
        g.caller,
        payload.get("shipping_address_id"),
        payload.get("billing_address_id"),
        payload.get("payment_method"),
    )
    return order, 201


@orders_bp.get("")
@require_caller
def list_orders():
    return get_services().orders.list_orders(g.caller, request.args.to_dict())


@orders_bp.get("/summary")
@require_caller
@require_capability("VIEW_ORDER_REPORTS")
def order_summary():
    """Query params: timeframe (day|week|month|year), org_id (SuperAdmin)."""
    return get_services().orders.order_summary(
        g.caller, request.args.get("org_id"), request.args.get("timeframe")
    )


@orders_bp.get("/trends")
@require_caller
@require_capability("VIEW_ORDER_REPORTS")
def order_trends():
    return get_services().orders.order_trends(
        g.caller, request.args.get("org_id"), request.args.get("timeframe")
    )


@orders_bp.get("/status-summary")
@require_caller
@require_capability("VIEW_ORDER_REPORTS")
def order_status_summary():
    return get_services().orders.order_status_summary(
        g.caller, request.args.get("org_id"), request.args.get("timeframe")
    )


@orders_bp.get("/<int:order_id>")
@require_caller
def get_order(order_id: int):
    return get_services().orders.get_order(order_id, g.caller)


@orders_bp.patch("/<int:order_id>")
@require_caller
@require_capability("UPDATE_ORDER_STATUS")
def update_order_status(order_id: int):
    payload = request_payload()
    return get_services().orders.update_status(order_id, payload.get("status"), payload.get("note"), g.caller)


@orders_bp.post("/<int:order_id>/notes")
@require_caller
@require_capability("UPDATE_ORDER_STATUS")
def add_order_note(order_id: int):
    return get_services().orders.add_note(order_id, request_payload().get("note"), g.caller), 201
