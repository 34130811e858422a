"""
OrderTransactionEngine: turns a user's open cart into an immutable order.

Status lifecycle:
    Pending -> Processing -> Shipped -> Delivered
    Pending | Processing -> Cancelled
    Shipped -> Returned
    Delivered, Cancelled and Returned are terminal.

CHECKOUT ATOMICITY:
create_order reads the open cart rows under a row lock (BEGIN IMMEDIATE on
SQLite), writes the Order and flips every consumed flag in one transaction.
Either the order and all flips commit together or nothing does. The
notifier runs only after commit and can never undo the order.
"""

from __future__ import annotations

import logging
import secrets
import time

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import BusinessRuleError, CollaboratorFailure, ConflictError, NotFoundError, ValidationError
from ..models import Address, Order, OrderNote, OrderStatus, User
from ..permissions import Role
from ..time_utils import cents_to_str
from ..validation import coerce_int
from .access_service import Caller, authorize
from .cart_service import CartLedger
from .collaborators import Notifier, safe_notify
from .concurrency import lock_for_update, run_with_retry, safe_rollback, transaction_scope
from .order_snapshot import OrderSnapshot
from .reporting import apply_report_scope, apply_timeframe, parse_report_org, parse_timeframe, period_label

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

MAX_NOTE_LENGTH = 2000


def parse_status(value) -> OrderStatus:
    """Exact match against the six statuses; anything else is a ValidationError."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status: {value!r}",
            {"allowed": [s.value for s in OrderStatus]},
        )


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def generate_batch_id() -> str:
    """ORD-<epoch millis>-<random hex>; unique per checkout."""
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def _clean_note(note) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    if not note:
        return None
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note exceeds max length {MAX_NOTE_LENGTH}")
    return note


class OrderTransactionEngine:
    def __init__(self, session, *, cart: CartLedger, notifier: Notifier | None = None,
                 retry_attempts: int = 3, retry_backoff: float = 0.1):
        self.session = session
        self.cart = cart
        self.notifier = notifier
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _run(self, op):
        return run_with_retry(op, session=self.session, attempts=self.retry_attempts,
                              backoff_base=self.retry_backoff)

    # ------------------------------------------------------------------
    # Scoping
    # ------------------------------------------------------------------

    def _scoped_query(self, caller: Caller):
        """User: own orders. Admin/Manager: own org. SuperAdmin: all."""
        query = self.session.query(Order)
        if caller.is_super_admin:
            return query
        if caller.role in (Role.ADMIN, Role.MANAGER):
            return query.filter(Order.org_id == caller.org_id)
        return query.filter(Order.user_id == caller.user_id)

    def _require_address(self, address_id: int, user_id: int, field: str) -> Address:
        address = self.session.get(Address, address_id)
        # Someone else's address is reported as missing.
        if address is None or address.user_id != user_id:
            raise NotFoundError("Address not found", {field: address_id})
        return address

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_order(self, caller: Caller, shipping_address_id, billing_address_id,
                     payment_method: str | None = None) -> dict:
        authorize(caller, "PLACE_ORDER")
        if shipping_address_id in (None, "") or billing_address_id in (None, ""):
            raise ValidationError("shipping_address_id and billing_address_id are required")
        shipping_address_id = coerce_int(shipping_address_id, "shipping_address_id")
        billing_address_id = coerce_int(billing_address_id, "billing_address_id")
        if payment_method is not None:
            payment_method = str(payment_method).strip()[:64] or None

        def _op() -> tuple[int, str, int, int]:
            with transaction_scope(self.session, immediate=True):
                self._require_address(shipping_address_id, caller.user_id, "shipping_address_id")
                self._require_address(billing_address_id, caller.user_id, "billing_address_id")

                items = self.cart.lock_open_items(caller.user_id)
                if not items:
                    raise BusinessRuleError("NoItemsInCart", "No items in the cart yet.")

                snapshot = OrderSnapshot.from_cart_items(items)
                order = Order(
                    user_id=caller.user_id,
                    org_id=caller.org_id,
                    batch_id=generate_batch_id(),
                    shipping_address_id=shipping_address_id,
                    billing_address_id=billing_address_id,
                    status=OrderStatus.PENDING.value,
                    total_amount_cents=snapshot.total_cents,
                    payment_method=payment_method,
                    payment_status="Unpaid",
                    snapshot_json=snapshot.to_json(),
                )
                self.session.add(order)
                self.session.flush()

                self.cart.mark_consumed(list(snapshot.cart_item_ids), order.id)
                return order.id, order.batch_id, order.total_amount_cents, len(items)

        order_id, batch_id, total_cents, item_count = self._run(_op)
        logger.info(
            "Order %s (%s) created for user_id=%s items=%d total_cents=%d",
            order_id, batch_id, caller.user_id, item_count, total_cents,
        )

        self._notify_user(
            caller.user_id,
            f"Order {batch_id} received",
            f"<p>Thank you for your order.</p>"
            f"<p>Order <strong>{batch_id}</strong>: {item_count} item(s), "
            f"total <strong>${cents_to_str(total_cents)}</strong>.</p>",
        )
        return self._order_payload(order_id)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def update_status(self, order_id: int, new_status, note, caller: Caller) -> dict:
        """
        Validate and apply one transition; an optional note is appended in
        the same transaction. The order's owner is notified after commit.
        """
        authorize(caller, "UPDATE_ORDER_STATUS")
        target = parse_status(new_status)
        note = _clean_note(note)

        def _op() -> tuple[int, str]:
            with transaction_scope(self.session):
                order = lock_for_update(self._scoped_query(caller).filter(Order.id == order_id)).first()
                if order is None:
                    raise NotFoundError("Order not found", {"order_id": order_id})

                current = OrderStatus(order.status)
                if not can_transition(current, target):
                    raise ConflictError(
                        f"Cannot change order status from {current.value} to {target.value}",
                        {
                            "from": current.value,
                            "to": target.value,
                            "allowed": sorted(s.value for s in ALLOWED_TRANSITIONS[current]),
                        },
                    )

                order.status = target.value
                if note:
                    self.session.add(OrderNote(
                        order_id=order.id,
                        note=note,
                        status_at_note=target.value,
                        created_by_user_id=caller.user_id,
                    ))
                return order.user_id, current.value

        owner_id, previous = self._run(_op)
        logger.info("Order %s status %s -> %s by user_id=%s", order_id, previous, target.value, caller.user_id)

        body = f"<p>Your order status has been updated to: <strong>{target.value}</strong></p>"
        if note:
            body += f"<p>Note: {note}</p>"
        self._notify_user(owner_id, f"Order #{order_id} Update", body)
        return self._order_payload(order_id)

    def add_note(self, order_id: int, note, caller: Caller) -> dict:
        """Append-only; notes are never edited or deleted."""
        authorize(caller, "UPDATE_ORDER_STATUS")
        note = _clean_note(note)
        if not note:
            raise ValidationError("note is required")

        def _op() -> dict:
            with transaction_scope(self.session):
                order = self._scoped_query(caller).filter(Order.id == order_id).first()
                if order is None:
                    raise NotFoundError("Order not found", {"order_id": order_id})
                row = OrderNote(
                    order_id=order.id,
                    note=note,
                    status_at_note=order.status,
                    created_by_user_id=caller.user_id,
                )
                self.session.add(row)
                self.session.flush()
                return row.to_dict()

        return self._run(_op)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _order_payload(self, order_id: int) -> dict:
        order = self.session.get(Order, order_id)
        data = order.to_dict()
        notes = (
            self.session.query(OrderNote)
            .filter(OrderNote.order_id == order_id)
            .order_by(OrderNote.created_at.asc(), OrderNote.id.asc())
            .all()
        )
        data["notes"] = [n.to_dict() for n in notes]
        return data

    def get_order(self, order_id: int, caller: Caller) -> dict:
        authorize(caller, "VIEW_ORDERS")
        exists = self._scoped_query(caller).filter(Order.id == order_id).with_entities(Order.id).first()
        if exists is None:
            raise NotFoundError("Order not found", {"order_id": order_id})
        return self._order_payload(order_id)

    def list_orders(self, caller: Caller, filters: dict | None = None) -> dict:
        authorize(caller, "VIEW_ORDERS")
        filters = filters or {}
        query = self._scoped_query(caller)

        if filters.get("status"):
            query = query.filter(Order.status == parse_status(filters["status"]).value)
        if filters.get("user_id") not in (None, "") and caller.role is not Role.USER:
            query = query.filter(Order.user_id == coerce_int(filters["user_id"], "user_id"))
        if caller.is_super_admin and filters.get("org_id") not in (None, ""):
            query = query.filter(Order.org_id == coerce_int(filters["org_id"], "org_id"))

        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
        items = [o.to_dict() for o in orders]
        return {"items": items, "count": len(items)}

    def _report_query(self, columns, caller: Caller, org_id, timeframe: str | None):
        query = self.session.query(*columns)
        query = apply_report_scope(query, Order.org_id, caller, parse_report_org(org_id))
        return apply_timeframe(query, Order.created_at, timeframe)

    def order_summary(self, caller: Caller, org_id=None, timeframe=None) -> dict:
        authorize(caller, "VIEW_ORDER_REPORTS")
        timeframe = parse_timeframe(timeframe)
        total = self._report_query([func.count(Order.id)], caller, org_id, timeframe).scalar()
        return {"total_orders": total or 0, "timeframe": timeframe}

    def order_trends(self, caller: Caller, org_id=None, timeframe=None) -> dict:
        """
        Order counts bucketed by period within one calendar window:
        day -> hours ("14:00"), week -> weekdays ("Mon"), month -> dates,
        year (default) -> months ("Mar"). Periods without orders are omitted
        and the rest are in chronological order.
        """
        authorize(caller, "VIEW_ORDER_REPORTS")
        timeframe = parse_timeframe(timeframe, default="year")
        rows = (
            self._report_query([Order.created_at], caller, org_id, timeframe)
            .order_by(Order.created_at.asc())
            .all()
        )
        buckets: dict[str, int] = {}
        for (created_at,) in rows:
            label = period_label(created_at, timeframe)
            buckets[label] = buckets.get(label, 0) + 1
        periods = [{"period": label, "total_orders": count} for label, count in buckets.items()]
        return {"timeframe": timeframe, "periods": periods, "total": len(rows)}

    def order_status_summary(self, caller: Caller, org_id=None, timeframe=None) -> dict:
        """Order counts per status for the caller's org (SuperAdmin: all, or one org)."""
        authorize(caller, "VIEW_ORDER_REPORTS")
        timeframe = parse_timeframe(timeframe)
        query = self._report_query([Order.status, func.count(Order.id)], caller, org_id, timeframe)

        counts = {s.value: 0 for s in OrderStatus}
        for status, count in query.group_by(Order.status).all():
            counts[status] = count
        return {"counts": counts, "total": sum(counts.values()), "timeframe": timeframe}

    # ------------------------------------------------------------------
    # Notifications (after commit only)
    # ------------------------------------------------------------------

    def _notify_user(self, user_id: int, subject: str, html_body: str) -> bool:
        """Recipient lookup and send both sit behind the swallow boundary."""
        try:
            email = self.session.query(User.email).filter(User.id == user_id).scalar()
        except SQLAlchemyError as exc:
            safe_rollback(self.session)
            failure = CollaboratorFailure("notifier", f"Recipient lookup failed: {exc}")
            logger.warning("Notification for user_id=%s skipped: %s", user_id, failure.message)
            return False
        return safe_notify(self.notifier, email, subject, html_body)
