from __future__ import annotations

import json
from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z, cents_to_str


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"


class Customization(db.Model):
    """
    Purchasable composition: product variant + logo variant + placement.

    Immutable once a consumed cart item references it; orders address
    customizations by id for later retrieval.
    """
    __tablename__ = "customizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    logo_variant_id = db.Column(db.Integer, db.ForeignKey("logo_variants.id"), nullable=False, index=True)
    placement_id = db.Column(db.Integer, db.ForeignKey("logo_placements.id"), nullable=False, index=True)
    preview_asset_ref = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_variant_id": self.product_variant_id,
            "logo_variant_id": self.logo_variant_id,
            "placement_id": self.placement_id,
            "preview_asset_ref": self.preview_asset_ref,
            "created_at": to_utc_z(self.created_at),
        }


class CartItem(db.Model):
    """
    Staged purchase intent.

    quantity and unit_total_cents are client-supplied at add time and are
    not re-priced at checkout. consumed flips exactly once, inside the
    checkout transaction, and records which order consumed the row.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        db.Index("ix_cart_items_user_consumed", "user_id", "consumed"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customization_id = db.Column(db.Integer, db.ForeignKey("customizations.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    # Snapshot of what the customer saw when adding the item
    title = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.String(512), nullable=True)
    sizes_json = db.Column(db.Text, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_total_cents = db.Column(db.Integer, nullable=False)

    consumed = db.Column(db.Boolean, nullable=False, default=False)
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def sizes(self) -> dict:
        if not self.sizes_json:
            return {}
        try:
            parsed = json.loads(self.sizes_json)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @property
    def line_total_cents(self) -> int:
        return self.unit_total_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customization_id": self.customization_id,
            "product_id": self.product_id,
            "title": self.title,
            "image_url": self.image_url,
            "sizes": self.sizes,
            "quantity": self.quantity,
            "unit_total_cents": self.unit_total_cents,
            "unit_total": cents_to_str(self.unit_total_cents),
            "line_total_cents": self.line_total_cents,
            "consumed": self.consumed,
            "consumed_at": to_utc_z(self.consumed_at),
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }


class Order(db.Model):
    """
    Immutable purchase record.

    total_amount_cents is computed once at creation; status is the only
    column that changes afterwards. snapshot_json holds the OrderSnapshot
    (cart item + customization ids) so the order stays readable after cart
    rows are purged.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_org_status_created", "org_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    batch_id = db.Column(db.String(64), nullable=False, unique=True)

    shipping_address_id = db.Column(db.Integer, db.ForeignKey("addresses.id"), nullable=False)
    billing_address_id = db.Column(db.Integer, db.ForeignKey("addresses.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=OrderStatus.PENDING.value, index=True)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    # Opaque strings owned by the payment collaborator
    payment_method = db.Column(db.String(64), nullable=True)
    payment_status = db.Column(db.String(32), nullable=False, default="Unpaid")

    snapshot_json = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        from ..services.order_snapshot import OrderSnapshot

        snapshot = OrderSnapshot.from_json(self.snapshot_json)
        return {
            "id": self.id,
            "user_id": self.user_id,
            "org_id": self.org_id,
            "batch_id": self.batch_id,
            "shipping_address_id": self.shipping_address_id,
            "billing_address_id": self.billing_address_id,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "total_amount": cents_to_str(self.total_amount_cents),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "cart_item_ids": list(snapshot.cart_item_ids),
            "customization_ids": list(snapshot.customization_ids),
            "snapshot": snapshot.to_dict(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderNote(db.Model):
    """Append-only admin annotation. Never edited or deleted."""
    __tablename__ = "order_notes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    note = db.Column(db.Text, nullable=False)
    status_at_note = db.Column(db.String(16), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "note": self.note,
            "status_at_note": self.status_at_note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
