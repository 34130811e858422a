"""
CartLedger: per-user staging of purchase intent.

TRUST BOUNDARY:
quantity and unit_total_cents are supplied by the client when an item is
added and are NOT re-priced at checkout. Each add logs the catalog price it
could be compared against so drift is visible in the logs.

The consumed flag is never flipped here except through mark_consumed(),
which only the order engine calls, inside its own transaction.
"""

from __future__ import annotations

import json
import logging

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import CartItem, Customization, Product, ProductVariant
from ..time_utils import utcnow
from ..validation import coerce_cents, coerce_int, enforce_rules_cart_item
from .access_service import Caller, authorize, can_see
from .concurrency import lock_for_update, run_with_retry, transaction_scope

logger = logging.getLogger(__name__)


def _normalize_sizes(sizes) -> str | None:
    """{"M": 2, "L": 1} -> JSON text; quantities must be positive integers."""
    if sizes in (None, "", {}):
        return None
    if isinstance(sizes, str):
        try:
            sizes = json.loads(sizes)
        except ValueError:
            raise ValidationError("sizes must be a JSON object")
    if not isinstance(sizes, dict):
        raise ValidationError("sizes must be an object mapping size to quantity")
    cleaned = {}
    for size, qty in sizes.items():
        qty = coerce_int(qty, f"sizes.{size}")
        if qty < 0:
            raise ValidationError(f"sizes.{size} must be >= 0")
        cleaned[str(size)] = qty
    return json.dumps(cleaned, sort_keys=True)


class CartLedger:
    def __init__(self, session, *, retry_attempts: int = 3, retry_backoff: float = 0.1):
        self.session = session
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _run(self, op):
        return run_with_retry(op, session=self.session, attempts=self.retry_attempts,
                              backoff_base=self.retry_backoff)

    def _resolve_reference(self, payload: dict, caller: Caller) -> tuple[int | None, int | None, str, int | None]:
        """Returns (customization_id, product_id, default_title, catalog_price_cents)."""
        customization_id = payload.get("customization_id")
        product_id = payload.get("product_id")

        if customization_id not in (None, ""):
            customization_id = coerce_int(customization_id, "customization_id")
            row = (
                self.session.query(Customization, Product)
                .join(ProductVariant, ProductVariant.id == Customization.product_variant_id)
                .join(Product, Product.id == ProductVariant.product_id)
                .filter(Customization.id == customization_id)
                .first()
            )
            # Customizations are personal: someone else's is reported as missing.
            if row is None or row[0].user_id != caller.user_id:
                raise NotFoundError("Customization not found", {"customization_id": customization_id})
            product = row[1]
            return customization_id, product.id, product.title, product.price_cents

        if product_id not in (None, ""):
            product_id = coerce_int(product_id, "product_id")
            product = self.session.get(Product, product_id)
            if product is None or not can_see(caller, product.org_id):
                raise NotFoundError("Product not found", {"product_id": product_id})
            if not product.is_active:
                raise ValidationError("Product is not available")
            return None, product.id, product.title, product.price_cents

        raise ValidationError("customization_id or product_id is required")

    def add_item(self, payload: dict, caller: Caller) -> dict:
        """
        Stage one line for the caller.

        payload: customization_id or product_id, quantity, unit_total_cents,
        optional title / image_url / sizes.
        """
        authorize(caller, "USE_CART")
        payload = payload or {}

        quantity = coerce_int(payload.get("quantity", 1), "quantity")
        if payload.get("unit_total_cents") in (None, ""):
            raise ValidationError("unit_total_cents is required")
        unit_total_cents = coerce_cents(payload["unit_total_cents"], "unit_total_cents")
        enforce_rules_cart_item(quantity, unit_total_cents)
        sizes_json = _normalize_sizes(payload.get("sizes"))

        customization_id, product_id, default_title, catalog_price = self._resolve_reference(payload, caller)
        title = str(payload.get("title") or default_title).strip()[:255]
        image_url = payload.get("image_url") or None

        if catalog_price is not None and unit_total_cents != catalog_price:
            logger.info(
                "Cart add for user_id=%s uses client unit_total_cents=%s (catalog base price %s)",
                caller.user_id, unit_total_cents, catalog_price,
            )

        def _op() -> dict:
            with transaction_scope(self.session):
                item = CartItem(
                    user_id=caller.user_id,
                    customization_id=customization_id,
                    product_id=product_id,
                    title=title,
                    image_url=image_url,
                    sizes_json=sizes_json,
                    quantity=quantity,
                    unit_total_cents=unit_total_cents,
                )
                self.session.add(item)
                self.session.flush()
                return item.to_dict()

        return self._run(_op)

    def open_items_query(self, user_id: int):
        return (
            self.session.query(CartItem)
            .filter(CartItem.user_id == user_id, CartItem.consumed.is_(False))
            .order_by(CartItem.id.asc())
        )

    def lock_open_items(self, user_id: int) -> list[CartItem]:
        """Row-locked read for checkout; must run inside the engine's transaction."""
        return lock_for_update(self.open_items_query(user_id)).all()

    def list_open_items(self, caller: Caller) -> dict:
        authorize(caller, "USE_CART")
        items = [i.to_dict() for i in self.open_items_query(caller.user_id).all()]
        return {
            "items": items,
            "count": len(items),
            "subtotal_cents": sum(i["line_total_cents"] for i in items),
        }

    def remove_item(self, item_id: int, caller: Caller) -> bool:
        """Only the owner's open items can be removed; consumed rows belong to an order."""
        authorize(caller, "USE_CART")

        def _op() -> None:
            with transaction_scope(self.session):
                item = self.session.get(CartItem, item_id)
                if item is None or item.user_id != caller.user_id or item.consumed:
                    raise NotFoundError("Cart item not found", {"cart_item_id": item_id})
                self.session.delete(item)

        self._run(_op)
        return True

    def mark_consumed(self, item_ids: list[int], order_id: int) -> int:
        """
        Flip consumed on open items. Runs in the caller's session and never
        commits; the order engine owns the transaction.

        Raises ConflictError if any id was already consumed, so a second
        checkout can never claim the same rows.
        """
        if not item_ids:
            return 0
        updated = (
            self.session.query(CartItem)
            .filter(CartItem.id.in_(item_ids), CartItem.consumed.is_(False))
            .update(
                {"consumed": True, "consumed_at": utcnow(), "order_id": order_id},
                synchronize_session=False,
            )
        )
        if updated != len(item_ids):
            raise ConflictError(
                "Cart changed during checkout",
                {"expected": len(item_ids), "updated": updated},
            )
        return updated
