# Overview: Immutable point-in-time record of which cart rows an order consumed.

"""
Serialization contract (version 1):

    {
      "version": 1,
      "cart_item_ids": [int, ...],
      "customization_ids": [int, ...],      # distinct, in cart order
      "lines": [
        {"cart_item_id": int, "customization_id": int | null,
         "product_id": int | null, "title": str, "sizes": {str: int},
         "quantity": int, "unit_total_cents": int}
      ]
    }

Stored in orders.snapshot_json so the order stays readable after the cart
rows it came from are purged. Unknown versions are rejected on read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class SnapshotLine:
    cart_item_id: int
    customization_id: int | None
    product_id: int | None
    title: str
    quantity: int
    unit_total_cents: int
    sizes: tuple[tuple[str, int], ...] = ()

    @property
    def line_total_cents(self) -> int:
        return self.unit_total_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "cart_item_id": self.cart_item_id,
            "customization_id": self.customization_id,
            "product_id": self.product_id,
            "title": self.title,
            "sizes": dict(self.sizes),
            "quantity": self.quantity,
            "unit_total_cents": self.unit_total_cents,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotLine":
        return cls(
            cart_item_id=int(data["cart_item_id"]),
            customization_id=data.get("customization_id"),
            product_id=data.get("product_id"),
            title=data.get("title") or "",
            quantity=int(data["quantity"]),
            unit_total_cents=int(data["unit_total_cents"]),
            sizes=tuple(sorted((data.get("sizes") or {}).items())),
        )


@dataclass(frozen=True)
class OrderSnapshot:
    lines: tuple[SnapshotLine, ...] = field(default_factory=tuple)
    version: int = SNAPSHOT_VERSION

    @classmethod
    def from_cart_items(cls, items) -> "OrderSnapshot":
        return cls(lines=tuple(
            SnapshotLine(
                cart_item_id=item.id,
                customization_id=item.customization_id,
                product_id=item.product_id,
                title=item.title,
                quantity=item.quantity,
                unit_total_cents=item.unit_total_cents,
                sizes=tuple(sorted(item.sizes.items())),
            )
            for item in items
        ))

    @property
    def cart_item_ids(self) -> tuple[int, ...]:
        return tuple(line.cart_item_id for line in self.lines)

    @property
    def customization_ids(self) -> tuple[int, ...]:
        seen: list[int] = []
        for line in self.lines:
            if line.customization_id is not None and line.customization_id not in seen:
                seen.append(line.customization_id)
        return tuple(seen)

    @property
    def total_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "cart_item_ids": list(self.cart_item_ids),
            "customization_ids": list(self.customization_ids),
            "lines": [line.to_dict() for line in self.lines],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str | None) -> "OrderSnapshot":
        if not raw:
            return cls()
        data = json.loads(raw)
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported order snapshot version: {version!r}")
        return cls(lines=tuple(SnapshotLine.from_dict(line) for line in data.get("lines") or []))
