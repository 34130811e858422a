"""
LogoPositionStore: where logo variants sit on product variant mockups.

A position binds (product variant, logo, logo variant, placement name) to a
box on the product variant's mockup image, in percent of that image:
x/y of the top-left corner, width and height, plus z_index for stacking.
Percentages outside 0-100 are clamped, not rejected.

MULTI-TENANT: the product variant and the logo must both be visible to the
caller. Positions belong to the caller's org (SuperAdmin may choose an org
or leave them global); only the owning org may delete them.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict

from ..errors import NotFoundError, ValidationError
from ..models import Logo, LogoPlacement, LogoVariant, Product, ProductVariant, VariantLogoPosition
from ..validation import coerce_int, require_fields
from .access_service import Caller, authorize, can_see, require_org_ownership, resolve_target_org, visible_filter
from .concurrency import run_with_retry, transaction_scope
from .logo_service import LogoStore, clean_placement_names

logger = logging.getLogger(__name__)

PERCENT_FIELDS = ("position_x_percent", "position_y_percent", "width_percent", "height_percent")


def coerce_percent(value, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number")
    return min(max(number, 0.0), 100.0)


class LogoPositionStore:
    def __init__(self, session, *, logos: LogoStore, retry_attempts: int = 3, retry_backoff: float = 0.1):
        self.session = session
        self.logos = logos
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _run(self, op):
        return run_with_retry(op, session=self.session, attempts=self.retry_attempts,
                              backoff_base=self.retry_backoff)

    def _get_visible_product_variant(self, product_variant_id: int, caller: Caller) -> ProductVariant:
        variant = self.session.get(ProductVariant, product_variant_id)
        product = self.session.get(Product, variant.product_id) if variant is not None else None
        if product is None or not can_see(caller, product.org_id):
            raise NotFoundError("Product variant not found", {"product_variant_id": product_variant_id})
        return variant

    def save_position(self, payload: dict, caller: Caller) -> dict:
        """
        Required: product_variant_id, logo_id, logo_variant_id, name
        (placement), view_type and the four percentages. z_index defaults
        to 1. Unknown placement names are created and classified.
        """
        authorize(caller, "MANAGE_LOGO_POSITIONS")
        payload = payload or {}
        require_fields(payload, ("product_variant_id", "logo_id", "logo_variant_id", "name", "view_type")
                       + PERCENT_FIELDS)

        product_variant_id = coerce_int(payload["product_variant_id"], "product_variant_id")
        logo_id = coerce_int(payload["logo_id"], "logo_id")
        logo_variant_id = coerce_int(payload["logo_variant_id"], "logo_variant_id")
        placement_name = clean_placement_names(payload["name"])[0]
        view_type = str(payload["view_type"]).strip()
        if not view_type:
            raise ValidationError("view_type is required")
        if len(view_type) > 32:
            raise ValidationError("view_type exceeds max length 32")
        box = {field: coerce_percent(payload[field], field) for field in PERCENT_FIELDS}
        z_index = payload.get("z_index")
        z_index = 1 if z_index in (None, "") else coerce_int(z_index, "z_index")
        requested_org = payload.get("org_id")
        org_id = resolve_target_org(
            caller, coerce_int(requested_org, "org_id") if requested_org not in (None, "") else None
        )

        self._get_visible_product_variant(product_variant_id, caller)
        logo_variant, logo = self.logos.get_visible_variant(logo_variant_id, caller)
        if logo.id != logo_id:
            raise NotFoundError("Logo variant not found for this logo",
                                {"logo_id": logo_id, "logo_variant_id": logo_variant_id})

        def _op() -> int:
            with transaction_scope(self.session):
                placement = self.logos.get_or_create_placement(placement_name)
                row = VariantLogoPosition(
                    org_id=org_id,
                    product_variant_id=product_variant_id,
                    logo_id=logo_id,
                    logo_variant_id=logo_variant.id,
                    logo_placement_id=placement.id,
                    view_type=view_type,
                    z_index=z_index,
                    created_by_user_id=caller.user_id,
                    **box,
                )
                self.session.add(row)
                self.session.flush()
                return row.id

        position_id = self._run(_op)
        logger.info("Logo position %s saved for product_variant_id=%s logo_variant_id=%s by user_id=%s",
                    position_id, product_variant_id, logo_variant_id, caller.user_id)
        return self.session.get(VariantLogoPosition, position_id).to_dict()

    def delete_position(self, position_id: int, caller: Caller) -> bool:
        authorize(caller, "MANAGE_LOGO_POSITIONS")
        row = self.session.get(VariantLogoPosition, position_id)
        if row is None or not can_see(caller, row.org_id):
            raise NotFoundError("Logo position not found", {"position_id": position_id})
        require_org_ownership(caller, row.org_id, "logo position")

        def _op() -> None:
            with transaction_scope(self.session):
                self.session.query(VariantLogoPosition).filter(
                    VariantLogoPosition.id == position_id
                ).delete(synchronize_session=False)

        self._run(_op)
        return True

    def list_product_variant_logos(self, product_variant_id: int, caller: Caller) -> list[dict]:
        """
        Logos positioned on one product variant, grouped logo -> logo
        variant -> placements, each placement carrying its box. Only
        positions and logos visible to the caller are included; within a
        logo variant placements follow z_index.
        """
        authorize(caller, "VIEW_CATALOG")
        self._get_visible_product_variant(product_variant_id, caller)

        rows = (
            self.session.query(VariantLogoPosition, Logo, LogoVariant, LogoPlacement)
            .join(Logo, Logo.id == VariantLogoPosition.logo_id)
            .join(LogoVariant, LogoVariant.id == VariantLogoPosition.logo_variant_id)
            .join(LogoPlacement, LogoPlacement.id == VariantLogoPosition.logo_placement_id)
            .filter(VariantLogoPosition.product_variant_id == product_variant_id)
            .filter(visible_filter(Logo.org_id, caller))
            .filter(visible_filter(VariantLogoPosition.org_id, caller))
            .order_by(VariantLogoPosition.z_index.asc(), VariantLogoPosition.id.asc())
            .all()
        )

        logos: dict[int, dict] = {}
        variants: dict[int, dict[int, dict]] = defaultdict(dict)
        for position, logo, logo_variant, placement in rows:
            if logo.id not in logos:
                logos[logo.id] = {"id": logo.id, "title": logo.title, "org_id": logo.org_id}
            by_variant = variants[logo.id]
            if logo_variant.id not in by_variant:
                by_variant[logo_variant.id] = {
                    "id": logo_variant.id,
                    "color": logo_variant.color,
                    "asset_url": logo_variant.asset_url,
                    "placements": [],
                }
            by_variant[logo_variant.id]["placements"].append({
                "position_id": position.id,
                "id": placement.id,
                "name": placement.name,
                "view": placement.view,
                "view_type": position.view_type,
                "x": position.position_x_percent,
                "y": position.position_y_percent,
                "w": position.width_percent,
                "h": position.height_percent,
                "z_index": position.z_index,
            })

        result = []
        for logo_id, data in logos.items():
            data["variants"] = list(variants[logo_id].values())
            result.append(data)
        return result
