"""
CustomizationComposer: binds a product variant, a logo variant and a
placement into one purchasable Customization.

A customization becomes immutable once a consumed cart item (i.e. an
order) references it; orders address customizations by id.
"""

from __future__ import annotations

import logging

from ..errors import AuthorizationError, ConflictError, NotFoundError
from ..models import (
    CartItem,
    Customization,
    Logo,
    LogoPlacement,
    LogoVariant,
    Product,
    ProductVariant,
    User,
)
from ..permissions import Role
from ..validation import coerce_int
from .access_service import Caller, authorize, can_see
from .collaborators import AssetStore, Upload, safe_delete_assets, upload_asset
from .concurrency import run_with_retry, transaction_scope

logger = logging.getLogger(__name__)


class CustomizationComposer:
    def __init__(self, session, *, assets: AssetStore | None = None, retry_attempts: int = 3,
                 retry_backoff: float = 0.1):
        self.session = session
        self.assets = assets
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _run(self, op):
        return run_with_retry(op, session=self.session, attempts=self.retry_attempts,
                              backoff_base=self.retry_backoff)

    def _may_act_for(self, caller: Caller, user_id: int) -> bool:
        """Owner, SuperAdmin, or Admin/Manager of the owner's organization."""
        if caller.user_id == user_id or caller.is_super_admin:
            return True
        if caller.role not in (Role.ADMIN, Role.MANAGER):
            return False
        owner_org = self.session.query(User.org_id).filter(User.id == user_id).scalar()
        return owner_org is not None and owner_org == caller.org_id

    def _missing_references(self, product_variant_id: int, logo_variant_id: int, placement_id: int,
                            caller: Caller) -> list[str]:
        missing = []

        product_org = (
            self.session.query(Product.org_id)
            .join(ProductVariant, ProductVariant.product_id == Product.id)
            .filter(ProductVariant.id == product_variant_id)
            .first()
        )
        if product_org is None or not can_see(caller, product_org[0]):
            missing.append("product_variant_id")

        logo_org = (
            self.session.query(Logo.org_id)
            .join(LogoVariant, LogoVariant.logo_id == Logo.id)
            .filter(LogoVariant.id == logo_variant_id)
            .first()
        )
        if logo_org is None or not can_see(caller, logo_org[0]):
            missing.append("logo_variant_id")

        if self.session.get(LogoPlacement, placement_id) is None:
            missing.append("placement_id")
        return missing

    def compose(self, user_id: int | None, product_variant_id, logo_variant_id, placement_id, caller: Caller, *,
                preview_asset_ref: str | None = None, preview: Upload | None = None) -> dict:
        """
        Validate all three references, then insert the Customization.

        References that do not exist, or are hidden from the caller, are
        listed together in one NotFoundError. A preview file is uploaded
        before the insert; preview_asset_ref is used when no file is given.
        """
        authorize(caller, "COMPOSE_CUSTOMIZATION")
        user_id = caller.user_id if user_id is None else coerce_int(user_id, "user_id")
        product_variant_id = coerce_int(product_variant_id, "product_variant_id")
        logo_variant_id = coerce_int(logo_variant_id, "logo_variant_id")
        placement_id = coerce_int(placement_id, "placement_id")

        if not self._may_act_for(caller, user_id):
            raise AuthorizationError("You may only compose customizations for yourself")

        missing = self._missing_references(product_variant_id, logo_variant_id, placement_id, caller)
        if missing:
            raise NotFoundError(
                f"Referenced records not found: {', '.join(missing)}",
                {"missing": missing},
            )

        if preview is not None:
            preview_asset_ref = upload_asset(self.assets, preview.data, "previews", preview.filename)

        def _op() -> dict:
            with transaction_scope(self.session):
                row = Customization(
                    user_id=user_id,
                    product_variant_id=product_variant_id,
                    logo_variant_id=logo_variant_id,
                    placement_id=placement_id,
                    preview_asset_ref=preview_asset_ref,
                )
                self.session.add(row)
                self.session.flush()
                return row.to_dict()

        result = self._run(_op)
        logger.info("Customization %s composed for user_id=%s", result["id"], user_id)
        return result

    def get_customization(self, customization_id: int, caller: Caller) -> Customization:
        row = self.session.get(Customization, customization_id)
        if row is None or not self._may_act_for(caller, row.user_id):
            raise NotFoundError("Customization not found", {"customization_id": customization_id})
        return row

    def list_customizations(self, caller: Caller) -> list[dict]:
        """
        SuperAdmin: all rows. Admin/Manager: rows of users in their org.
        User: own rows.
        """
        authorize(caller, "COMPOSE_CUSTOMIZATION")
        query = self.session.query(Customization)
        if caller.is_super_admin:
            pass
        elif caller.role in (Role.ADMIN, Role.MANAGER):
            query = query.join(User, User.id == Customization.user_id).filter(User.org_id == caller.org_id)
        else:
            query = query.filter(Customization.user_id == caller.user_id)
        rows = query.order_by(Customization.created_at.desc(), Customization.id.desc()).all()
        return [r.to_dict() for r in rows]

    def delete_customization(self, customization_id: int, caller: Caller) -> bool:
        """
        Rejected with ConflictError once an order references it. Open cart
        rows pointing at it are removed in the same transaction.
        """
        authorize(caller, "COMPOSE_CUSTOMIZATION")
        row = self.get_customization(customization_id, caller)
        preview_ref = row.preview_asset_ref

        def _op() -> int:
            with transaction_scope(self.session):
                ordered = (
                    self.session.query(CartItem.id)
                    .filter(CartItem.customization_id == customization_id, CartItem.consumed.is_(True))
                    .first()
                )
                if ordered:
                    raise ConflictError(
                        "Customization is referenced by an order and cannot be deleted",
                        {"customization_id": customization_id},
                    )
                removed_items = (
                    self.session.query(CartItem)
                    .filter(CartItem.customization_id == customization_id, CartItem.consumed.is_(False))
                    .delete(synchronize_session=False)
                )
                self.session.query(Customization).filter(
                    Customization.id == customization_id
                ).delete(synchronize_session=False)
                return removed_items

        removed_items = self._run(_op)
        safe_delete_assets(self.assets, [preview_ref])
        logger.info("Customization %s deleted by user_id=%s (%d open cart rows removed)",
                    customization_id, caller.user_id, removed_items)
        return True
