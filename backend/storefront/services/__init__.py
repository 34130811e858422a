# Overview: Service container built once per app and shared by every request.

"""
USAGE:
    from storefront.services import get_services

    services = get_services()
    services.orders.create_order(caller, shipping_id, billing_id)

Every store receives the scoped session (one real session per app context)
and its collaborators through the constructor; nothing here opens a
connection of its own.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from .cart_service import CartLedger
from .catalog_service import CatalogStore
from .category_service import CategoryStore
from .collaborators import AssetStore, LocalAssetStore, LoggingNotifier, Notifier, SmtpNotifier
from .customization_service import CustomizationComposer
from .identity_service import IdentityProvider, JwtIdentityProvider
from .logo_position_service import LogoPositionStore
from .logo_service import LogoStore
from .order_service import OrderTransactionEngine


@dataclass
class StorefrontServices:
    catalog: CatalogStore
    categories: CategoryStore
    logos: LogoStore
    positions: LogoPositionStore
    customizations: CustomizationComposer
    cart: CartLedger
    orders: OrderTransactionEngine
    identity: IdentityProvider
    assets: AssetStore
    notifier: Notifier


def build_notifier(config) -> Notifier:
    if config.get("NOTIFIER_BACKEND") == "smtp":
        return SmtpNotifier(
            smtp_host=config["MAIL_HOST"],
            smtp_port=config["MAIL_PORT"],
            username=config.get("MAIL_USERNAME", ""),
            password=config.get("MAIL_PASSWORD", ""),
            sender=config["MAIL_FROM"],
            sender_name=config.get("MAIL_FROM_NAME", ""),
            use_ssl=config.get("MAIL_USE_SSL", False),
        )
    return LoggingNotifier()


def build_services(config, *, session=None, assets: AssetStore | None = None,
                   notifier: Notifier | None = None,
                   identity: IdentityProvider | None = None) -> StorefrontServices:
    """Construct every store once; collaborators may be swapped in (tests do)."""
    session = session if session is not None else db.session
    assets = assets or LocalAssetStore(config["ASSET_ROOT"], config.get("ASSET_BASE_URL", "/assets"))
    notifier = notifier or build_notifier(config)
    identity = identity or JwtIdentityProvider(
        config["JWT_SECRET"],
        config.get("JWT_ALGORITHM", "HS256"),
        config.get("JWT_EXPIRE_MINUTES", 720),
    )
    retry = {
        "retry_attempts": config.get("DB_RETRY_ATTEMPTS", 3),
        "retry_backoff": config.get("DB_RETRY_BACKOFF", 0.1),
    }

    cart = CartLedger(session, **retry)
    logos = LogoStore(session, assets=assets, **retry)
    return StorefrontServices(
        catalog=CatalogStore(session, assets=assets, **retry),
        categories=CategoryStore(session, **retry),
        logos=logos,
        positions=LogoPositionStore(session, logos=logos, **retry),
        customizations=CustomizationComposer(session, assets=assets, **retry),
        cart=cart,
        orders=OrderTransactionEngine(session, cart=cart, notifier=notifier, **retry),
        identity=identity,
        assets=assets,
        notifier=notifier,
    )


def get_services(app=None) -> StorefrontServices:
    app = app or current_app
    return app.extensions["storefront"]
