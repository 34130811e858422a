"""
Pytest fixtures for storefront backend tests.

Provides an in-memory database, per-test table wipe, two tenants with
staff and shopper callers, and in-memory collaborators that record calls.
"""

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import Category
from storefront.services import get_services
from storefront.services.access_service import Caller
from storefront.services.tenant_service import create_address, create_organization, create_user


class RecordingAssetStore:
    """Asset store double: keeps uploads in memory, can be told to fail."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.uploaded = {}
        self.deleted = []
        self.fail_uploads = False
        self.fail_deletes = False
        self._counter = 0

    def upload(self, data, folder, filename=None):
        if self.fail_uploads:
            raise RuntimeError("asset store unavailable")
        self._counter += 1
        ref = f"mem://{folder}/{self._counter}-{filename or 'blob'}"
        self.uploaded[ref] = data
        return ref

    def delete(self, ref):
        if self.fail_deletes:
            raise RuntimeError("asset store unavailable")
        self.deleted.append(ref)
        self.uploaded.pop(ref, None)


class RecordingNotifier:
    def __init__(self):
        self.reset()

    def reset(self):
        self.sent = []
        self.fail = False

    def send(self, to_address, subject, html_body):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((to_address, subject, html_body))


@pytest.fixture(scope='session')
def assets():
    return RecordingAssetStore()


@pytest.fixture(scope='session')
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope='session')
def app(assets, notifier):
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'JWT_SECRET': 'test-secret',
            'DB_RETRY_BACKOFF': 0,
        },
        assets=assets,
        notifier=notifier,
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app, assets, notifier):
    """Fresh data for each test (schema is kept)."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        assets.reset()
        notifier.reset()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def services(app, db_session):
    return get_services(app)


# -- Tenants -------------------------------------------------------------

@pytest.fixture(scope='function')
def org_a(db_session):
    return create_organization(title="Org A - Acme Corp")


@pytest.fixture(scope='function')
def org_b(db_session):
    return create_organization(title="Org B - Beta Inc")


def _caller(user):
    return Caller(user_id=user.id, role=user.role, org_id=user.org_id)


@pytest.fixture(scope='function')
def superadmin(db_session):
    return _caller(create_user(email="root@storefront.test", role="SuperAdmin"))


@pytest.fixture(scope='function')
def admin_a(org_a):
    return _caller(create_user(email="admin@acme.test", role="Admin", org_id=org_a.id))


@pytest.fixture(scope='function')
def manager_a(org_a):
    return _caller(create_user(email="manager@acme.test", role="Manager", org_id=org_a.id))


@pytest.fixture(scope='function')
def shopper_a(org_a):
    return _caller(create_user(email="shopper@acme.test", role="User", org_id=org_a.id,
                               first_name="Sam", last_name="Shopper"))


@pytest.fixture(scope='function')
def admin_b(org_b):
    return _caller(create_user(email="admin@beta.test", role="Admin", org_id=org_b.id))


@pytest.fixture(scope='function')
def shopper_b(org_b):
    return _caller(create_user(email="shopper@beta.test", role="User", org_id=org_b.id))


# -- Catalog -------------------------------------------------------------

@pytest.fixture(scope='function')
def global_category(db_session):
    category = Category(org_id=None, title="Apparel")
    db_session.add(category)
    db_session.commit()
    return category.id


@pytest.fixture(scope='function')
def make_product(services, global_category):
    """Factory: make_product(caller, sku=..., **overrides) -> product dict."""

    def _make(caller, sku="TEE-001", **overrides):
        payload = {
            "title": "Classic Tee",
            "description": "Heavyweight cotton tee",
            "sku": sku,
            "category_id": global_category,
            "price_cents": 1500,
            "images": ["https://cdn.test/tee-front.png"],
            "variants": [
                {
                    "sku": f"{sku}-BLK",
                    "color": "Black",
                    "sizes": [
                        {"size": "M", "stock_quantity": 10},
                        {"size": "XL", "price_adjustment_cents": 200, "stock_quantity": 4},
                    ],
                    "images": [{"url": "https://cdn.test/tee-blk-back.png", "type": "back"}],
                },
            ],
        }
        payload.update(overrides)
        return services.catalog.create_product(payload, caller)

    return _make


@pytest.fixture(scope='function')
def logo_a(services, admin_a):
    return services.logos.create_logo(
        "Acme Mark",
        [{"color": "White", "asset_url": "https://cdn.test/acme-white.png"}],
        ["Left Chest", "Full Back"],
        admin_a,
    )


@pytest.fixture(scope='function')
def customization_a(services, make_product, superadmin, logo_a, shopper_a):
    """A shopper_a customization on a global product with the Acme logo."""
    product = make_product(superadmin, sku="GLOBAL-TEE")
    logo_variant = logo_a["variants"][0]
    return services.customizations.compose(
        None,
        product["variants"][0]["id"],
        logo_variant["id"],
        logo_variant["placements"][0]["id"],
        shopper_a,
    )


@pytest.fixture(scope='function')
def addresses_a(shopper_a):
    shipping = create_address(user_id=shopper_a.user_id, kind="shipping", line1="1 Main St", city="Springfield")
    billing = create_address(user_id=shopper_a.user_id, kind="billing", line1="9 Bank Rd", city="Springfield")
    return shipping.id, billing.id


@pytest.fixture(scope='function')
def headers_for(app):
    """headers_for(caller) -> Bearer header issued by the app's identity provider."""

    def _headers(caller) -> dict:
        token = get_services(app).identity.issue(caller)
        return {'Authorization': f'Bearer {token}'}

    return _headers
