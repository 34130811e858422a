# Overview: Concurrency test for checkout against a file-backed SQLite database.

"""
CONCURRENCY TEST: two checkouts for the same cart race each other.

Exactly one order may be created; the loser must see an empty cart
(NoItemsInCart) and no cart row may be consumed twice. Each thread uses its
own app context, which gives it its own session and pooled connection.
"""

import threading

import pytest
from storefront import create_app
from storefront.errors import BusinessRuleError
from storefront.extensions import db
from storefront.models import CartItem, Category, Order
from storefront.services import get_services
from storefront.services.access_service import Caller
from storefront.services.tenant_service import create_address, create_organization, create_user


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'checkout.sqlite3'}",
        'ASSET_ROOT': str(tmp_path / 'assets'),
        'DB_RETRY_BACKOFF': 0.05,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _seed(app):
    with app.app_context():
        org = create_organization(title="Race Org")
        shopper = create_user(email="racer@race.test", role="User", org_id=org.id)
        caller = Caller(user_id=shopper.id, role=shopper.role, org_id=shopper.org_id)
        shipping = create_address(user_id=shopper.id, kind="shipping", line1="1 Track", city="Monza")
        billing = create_address(user_id=shopper.id, kind="billing", line1="1 Track", city="Monza")

        category = Category(org_id=None, title="Apparel")
        db.session.add(category)
        db.session.commit()

        services = get_services(app)
        product = services.catalog.create_product({
            "title": "Race Tee",
            "description": "Fast",
            "sku": "RACE-1",
            "category_id": category.id,
            "price_cents": 1000,
        }, Caller(user_id=1, role="SuperAdmin"))
        for qty in (1, 2, 3):
            services.cart.add_item({"product_id": product["id"], "quantity": qty,
                                    "unit_total_cents": 1000}, caller)
        return caller, shipping.id, billing.id


class TestConcurrentCheckout:
    def test_only_one_checkout_wins(self, file_app):
        caller, shipping_id, billing_id = _seed(file_app)
        barrier = threading.Barrier(2)
        results = []
        errors = []

        def checkout():
            with file_app.app_context():
                barrier.wait()
                try:
                    order = get_services(file_app).orders.create_order(caller, shipping_id, billing_id)
                    results.append(("order", order["id"]))
                except BusinessRuleError as e:
                    results.append(("empty", e.code))
                except Exception as e:
                    errors.append(e)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=checkout) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert sorted(kind for kind, _ in results) == ["empty", "order"]
        assert ("empty", "NoItemsInCart") in results

        order_id = next(value for kind, value in results if kind == "order")
        with file_app.app_context():
            assert db.session.query(Order).count() == 1
            order = db.session.get(Order, order_id)
            assert order.total_amount_cents == 6000

            items = db.session.query(CartItem).all()
            assert len(items) == 3
            assert all(i.consumed and i.order_id == order_id for i in items)
