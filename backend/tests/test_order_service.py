# Overview: Pytest coverage for checkout atomicity and the order status lifecycle.

"""
Order Transaction Engine Tests

CHECKOUT INVARIANTS:
1. Order total = sum(unit_total_cents * quantity) over the open cart
2. Order insert and every consumed flip commit together or not at all
3. A committed order is never undone by a notifier failure
4. Status moves only along the allowed transitions
"""

import pytest
from sqlalchemy.exc import OperationalError
from storefront.errors import (
    AuthorizationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from storefront.models import CartItem, Order, OrderNote, OrderStatus, User
from storefront.services.order_service import (
    ALLOWED_TRANSITIONS,
    can_transition,
    generate_batch_id,
    parse_status,
)
from storefront.services.order_snapshot import OrderSnapshot
from storefront.services.tenant_service import create_address
from storefront.time_utils import utcnow


@pytest.fixture
def filled_cart(services, customization_a, shopper_a):
    """Two lines: 2 x 12.50 and 1 x 9.99 = 34.99"""
    first = services.cart.add_item({"customization_id": customization_a["id"], "quantity": 2,
                                    "unit_total_cents": 1250}, shopper_a)
    second = services.cart.add_item({"customization_id": customization_a["id"], "quantity": 1,
                                     "unit_total_cents": 999}, shopper_a)
    return [first["id"], second["id"]]


class EmailLookupFails:
    """Session stand-in whose recipient e-mail lookup hits a database error."""

    def __init__(self, session):
        self._session = session

    def query(self, *entities):
        if entities and entities[0] is User.email:
            raise OperationalError("SELECT users.email", {}, Exception("QueuePool limit reached"))
        return self._session.query(*entities)

    def __getattr__(self, name):
        return getattr(self._session, name)


@pytest.fixture
def pending_order(services, filled_cart, shopper_a, addresses_a):
    return services.orders.create_order(shopper_a, *addresses_a)


class TestStatusRules:
    def test_parse_status(self):
        assert parse_status("Shipped") is OrderStatus.SHIPPED
        with pytest.raises(ValidationError):
            parse_status("shipped")
        with pytest.raises(ValidationError):
            parse_status("Lost")

    def test_terminal_states(self):
        for status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED):
            assert ALLOWED_TRANSITIONS[status] == frozenset()

    def test_transitions(self):
        assert can_transition(OrderStatus.PENDING, OrderStatus.PROCESSING)
        assert can_transition(OrderStatus.PROCESSING, OrderStatus.CANCELLED)
        assert can_transition(OrderStatus.SHIPPED, OrderStatus.RETURNED)
        assert not can_transition(OrderStatus.PENDING, OrderStatus.DELIVERED)
        assert not can_transition(OrderStatus.PENDING, OrderStatus.PENDING)

    def test_batch_id_format(self):
        batch_id = generate_batch_id()
        prefix, millis, suffix = batch_id.split("-")
        assert prefix == "ORD"
        assert millis.isdigit()
        assert len(suffix) == 6
        assert generate_batch_id() != batch_id


class TestCreateOrder:
    def test_total_and_consumption(self, services, filled_cart, shopper_a, org_a, addresses_a, db_session):
        order = services.orders.create_order(shopper_a, *addresses_a)

        assert order["total_amount_cents"] == 3499
        assert order["total_amount"] == "34.99"
        assert order["status"] == "Pending"
        assert order["org_id"] == org_a.id
        assert order["batch_id"].startswith("ORD-")
        assert order["cart_item_ids"] == filled_cart
        assert len(order["customization_ids"]) == 1
        assert order["notes"] == []

        rows = db_session.query(CartItem).filter(CartItem.id.in_(filled_cart)).all()
        assert all(r.consumed for r in rows)
        assert all(r.order_id == order["id"] for r in rows)
        assert services.cart.list_open_items(shopper_a)["count"] == 0

    def test_snapshot_survives_cart_purge(self, services, pending_order, db_session):
        db_session.query(CartItem).delete()
        db_session.commit()

        snapshot = OrderSnapshot.from_json(db_session.get(Order, pending_order["id"]).snapshot_json)
        assert snapshot.total_cents == 3499
        assert [line.quantity for line in snapshot.lines] == [2, 1]

    def test_empty_cart(self, services, shopper_a, addresses_a, db_session):
        with pytest.raises(BusinessRuleError) as exc:
            services.orders.create_order(shopper_a, *addresses_a)
        assert exc.value.code == "NoItemsInCart"
        assert exc.value.message == "No items in the cart yet."
        assert db_session.query(Order).count() == 0

    def test_second_checkout_finds_empty_cart(self, services, pending_order, shopper_a, addresses_a):
        with pytest.raises(BusinessRuleError):
            services.orders.create_order(shopper_a, *addresses_a)

    def test_addresses_required(self, services, filled_cart, shopper_a):
        with pytest.raises(ValidationError):
            services.orders.create_order(shopper_a, None, None)

    def test_someone_elses_address(self, services, filled_cart, shopper_a, shopper_b, addresses_a, db_session):
        other = create_address(user_id=shopper_b.user_id, kind="shipping", line1="2 Side St", city="Shelbyville")
        with pytest.raises(NotFoundError):
            services.orders.create_order(shopper_a, other.id, addresses_a[1])
        assert db_session.query(Order).count() == 0

    def test_failure_mid_checkout_rolls_back(self, services, filled_cart, shopper_a, addresses_a,
                                             db_session, monkeypatch):
        """The order insert is undone when flipping the cart rows fails."""

        def boom(item_ids, order_id):
            raise RuntimeError("simulated failure after order insert")

        monkeypatch.setattr(services.cart, "mark_consumed", boom)

        with pytest.raises(RuntimeError):
            services.orders.create_order(shopper_a, *addresses_a)

        assert db_session.query(Order).count() == 0
        open_rows = db_session.query(CartItem).filter(CartItem.consumed.is_(False)).count()
        assert open_rows == len(filled_cart)

    def test_confirmation_sent(self, services, pending_order, notifier):
        assert len(notifier.sent) == 1
        to_address, subject, body = notifier.sent[0]
        assert to_address == "shopper@acme.test"
        assert subject == f"Order {pending_order['batch_id']} received"
        assert "34.99" in body

    def test_notifier_failure_does_not_undo_order(self, services, filled_cart, shopper_a, addresses_a,
                                                  notifier, db_session):
        notifier.fail = True
        order = services.orders.create_order(shopper_a, *addresses_a)
        assert db_session.get(Order, order["id"]) is not None

    def test_recipient_lookup_failure_does_not_fail_checkout(self, services, filled_cart, shopper_a, addresses_a,
                                                             notifier, db_session, monkeypatch):
        monkeypatch.setattr(services.orders, "session", EmailLookupFails(services.orders.session))

        order = services.orders.create_order(shopper_a, *addresses_a)

        assert order["status"] == "Pending"
        assert db_session.query(Order).count() == 1
        assert notifier.sent == []


class TestUpdateStatus:
    def test_transition_with_note(self, services, pending_order, manager_a, notifier):
        order = services.orders.update_status(pending_order["id"], "Processing", "Printing today", manager_a)

        assert order["status"] == "Processing"
        assert len(order["notes"]) == 1
        assert order["notes"][0]["note"] == "Printing today"
        assert order["notes"][0]["status_at_note"] == "Processing"
        assert notifier.sent[-1][1] == f"Order #{pending_order['id']} Update"

    def test_invalid_status(self, services, pending_order, admin_a):
        with pytest.raises(ValidationError):
            services.orders.update_status(pending_order["id"], "Teleported", None, admin_a)

    def test_disallowed_transition(self, services, pending_order, admin_a, db_session):
        with pytest.raises(ConflictError) as exc:
            services.orders.update_status(pending_order["id"], "Delivered", "skip ahead", admin_a)
        assert exc.value.details["allowed"] == ["Cancelled", "Processing"]
        assert db_session.query(OrderNote).count() == 0

    def test_terminal_state_is_final(self, services, pending_order, admin_a):
        services.orders.update_status(pending_order["id"], "Cancelled", None, admin_a)
        with pytest.raises(ConflictError):
            services.orders.update_status(pending_order["id"], "Processing", None, admin_a)

    def test_same_status_conflicts(self, services, pending_order, admin_a):
        with pytest.raises(ConflictError):
            services.orders.update_status(pending_order["id"], "Pending", None, admin_a)

    def test_user_cannot_update(self, services, pending_order, shopper_a):
        with pytest.raises(AuthorizationError):
            services.orders.update_status(pending_order["id"], "Processing", None, shopper_a)

    def test_other_org_admin_sees_nothing(self, services, pending_order, admin_b):
        with pytest.raises(NotFoundError):
            services.orders.update_status(pending_order["id"], "Processing", None, admin_b)

    def test_notifier_failure_is_swallowed(self, services, pending_order, admin_a, notifier):
        notifier.fail = True
        order = services.orders.update_status(pending_order["id"], "Processing", None, admin_a)
        assert order["status"] == "Processing"

    def test_recipient_lookup_failure_is_swallowed(self, services, pending_order, admin_a, notifier,
                                                   db_session, monkeypatch):
        notifier.reset()
        monkeypatch.setattr(services.orders, "session", EmailLookupFails(services.orders.session))

        order = services.orders.update_status(pending_order["id"], "Processing", "Printing", admin_a)

        assert order["status"] == "Processing"
        assert db_session.get(Order, pending_order["id"]).status == "Processing"
        assert notifier.sent == []

    def test_add_note(self, services, pending_order, admin_a):
        note = services.orders.add_note(pending_order["id"], "Customer called", admin_a)
        assert note["status_at_note"] == "Pending"
        with pytest.raises(ValidationError):
            services.orders.add_note(pending_order["id"], "   ", admin_a)


class TestOrderReads:
    def test_get_order_scoping(self, services, pending_order, shopper_a, shopper_b, admin_a, admin_b, superadmin):
        for caller in (shopper_a, admin_a, superadmin):
            assert services.orders.get_order(pending_order["id"], caller)["id"] == pending_order["id"]
        for caller in (shopper_b, admin_b):
            with pytest.raises(NotFoundError):
                services.orders.get_order(pending_order["id"], caller)

    def test_list_orders(self, services, pending_order, shopper_a, admin_b, superadmin, org_a):
        assert services.orders.list_orders(shopper_a)["count"] == 1
        assert services.orders.list_orders(admin_b)["count"] == 0
        assert services.orders.list_orders(superadmin, {"org_id": org_a.id})["count"] == 1
        assert services.orders.list_orders(superadmin, {"status": "Shipped"})["count"] == 0

    def test_status_summary(self, services, pending_order, admin_a, admin_b):
        summary = services.orders.order_status_summary(admin_a)
        assert summary["total"] == 1
        assert summary["counts"]["Pending"] == 1
        assert set(summary["counts"]) == {s.value for s in OrderStatus}

        assert services.orders.order_status_summary(admin_b)["total"] == 0


class TestOrderReports:
    def _backdate(self, db_session, order_id, when):
        db_session.get(Order, order_id).created_at = when
        db_session.commit()

    def test_order_summary_scoping(self, services, pending_order, admin_a, admin_b, superadmin, org_b):
        assert services.orders.order_summary(admin_a)["total_orders"] == 1
        assert services.orders.order_summary(admin_b)["total_orders"] == 0
        assert services.orders.order_summary(superadmin)["total_orders"] == 1
        assert services.orders.order_summary(superadmin, org_id=str(org_b.id))["total_orders"] == 0

    def test_staff_org_id_param_is_ignored(self, services, pending_order, admin_b, org_a):
        assert services.orders.order_summary(admin_b, org_id=org_a.id)["total_orders"] == 0

    def test_timeframe_excludes_older_orders(self, services, pending_order, admin_a, db_session):
        now = utcnow()
        self._backdate(db_session, pending_order["id"], now.replace(year=now.year - 2, month=6, day=1))

        assert services.orders.order_summary(admin_a)["total_orders"] == 1
        for timeframe in ("day", "week", "month", "year"):
            assert services.orders.order_summary(admin_a, timeframe=timeframe)["total_orders"] == 0
        assert services.orders.order_status_summary(admin_a, timeframe="year")["total"] == 0
        assert services.orders.order_status_summary(admin_a)["counts"]["Pending"] == 1

    def test_trends_default_to_months_of_this_year(self, services, pending_order, admin_a, db_session):
        now = utcnow()
        self._backdate(db_session, pending_order["id"], now.replace(month=1, day=1, hour=9, minute=0,
                                                                   second=0, microsecond=0))

        trends = services.orders.order_trends(admin_a)

        assert trends["timeframe"] == "year"
        assert trends["periods"] == [{"period": "Jan", "total_orders": 1}]
        assert trends["total"] == 1

    def test_trends_by_hour_today(self, services, pending_order, admin_a, db_session):
        today = utcnow().replace(hour=0, minute=30, second=0, microsecond=0)
        self._backdate(db_session, pending_order["id"], today)

        trends = services.orders.order_trends(admin_a, timeframe="day")
        assert trends["periods"] == [{"period": "00:00", "total_orders": 1}]

    def test_invalid_timeframe(self, services, admin_a):
        with pytest.raises(ValidationError):
            services.orders.order_summary(admin_a, timeframe="decade")

    def test_shopper_cannot_read_reports(self, services, shopper_a):
        with pytest.raises(AuthorizationError):
            services.orders.order_trends(shopper_a)
