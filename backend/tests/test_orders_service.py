# Overview: Pytest coverage for order creation, lifetime-sales booking and fulfillment.

from datetime import timedelta

import pytest

from app.extensions import db
from app.limits import LimitExceededError
from app.models import ActivityEvent, Order
from app.services import orders_service, products_service, subscription_service
from app.services.orders_service import OrderError
from app.services.tenant_service import TenantAccessError
from app.settlement import InvalidTransitionError
from app.time_utils import utcnow
from app.validation import ConflictError, ValidationError


@pytest.fixture
def store_products(db_session, merchant_a, catalog_product, second_catalog_product):
    """Merchant A sells the earbuds at $12 (cost $10) and the stand at $20 (cost $15)."""
    earbuds = products_service.import_product(
        merchant_id=merchant_a.id, product_id=catalog_product["id"],
        pricing_rule={"type": "percentage", "value": 20},
    )
    stand = products_service.import_product(
        merchant_id=merchant_a.id, product_id=second_catalog_product["id"],
        pricing_rule={"type": "fixed", "value": 500},
    )
    return earbuds["id"], stand["id"]


def _payload(store_products, **overrides) -> dict:
    earbuds, stand = store_products
    payload = {
        "order_number": "#1001",
        "customer_email": "Buyer@Example.com",
        "shipping_address": {"line1": "1 Main St", "city": "Springfield", "country": "US"},
        "items": [
            {"product_id": earbuds, "quantity": 2},
            {"product_id": stand, "quantity": 1},
        ],
        "shipping_cents": 500,
        "tax_cents": 200,
    }
    payload.update(overrides)
    return payload


def _lifetime_sales(merchant_id: int) -> int:
    db.session.expire_all()
    return subscription_service.require_subscription(merchant_id).lifetime_sales_cents


class TestCreateOrder:
    def test_financials_and_snapshots(self, db_session, merchant_a, store_products):
        order, created = orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))

        assert created is True
        assert order["customer_email"] == "buyer@example.com"
        assert order["financials"]["subtotal_cents"] == 4400
        assert order["financials"]["total_cost_cents"] == 3500
        assert order["financials"]["total_profit_cents"] == 900
        assert order["financials"]["total_cents"] == 5100
        assert order["status"] == "pending"
        assert order["fulfillment_status"] == "unfulfilled"
        assert order["sales_recorded_at"] is not None
        assert [i["profit_cents"] for i in order["items"]] == [200, 500]
        assert order["timeline"][0]["status"] == "created"

    def test_total_feeds_lifetime_sales(self, db_session, merchant_a, store_products):
        orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))
        assert _lifetime_sales(merchant_a.id) == 5100

    def test_duplicate_order_number_books_once(self, db_session, merchant_a, store_products):
        first, created = orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))
        again, created_again = orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))

        assert created is True
        assert created_again is False
        assert again["id"] == first["id"]
        assert _lifetime_sales(merchant_a.id) == 5100
        assert db.session.query(Order).filter_by(merchant_id=merchant_a.id).count() == 1

    def test_order_number_reuse_with_other_content_conflicts(self, db_session, merchant_a, store_products):
        orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))
        earbuds, _stand = store_products

        with pytest.raises(ConflictError):
            orders_service.create_order(
                merchant_id=merchant_a.id,
                payload=_payload(store_products, items=[{"product_id": earbuds, "quantity": 5}]),
            )

    def test_same_number_is_fine_for_another_merchant(
        self, db_session, merchant_a, merchant_b, catalog_product, store_products
    ):
        orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))

        copy = products_service.import_product(merchant_id=merchant_b.id, product_id=catalog_product["id"])
        order, created = orders_service.create_order(
            merchant_id=merchant_b.id,
            payload=_payload(store_products, items=[{"product_id": copy["id"], "quantity": 1}]),
        )
        assert created is True
        assert order["merchant_id"] == merchant_b.id

    def test_prices_are_snapshotted(self, db_session, merchant_a, store_products):
        order, _ = orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))
        earbuds, _stand = store_products
        products_service.update_product_pricing(earbuds, {"type": "percentage", "value": 100}, merchant_id=merchant_a.id)

        stored = orders_service.get_order(order["id"], merchant_a.id)
        assert stored["items"][0]["price_cents"] == 1200
        assert stored["financials"]["total_cents"] == 5100

    def test_explicit_line_price(self, db_session, merchant_a, store_products):
        earbuds, _stand = store_products
        order, _ = orders_service.create_order(
            merchant_id=merchant_a.id,
            payload=_payload(store_products, items=[{"product_id": earbuds, "quantity": 1, "price_cents": 999}],
                             shipping_cents=0, tax_cents=0),
        )
        assert order["financials"]["total_cents"] == 999
        assert order["financials"]["total_profit_cents"] == -1

    def test_oversized_discount_clamps(self, db_session, merchant_a, store_products):
        order, _ = orders_service.create_order(
            merchant_id=merchant_a.id, payload=_payload(store_products, discount_cents=100_000)
        )
        assert order["financials"]["total_cents"] == 0
        assert order["financials"]["discount_clamped"] is True
        assert _lifetime_sales(merchant_a.id) == 0

    @pytest.mark.parametrize("overrides, field", [
        ({"order_number": ""}, "order_number"),
        ({"items": []}, "items"),
        ({"items": [{"product_id": 1, "quantity": 0}]}, "items[0].quantity"),
        ({"customer_email": "not-an-email"}, "email"),
        ({"shipping_cents": -5}, "shipping_cents"),
        ({"payment_status": "refunded"}, "payment_status"),
    ])
    def test_invalid_payloads(self, db_session, merchant_a, store_products, overrides, field):
        with pytest.raises(ValidationError) as exc:
            orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products, **overrides))
        assert exc.value.field == field

    def test_foreign_product_rejected(self, db_session, merchant_a, merchant_b, store_products):
        earbuds, _stand = store_products
        with pytest.raises(ValidationError):
            orders_service.create_order(
                merchant_id=merchant_b.id,
                payload=_payload(store_products, items=[{"product_id": earbuds, "quantity": 1}]),
            )
        db.session.rollback()
        assert _lifetime_sales(merchant_b.id) == 0

    def test_order_limit(self, db_session, merchant_a, store_products):
        sub = subscription_service.require_subscription(merchant_a.id)
        sub.order_limit = 1
        db.session.commit()

        orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))
        with pytest.raises(LimitExceededError) as exc:
            orders_service.create_order(
                merchant_id=merchant_a.id, payload=_payload(store_products, order_number="#1002")
            )
        db.session.rollback()

        assert (exc.value.resource, exc.value.used, exc.value.limit) == ("orders", 1, 1)
        assert _lifetime_sales(merchant_a.id) == 5100

    def test_order_that_crosses_threshold_unlocks(self, db_session, merchant_a, store_products):
        subscription_service.accumulate_lifetime_sales(merchant_a.id, 999_999)
        orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))

        db.session.expire_all()
        sub = subscription_service.require_subscription(merchant_a.id)
        assert sub.lifetime_sales_cents == 999_999 + 5100
        assert sub.status == "free_for_life"
        unlock_events = db.session.query(ActivityEvent).filter_by(
            merchant_id=merchant_a.id, event_type="subscription.free_for_life_unlocked"
        ).count()
        assert unlock_events == 1


class TestFulfillment:
    @pytest.fixture
    def order(self, db_session, merchant_a, store_products):
        order, _ = orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))
        return order

    def test_partial_then_fulfilled(self, db_session, merchant_a, order):
        updated = orders_service.update_item_fulfillment(
            order_id=order["id"], merchant_id=merchant_a.id, item_index=0,
            status="shipped", tracking_number="1Z999", carrier="UPS",
        )
        assert updated["fulfillment_status"] == "partial"
        assert updated["status"] == "processing"
        assert updated["items"][0]["tracking_number"] == "1Z999"

        updated = orders_service.update_item_fulfillment(
            order_id=order["id"], merchant_id=merchant_a.id, item_index=1, status="shipped",
        )
        assert updated["fulfillment_status"] == "fulfilled"
        assert updated["status"] == "processing"

        for index in (0, 1):
            updated = orders_service.update_item_fulfillment(
                order_id=order["id"], merchant_id=merchant_a.id, item_index=index, status="delivered",
            )
        assert updated["status"] == "completed"
        # Prices never move with fulfillment
        assert updated["financials"]["total_cents"] == 5100

    def test_backwards_transition_rejected(self, db_session, merchant_a, order):
        orders_service.update_item_fulfillment(
            order_id=order["id"], merchant_id=merchant_a.id, item_index=0, status="shipped",
        )
        with pytest.raises(InvalidTransitionError):
            orders_service.update_item_fulfillment(
                order_id=order["id"], merchant_id=merchant_a.id, item_index=0, status="processing",
            )

    def test_bad_item_index(self, db_session, merchant_a, order):
        with pytest.raises(ValidationError) as exc:
            orders_service.update_item_fulfillment(
                order_id=order["id"], merchant_id=merchant_a.id, item_index=5, status="shipped",
            )
        assert exc.value.field == "item_index"

    def test_foreign_order_hidden(self, db_session, merchant_b, order):
        with pytest.raises(TenantAccessError):
            orders_service.update_item_fulfillment(
                order_id=order["id"], merchant_id=merchant_b.id, item_index=0, status="shipped",
            )

    def test_cancel_keeps_lifetime_sales(self, db_session, merchant_a, order):
        cancelled = orders_service.cancel_order(order_id=order["id"], merchant_id=merchant_a.id, reason="Out of stock")

        assert cancelled["status"] == "cancelled"
        assert cancelled["fulfillment_status"] == "cancelled"
        assert {i["fulfillment_status"] for i in cancelled["items"]} == {"cancelled"}
        assert _lifetime_sales(merchant_a.id) == 5100

        with pytest.raises(OrderError):
            orders_service.cancel_order(order_id=order["id"], merchant_id=merchant_a.id)

    def test_cannot_cancel_after_shipping(self, db_session, merchant_a, order):
        orders_service.update_item_fulfillment(
            order_id=order["id"], merchant_id=merchant_a.id, item_index=0, status="shipped",
        )
        with pytest.raises(InvalidTransitionError):
            orders_service.cancel_order(order_id=order["id"], merchant_id=merchant_a.id)

    def test_refund_requires_payment(self, db_session, merchant_a, order):
        with pytest.raises(OrderError):
            orders_service.refund_order(order_id=order["id"], merchant_id=merchant_a.id)

        orders_service.update_order_status(order_id=order["id"], merchant_id=merchant_a.id, payment_status="paid")
        refunded = orders_service.refund_order(order_id=order["id"], merchant_id=merchant_a.id)

        assert refunded["status"] == "refunded"
        assert refunded["payment_status"] == "refunded"
        assert _lifetime_sales(merchant_a.id) == 5100

    def test_status_moves_forward_only(self, db_session, merchant_a, order):
        updated = orders_service.update_order_status(
            order_id=order["id"], merchant_id=merchant_a.id, status="processing", notes="Gift wrap"
        )
        assert updated["status"] == "processing"
        assert updated["notes"] == "Gift wrap"

        with pytest.raises(OrderError):
            orders_service.update_order_status(order_id=order["id"], merchant_id=merchant_a.id, status="pending")
        with pytest.raises(ValidationError):
            orders_service.update_order_status(order_id=order["id"], merchant_id=merchant_a.id, status="lost")


def test_list_orders_newest_first(db_session, merchant_a, store_products):
    for number in ("#1", "#2", "#3"):
        orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products, order_number=number))

    result = orders_service.list_orders(merchant_a.id, page=1, per_page=2)
    assert [o["order_number"] for o in result["items"]] == ["#3", "#2"]
    assert result["pagination"]["total"] == 3


class TestDashboardStats:
    def test_empty_store(self, db_session, merchant_a):
        stats = orders_service.dashboard_stats(merchant_a.id)
        assert stats["total_orders"] == 0
        assert stats["total_revenue_cents"] == 0
        assert stats["product_count"] == 0
        assert stats["product_limit"] == 25

    def test_totals_and_today(self, db_session, merchant_a, merchant_b, store_products):
        earbuds, _stand = store_products
        orders_service.create_order(merchant_id=merchant_a.id, payload=_payload(store_products))
        older, _ = orders_service.create_order(
            merchant_id=merchant_a.id,
            payload=_payload(store_products, order_number="#1002", items=[{"product_id": earbuds, "quantity": 1}]),
        )
        orders_service.update_order_status(order_id=older["id"], merchant_id=merchant_a.id, status="processing")
        stored = db.session.get(Order, older["id"])
        stored.created_at = utcnow() - timedelta(days=1)
        db.session.commit()

        stats = orders_service.dashboard_stats(merchant_a.id)
        assert stats == {
            "total_orders": 2,
            "total_revenue_cents": 5100 + 1900,
            "total_profit_cents": 900 + 200,
            "pending_orders": 1,
            "orders_today": 1,
            "revenue_today_cents": 5100,
            "profit_today_cents": 900,
            "product_count": 2,
            "product_limit": 25,
        }
        assert orders_service.dashboard_stats(merchant_b.id)["total_orders"] == 0

    def test_free_for_life_has_no_product_limit(self, db_session, merchant_a):
        subscription_service.accumulate_lifetime_sales(merchant_a.id, 1_000_000)
        assert orders_service.dashboard_stats(merchant_a.id)["product_limit"] == -1
