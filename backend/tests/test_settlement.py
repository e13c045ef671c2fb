# Overview: Pytest coverage for order financials and the item fulfillment state machine.

import pytest

from app.settlement import (
    InvalidTransitionError,
    OrderItem,
    build_order_financials,
    can_transition,
    derive_fulfillment_status,
    transition_item,
)
from app.validation import ValidationError


def _items():
    return [
        OrderItem(product_id=1, quantity=2, price_cents=1200, cost_cents=1000),
        OrderItem(product_id=2, quantity=1, price_cents=2000, cost_cents=1500),
    ]


class TestOrderFinancials:
    def test_two_item_order(self):
        """$12 x2 + $20 x1, shipping $5, tax $2 -> subtotal $44, cost $35, profit $9, total $51."""
        financials = build_order_financials(_items(), shipping_cents=500, tax_cents=200, discount_cents=0)

        assert financials.subtotal_cents == 4400
        assert financials.total_cost_cents == 3500
        assert financials.total_profit_cents == 900
        assert financials.total_cents == 5100
        assert financials.discount_clamped is False

    def test_profit_ignores_shipping_tax_and_discount(self):
        plain = build_order_financials(_items())
        loaded = build_order_financials(_items(), shipping_cents=999, tax_cents=321, discount_cents=1000)

        assert plain.total_profit_cents == loaded.total_profit_cents == 900
        assert loaded.total_cents == 4400 + 999 + 321 - 1000

    def test_discount_larger_than_order_clamps_total(self):
        financials = build_order_financials(_items(), shipping_cents=500, discount_cents=10_000)

        assert financials.total_cents == 0
        assert financials.discount_clamped is True

    def test_empty_order_rejected(self):
        with pytest.raises(ValidationError) as exc:
            build_order_financials([])
        assert exc.value.field == "items"

    def test_negative_amounts_rejected(self):
        with pytest.raises(ValidationError) as exc:
            build_order_financials(_items(), shipping_cents=-1)
        assert exc.value.field == "shipping_cents"

        with pytest.raises(ValidationError):
            build_order_financials(_items(), discount_cents=-5)

    def test_float_cents_rejected(self):
        with pytest.raises(ValidationError):
            build_order_financials(_items(), tax_cents=1.5)


class TestOrderItem:
    def test_profit_is_derived(self):
        item = OrderItem(product_id=1, quantity=3, price_cents=1200, cost_cents=1000)
        assert item.profit_cents == 200
        assert item.line_total_cents == 3600
        assert item.line_cost_cents == 3000

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            OrderItem(product_id=1, quantity=0, price_cents=100, cost_cents=50)

    def test_dict_round_trip_drops_stored_profit(self):
        item = OrderItem(product_id=7, quantity=1, price_cents=500, cost_cents=300, title="Mug")
        data = item.to_dict()
        data["profit_cents"] = 99999

        restored = OrderItem.from_dict(data)
        assert restored == item
        assert restored.profit_cents == 200

    def test_is_immutable(self):
        item = _items()[0]
        with pytest.raises(Exception):
            item.price_cents = 1


class TestFulfillmentStateMachine:
    @pytest.mark.parametrize("current, target", [
        ("pending", "processing"),
        ("pending", "shipped"),
        ("processing", "delivered"),
        ("shipped", "delivered"),
        ("pending", "cancelled"),
        ("processing", "cancelled"),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current, target", [
        ("shipped", "processing"),
        ("delivered", "shipped"),
        ("shipped", "cancelled"),
        ("delivered", "cancelled"),
        ("cancelled", "processing"),
        ("pending", "pending"),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)

    def test_transition_returns_new_item(self):
        item = _items()[0]
        shipped = transition_item(item, "shipped", tracking_number="1Z999", carrier="UPS")

        assert item.fulfillment_status == "pending"
        assert shipped.fulfillment_status == "shipped"
        assert shipped.tracking_number == "1Z999"
        assert shipped.carrier == "UPS"
        assert shipped.price_cents == item.price_cents

    def test_illegal_transition_raises(self):
        delivered = transition_item(_items()[0], "delivered")
        with pytest.raises(InvalidTransitionError) as exc:
            transition_item(delivered, "cancelled")
        assert exc.value.current == "delivered"
        assert exc.value.target == "cancelled"

    def test_unknown_status_raises_validation_error(self):
        with pytest.raises(ValidationError):
            transition_item(_items()[0], "lost")


class TestDeriveFulfillmentStatus:
    @pytest.mark.parametrize("statuses, expected", [
        (["pending", "pending"], "unfulfilled"),
        (["shipped", "delivered"], "fulfilled"),
        (["shipped", "pending"], "partial"),
        (["processing"], "partial"),
        (["cancelled", "cancelled"], "cancelled"),
        (["cancelled", "delivered"], "fulfilled"),
        (["cancelled", "pending"], "unfulfilled"),
        ([], "unfulfilled"),
    ])
    def test_derivation(self, statuses, expected):
        assert derive_fulfillment_status(statuses) == expected
