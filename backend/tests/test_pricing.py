# Overview: Pytest coverage for the pricing engine (markup, profit, margin).

"""
Pricing Engine Tests

Amounts are integer cents: $10.00 is 1000.
"""

from decimal import Decimal

import pytest

from app.pricing import (
    FixedMarkup,
    PercentageMarkup,
    apply_markup,
    compute_margin,
    compute_profit,
    parse_pricing_rule,
    price_summary,
)
from app.validation import ValidationError


class TestApplyMarkup:
    def test_percentage_markup(self):
        """$10.00 at 20% sells for $12.00."""
        assert apply_markup(1000, PercentageMarkup(20)) == 1200

    def test_fixed_markup(self):
        """$10.00 plus a fixed $5.00 sells for $15.00."""
        assert apply_markup(1000, FixedMarkup(500)) == 1500

    def test_rounds_half_up_to_whole_cent(self):
        # 999 * 1.125 = 1123.875 -> 1124
        assert apply_markup(999, PercentageMarkup("12.5")) == 1124
        # 4.5 -> 5, not 4
        assert apply_markup(3, PercentageMarkup(50)) == 5

    def test_fractional_fixed_value_rounds_once(self):
        assert apply_markup(1000, FixedMarkup("0.5")) == 1001

    def test_zero_cost_and_zero_markup(self):
        assert apply_markup(0, PercentageMarkup(50)) == 0
        assert apply_markup(1234, PercentageMarkup(0)) == 1234
        assert apply_markup(1234, FixedMarkup(0)) == 1234

    @pytest.mark.parametrize("cost", [0, 1, 7, 999, 1000, 123_457])
    @pytest.mark.parametrize("rule", [PercentageMarkup(0), PercentageMarkup("33.3"), FixedMarkup(1), FixedMarkup(250)])
    def test_never_below_cost(self, cost, rule):
        assert apply_markup(cost, rule) >= cost

    def test_same_rule_twice_gives_same_price(self):
        rule = PercentageMarkup("17.5")
        assert apply_markup(4321, rule) == apply_markup(4321, rule)

    def test_negative_cost_rejected(self):
        with pytest.raises(ValidationError) as exc:
            apply_markup(-1, PercentageMarkup(10))
        assert exc.value.field == "cost"

    def test_negative_markup_value_rejected(self):
        with pytest.raises(ValidationError):
            PercentageMarkup(-5)
        with pytest.raises(ValidationError):
            FixedMarkup(-1)


class TestProfitAndMargin:
    def test_percentage_scenario(self):
        assert compute_profit(1000, 1200) == 200
        assert compute_margin(1000, 1200) == Decimal("16.67")

    def test_fixed_scenario(self):
        assert compute_profit(1000, 1500) == 500
        assert compute_margin(1000, 1500) == Decimal("33.33")

    def test_profit_can_be_negative(self):
        assert compute_profit(1500, 1000) == -500

    def test_margin_zero_when_price_not_positive(self):
        assert compute_margin(1000, 0) == Decimal("0.00")

    def test_price_summary(self):
        summary = price_summary(1000, PercentageMarkup(20))
        assert summary == {
            "cost_cents": 1000,
            "selling_price_cents": 1200,
            "profit_cents": 200,
            "margin_percent": 16.67,
            "pricing_rule": {"type": "percentage", "value": 20.0},
        }


class TestParsePricingRule:
    def test_percentage(self):
        rule = parse_pricing_rule({"type": "percentage", "value": 20})
        assert isinstance(rule, PercentageMarkup)
        assert rule.value == Decimal("20")

    def test_fixed(self):
        rule = parse_pricing_rule({"type": "fixed", "value": 500})
        assert isinstance(rule, FixedMarkup)
        assert rule.to_dict() == {"type": "fixed", "value": 500.0}

    def test_rule_instance_passes_through(self):
        rule = FixedMarkup(100)
        assert parse_pricing_rule(rule) is rule

    @pytest.mark.parametrize("payload, field", [
        ({"type": "bogus", "value": 1}, "pricing_rule.type"),
        ({"type": "percentage"}, "pricing_rule.value"),
        ({"type": "percentage", "value": "abc"}, "pricing_rule.value"),
        ({"type": "percentage", "value": True}, "pricing_rule.value"),
        ({"type": "fixed", "value": -10}, "pricing_rule.value"),
        ("20%", "pricing_rule"),
        (None, "pricing_rule"),
    ])
    def test_invalid_payloads(self, payload, field):
        with pytest.raises(ValidationError) as exc:
            parse_pricing_rule(payload)
        assert exc.value.field == field
