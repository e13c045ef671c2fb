"""
Pricing engine: supplier cost -> merchant selling price.

All amounts are integer cents. A markup rule is either a percentage of cost
or a fixed amount of cents added on top of cost; the result is rounded once,
at the very end, to a whole cent using round-half-up.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

from .validation import ValidationError

PERCENTAGE = "percentage"
FIXED = "fixed"

_ONE_CENT = Decimal("1")
_HUNDRED = Decimal("100")
_MARGIN_PLACES = Decimal("0.01")


def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            # str() keeps 12.5 as 12.5 instead of its binary float expansion
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", field=field)
    else:
        raise ValidationError(f"{field} must be a number", field=field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    return result


@dataclass(frozen=True)
class PercentageMarkup:
    """Selling price = cost x (1 + value / 100)."""
    value: Decimal

    def __post_init__(self):
        object.__setattr__(self, "value", _to_decimal(self.value, "pricing_rule.value"))
        if self.value < 0:
            raise ValidationError("pricing_rule.value must be >= 0", field="pricing_rule.value")

    @property
    def type(self) -> str:
        return PERCENTAGE

    def to_dict(self) -> dict:
        return {"type": PERCENTAGE, "value": float(self.value)}


@dataclass(frozen=True)
class FixedMarkup:
    """Selling price = cost + value (value in cents)."""
    value: Decimal

    def __post_init__(self):
        object.__setattr__(self, "value", _to_decimal(self.value, "pricing_rule.value"))
        if self.value < 0:
            raise ValidationError("pricing_rule.value must be >= 0", field="pricing_rule.value")

    @property
    def type(self) -> str:
        return FIXED

    def to_dict(self) -> dict:
        return {"type": FIXED, "value": float(self.value)}


PricingRule = Union[PercentageMarkup, FixedMarkup]

_RULE_TYPES = {PERCENTAGE: PercentageMarkup, FIXED: FixedMarkup}


def parse_pricing_rule(payload: Any) -> PricingRule:
    """Build a rule from its wire shape: {"type": "percentage"|"fixed", "value": number}."""
    if isinstance(payload, (PercentageMarkup, FixedMarkup)):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError("pricing_rule must be an object with type and value", field="pricing_rule")

    rule_type = payload.get("type")
    rule_cls = _RULE_TYPES.get(rule_type)
    if rule_cls is None:
        raise ValidationError(
            "pricing_rule.type must be 'percentage' or 'fixed'", field="pricing_rule.type"
        )
    if "value" not in payload or payload["value"] is None:
        raise ValidationError("pricing_rule.value is required", field="pricing_rule.value")
    return rule_cls(payload["value"])


def apply_markup(cost_cents: int, rule: PricingRule) -> int:
    """
    Convert a supplier cost into a selling price.

    Raises ValidationError for a negative cost. Rules cannot hold negative
    values, so the result is never below cost.
    """
    cost = _to_decimal(cost_cents, "cost")
    if cost < 0:
        raise ValidationError("cost must be >= 0", field="cost")

    if isinstance(rule, PercentageMarkup):
        raw = cost * (1 + rule.value / _HUNDRED)
    elif isinstance(rule, FixedMarkup):
        raw = cost + rule.value
    else:
        raise ValidationError("Unsupported pricing rule", field="pricing_rule")

    return int(raw.quantize(_ONE_CENT, rounding=ROUND_HALF_UP))


def compute_profit(cost_cents: int, selling_price_cents: int) -> int:
    """Profit per unit. Not floored: a price below cost yields a negative profit."""
    return selling_price_cents - cost_cents


def compute_margin(cost_cents: int, selling_price_cents: int) -> Decimal:
    """Margin as a percentage of the selling price, two decimals; 0 when the price is not positive."""
    if selling_price_cents <= 0:
        return Decimal("0.00")
    profit = Decimal(compute_profit(cost_cents, selling_price_cents))
    margin = profit / Decimal(selling_price_cents) * _HUNDRED
    return margin.quantize(_MARGIN_PLACES, rounding=ROUND_HALF_UP)


def price_summary(cost_cents: int, rule: PricingRule) -> dict:
    """Selling price, profit and margin for display next to a rule."""
    selling = apply_markup(cost_cents, rule)
    return {
        "cost_cents": cost_cents,
        "selling_price_cents": selling,
        "profit_cents": compute_profit(cost_cents, selling),
        "margin_percent": float(compute_margin(cost_cents, selling)),
        "pricing_rule": rule.to_dict(),
    }
