"""
Order settlement: line-item snapshots, order financials and fulfillment state.

Everything here is pure. Items are immutable value snapshots taken at the
time of sale, so later price changes never reach an existing order.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from .validation import ValidationError, require_cents, require_quantity

# Item fulfillment states
ITEM_PENDING = "pending"
ITEM_PROCESSING = "processing"
ITEM_SHIPPED = "shipped"
ITEM_DELIVERED = "delivered"
ITEM_CANCELLED = "cancelled"

ITEM_STATUSES = (ITEM_PENDING, ITEM_PROCESSING, ITEM_SHIPPED, ITEM_DELIVERED, ITEM_CANCELLED)
SHIPPED_STATES = frozenset({ITEM_SHIPPED, ITEM_DELIVERED})

# Order-level fulfillment states
UNFULFILLED = "unfulfilled"
PARTIAL = "partial"
FULFILLED = "fulfilled"
CANCELLED = "cancelled"

# Forward progression order; cancellation is handled separately.
_PROGRESSION = {ITEM_PENDING: 0, ITEM_PROCESSING: 1, ITEM_SHIPPED: 2, ITEM_DELIVERED: 3}
_CANCELLABLE = frozenset({ITEM_PENDING, ITEM_PROCESSING})


class InvalidTransitionError(ValidationError):
    """Item fulfillment status change that the state machine does not allow."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move item from {current} to {target}", field="fulfillment_status"
        )
        self.current = current
        self.target = target


@dataclass(frozen=True)
class OrderItem:
    product_id: int
    quantity: int
    price_cents: int
    cost_cents: int
    supplier_id: int | None = None
    title: str | None = None
    sku: str | None = None
    fulfillment_status: str = ITEM_PENDING
    tracking_number: str | None = None
    carrier: str | None = None

    def __post_init__(self):
        require_quantity(self.quantity)
        require_cents(self.price_cents, "price_cents")
        require_cents(self.cost_cents, "cost_cents")
        if self.fulfillment_status not in ITEM_STATUSES:
            raise ValidationError(
                f"Unknown fulfillment status {self.fulfillment_status!r}", field="fulfillment_status"
            )

    @property
    def profit_cents(self) -> int:
        return self.price_cents - self.cost_cents

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    @property
    def line_cost_cents(self) -> int:
        return self.cost_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "supplier_id": self.supplier_id,
            "title": self.title,
            "sku": self.sku,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "profit_cents": self.profit_cents,
            "fulfillment_status": self.fulfillment_status,
            "tracking_number": self.tracking_number,
            "carrier": self.carrier,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderItem":
        # profit_cents is derived, never read back
        return cls(
            product_id=data["product_id"],
            quantity=data["quantity"],
            price_cents=data["price_cents"],
            cost_cents=data["cost_cents"],
            supplier_id=data.get("supplier_id"),
            title=data.get("title"),
            sku=data.get("sku"),
            fulfillment_status=data.get("fulfillment_status", ITEM_PENDING),
            tracking_number=data.get("tracking_number"),
            carrier=data.get("carrier"),
        )


@dataclass(frozen=True)
class OrderFinancials:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    total_cost_cents: int
    total_profit_cents: int
    discount_clamped: bool = False

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "shipping_cents": self.shipping_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "total_cost_cents": self.total_cost_cents,
            "total_profit_cents": self.total_profit_cents,
            "discount_clamped": self.discount_clamped,
        }


def build_order_financials(
    items: Iterable[OrderItem],
    shipping_cents: int = 0,
    tax_cents: int = 0,
    discount_cents: int = 0,
) -> OrderFinancials:
    """
    Aggregate line items into order totals.

    Shipping and tax pass through to the total but carry no profit. A
    discount larger than the order value clamps the total to zero and sets
    discount_clamped so callers can surface it.
    """
    items = list(items)
    if not items:
        raise ValidationError("Order must contain at least one item", field="items")
    require_cents(shipping_cents, "shipping_cents")
    require_cents(tax_cents, "tax_cents")
    require_cents(discount_cents, "discount_cents")

    subtotal = sum(item.line_total_cents for item in items)
    total_cost = sum(item.line_cost_cents for item in items)

    gross = subtotal + shipping_cents + tax_cents
    total = gross - discount_cents
    clamped = total < 0
    if clamped:
        total = 0

    return OrderFinancials(
        subtotal_cents=subtotal,
        shipping_cents=shipping_cents,
        tax_cents=tax_cents,
        discount_cents=discount_cents,
        total_cents=total,
        total_cost_cents=total_cost,
        total_profit_cents=subtotal - total_cost,
        discount_clamped=clamped,
    )


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return False
    if target == ITEM_CANCELLED:
        return current in _CANCELLABLE
    if current == ITEM_CANCELLED or target not in _PROGRESSION:
        return False
    return _PROGRESSION[target] > _PROGRESSION[current]


def transition_item(
    item: OrderItem,
    target: str,
    *,
    tracking_number: str | None = None,
    carrier: str | None = None,
) -> OrderItem:
    """Return a copy of the item in the target state, or raise InvalidTransitionError."""
    if target not in ITEM_STATUSES:
        raise ValidationError(f"Unknown fulfillment status {target!r}", field="fulfillment_status")
    if not can_transition(item.fulfillment_status, target):
        raise InvalidTransitionError(item.fulfillment_status, target)
    return replace(
        item,
        fulfillment_status=target,
        tracking_number=tracking_number or item.tracking_number,
        carrier=carrier or item.carrier,
    )


def derive_fulfillment_status(statuses: Iterable[str]) -> str:
    """Order-level fulfillment status as a pure function of item states."""
    statuses = list(statuses)
    if not statuses:
        return UNFULFILLED
    if all(s == ITEM_CANCELLED for s in statuses):
        return CANCELLED
    # Cancelled lines drop out; the remaining lines decide
    live = [s for s in statuses if s != ITEM_CANCELLED]
    if all(s == ITEM_PENDING for s in live):
        return UNFULFILLED
    if all(s in SHIPPED_STATES for s in live):
        return FULFILLED
    return PARTIAL
