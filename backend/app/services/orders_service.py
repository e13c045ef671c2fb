# Overview: Service-layer operations for merchant orders; creation, fulfillment and settlement state.

"""
Orders Service

WHY: Orders are where sales are recognized. Creating one snapshots each
line's price and cost, books the totals, and feeds the merchant's lifetime
sales toward FREE FOR LIFE, all in one transaction.

INVARIANTS:
- (merchant_id, order_number) is unique; re-sending a create for an
  existing number returns the stored order and books nothing
- Lifetime sales are recorded exactly once per order (sales_recorded_at)
- Line items are never repriced after creation
- Orders are never deleted; cancel and refund are status changes and do
  not reduce lifetime sales
"""

from __future__ import annotations

from datetime import datetime, time

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..limits import RESOURCE_ORDERS, limit_to_column
from ..models import Order, Product
from ..settlement import (
    CANCELLED,
    ITEM_CANCELLED,
    ITEM_DELIVERED,
    OrderItem,
    build_order_financials,
    derive_fulfillment_status,
    transition_item,
)
from ..validation import ConflictError, ValidationError, require_cents, require_quantity
from app.time_utils import utc_today, utcnow
from .activity_service import append_activity
from .auth_service import normalize_email
from .concurrency import begin_write, run_with_retry
from .subscription_service import accumulate_locked, effective_limits, require_subscription, require_within_limit
from .tenant_service import require_merchant_order, scoped_query

ORDER_STATUSES = ("pending", "processing", "completed", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "paid", "refunded", "failed")

# Status changes allowed through update_order_status; cancel/refund have their own paths
_STATUS_FLOW = {
    "pending": {"processing", "completed"},
    "processing": {"completed"},
}
_PAYMENT_FLOW = {
    "pending": {"paid", "failed"},
    "failed": {"paid"},
}

MAX_ITEMS_PER_ORDER = 100


class OrderError(Exception):
    """Raised for order state errors (cannot cancel, cannot refund)."""
    pass


def _parse_order_payload(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    order_number = payload.get("order_number")
    if not isinstance(order_number, str) or not order_number.strip():
        raise ValidationError("order_number is required", field="order_number")
    order_number = order_number.strip()
    if len(order_number) > 64:
        raise ValidationError("order_number exceeds max length 64", field="order_number")

    shipping_address = payload.get("shipping_address") or {}
    if not isinstance(shipping_address, dict):
        raise ValidationError("shipping_address must be an object", field="shipping_address")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Order must contain at least one item", field="items")
    if len(raw_items) > MAX_ITEMS_PER_ORDER:
        raise ValidationError(f"At most {MAX_ITEMS_PER_ORDER} items per order", field="items")

    lines = []
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object", field="items")
        product_id = raw.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError(f"items[{i}].product_id must be an integer", field="items")
        lines.append({
            "product_id": product_id,
            "quantity": require_quantity(raw.get("quantity"), f"items[{i}].quantity"),
            # Optional override, e.g. the storefront's actual charged price
            "price_cents": require_cents(raw.get("price_cents"), f"items[{i}].price_cents", allow_none=True),
        })

    payment_status = payload.get("payment_status", "pending")
    if payment_status not in ("pending", "paid"):
        raise ValidationError("payment_status must be 'pending' or 'paid'", field="payment_status")

    return {
        "order_number": order_number,
        "customer_email": normalize_email(payload.get("customer_email")),
        "shipping_address": shipping_address,
        "lines": lines,
        "shipping_cents": require_cents(payload.get("shipping_cents", 0), "shipping_cents"),
        "tax_cents": require_cents(payload.get("tax_cents", 0), "tax_cents"),
        "discount_cents": require_cents(payload.get("discount_cents", 0), "discount_cents"),
        "payment_status": payment_status,
        "notes": payload.get("notes"),
    }


def _same_request(order: Order, data: dict) -> bool:
    stored = [(item.product_id, item.quantity) for item in order.items]
    requested = [(line["product_id"], line["quantity"]) for line in data["lines"]]
    return stored == requested and order.customer_email == data["customer_email"]


def _find_order(merchant_id: int, order_number: str) -> Order | None:
    return db.session.query(Order).filter_by(merchant_id=merchant_id, order_number=order_number).first()


def _snapshot_items(merchant_id: int, lines: list[dict]) -> list[OrderItem]:
    items = []
    for line in lines:
        product = db.session.query(Product).filter_by(id=line["product_id"], merchant_id=merchant_id).first()
        if product is None:
            raise ValidationError(f"Product {line['product_id']} not found", field="items")
        price = line["price_cents"] if line["price_cents"] is not None else product.selling_price_cents
        items.append(OrderItem(
            product_id=product.id,
            supplier_id=product.supplier_id,
            title=product.title,
            sku=product.supplier_sku,
            quantity=line["quantity"],
            price_cents=price,
            cost_cents=product.supplier_price_cents,
        ))
    return items


def create_order(*, merchant_id: int, payload: dict, actor_user_id: int | None = None) -> tuple[dict, bool]:
    """
    Create an order and book its total into lifetime sales.

    Returns (order_dict, created). created is False when order_number
    already exists with the same content.

    Raises:
        ValidationError: bad payload or unknown product
        ConflictError: order_number reused with different content
        LimitExceededError: order limit for the current billing period reached
    """
    data = _parse_order_payload(payload)

    def _existing_or_conflict(order: Order) -> tuple[dict, bool]:
        if not _same_request(order, data):
            raise ConflictError(f"Order number {data['order_number']} already exists with different content")
        return order.to_dict(), False

    def _op():
        begin_write()
        existing = _find_order(merchant_id, data["order_number"])
        if existing is not None:
            return _existing_or_conflict(existing)

        subscription = require_within_limit(merchant_id, RESOURCE_ORDERS)

        items = _snapshot_items(merchant_id, data["lines"])
        financials = build_order_financials(
            items,
            shipping_cents=data["shipping_cents"],
            tax_cents=data["tax_cents"],
            discount_cents=data["discount_cents"],
        )

        now = utcnow()
        order = Order(
            merchant_id=merchant_id,
            order_number=data["order_number"],
            customer_email=data["customer_email"],
            shipping_address=data["shipping_address"],
            subtotal_cents=financials.subtotal_cents,
            shipping_cents=financials.shipping_cents,
            tax_cents=financials.tax_cents,
            discount_cents=financials.discount_cents,
            total_cents=financials.total_cents,
            total_cost_cents=financials.total_cost_cents,
            total_profit_cents=financials.total_profit_cents,
            discount_clamped=financials.discount_clamped,
            status="pending",
            payment_status=data["payment_status"],
            fulfillment_status=derive_fulfillment_status(i.fulfillment_status for i in items),
            notes=data["notes"],
            created_at=now,
        )
        order.items = items
        order.add_timeline_entry("created", f"Order {data['order_number']} created", now)
        db.session.add(order)
        try:
            db.session.flush()
        except IntegrityError:
            # Lost a race with an identical create
            db.session.rollback()
            existing = _find_order(merchant_id, data["order_number"])
            if existing is None:
                raise
            return _existing_or_conflict(existing)

        accumulate_locked(subscription, financials.total_cents, source=f"order:{order.id}")
        order.sales_recorded_at = now

        append_activity(
            merchant_id=merchant_id,
            event_type="order.created",
            event_category="order",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=f"Order {order.order_number} total {financials.total_cents}",
            payload={"discount_clamped": financials.discount_clamped} if financials.discount_clamped else None,
        )
        db.session.commit()
        return order.to_dict(), True

    return run_with_retry(_op)


def get_order(order_id: int, merchant_id: int) -> dict:
    return require_merchant_order(order_id, merchant_id).to_dict()


def list_orders(
    merchant_id: int,
    *,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Merchant's orders, newest first, with optional pagination."""
    query = scoped_query(Order, merchant_id)
    if status:
        query = query.filter(Order.status == status)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    if page is None:
        orders = query.all()
        return {"items": [o.to_dict() for o in orders], "count": len(orders)}

    per_page = min(max(per_page or 20, 1), 100)
    page = max(page, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    orders = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [o.to_dict() for o in orders],
        "count": len(orders),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def dashboard_stats(merchant_id: int) -> dict:
    """Order revenue and profit totals (all time and today, UTC) plus catalog usage."""
    today_start = datetime.combine(utc_today(), time.min)
    is_today = Order.created_at >= today_start

    totals = (
        db.session.query(
            func.count(Order.id).label("orders"),
            func.coalesce(func.sum(Order.total_cents), 0).label("revenue"),
            func.coalesce(func.sum(Order.total_profit_cents), 0).label("profit"),
            func.sum(case((Order.status == "pending", 1), else_=0)).label("pending"),
            func.sum(case((is_today, 1), else_=0)).label("orders_today"),
            func.sum(case((is_today, Order.total_cents), else_=0)).label("revenue_today"),
            func.sum(case((is_today, Order.total_profit_cents), else_=0)).label("profit_today"),
        )
        .filter(Order.merchant_id == merchant_id)
        .one()
    )
    product_count = (
        db.session.query(func.count(Product.id)).filter(Product.merchant_id == merchant_id).scalar()
    )
    product_limit = effective_limits(require_subscription(merchant_id)).products

    return {
        "total_orders": int(totals.orders or 0),
        "total_revenue_cents": int(totals.revenue or 0),
        "total_profit_cents": int(totals.profit or 0),
        "pending_orders": int(totals.pending or 0),
        "orders_today": int(totals.orders_today or 0),
        "revenue_today_cents": int(totals.revenue_today or 0),
        "profit_today_cents": int(totals.profit_today or 0),
        "product_count": int(product_count or 0),
        "product_limit": limit_to_column(product_limit),
    }


def update_item_fulfillment(
    *,
    order_id: int,
    merchant_id: int,
    item_index: int,
    status: str,
    tracking_number: str | None = None,
    carrier: str | None = None,
    actor_user_id: int | None = None,
) -> dict:
    """
    Move one line item through the fulfillment state machine and re-derive
    the order's fulfillment status.

    Raises InvalidTransitionError for an illegal move.
    """
    def _op():
        order = require_merchant_order(order_id, merchant_id, lock=True)
        if order.status in ("cancelled", "refunded"):
            raise OrderError(f"Order is {order.status}")

        items = order.items
        if item_index < 0 or item_index >= len(items):
            raise ValidationError("Item not found", field="item_index")

        items[item_index] = transition_item(
            items[item_index], status, tracking_number=tracking_number, carrier=carrier
        )
        order.items = items
        order.fulfillment_status = derive_fulfillment_status(i.fulfillment_status for i in items)

        live = [i for i in items if i.fulfillment_status != ITEM_CANCELLED]
        if live and all(i.fulfillment_status == ITEM_DELIVERED for i in live):
            order.status = "completed"
        elif order.status == "pending":
            order.status = "processing"

        now = utcnow()
        order.add_timeline_entry(
            status,
            f"Item {item_index + 1} ({items[item_index].title}) marked {status}",
            now,
        )
        append_activity(
            merchant_id=merchant_id,
            event_type="order.item_fulfillment",
            event_category="order",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=f"Item {item_index} -> {status}",
        )
        db.session.commit()
        return order.to_dict()

    return run_with_retry(_op)


def cancel_order(*, order_id: int, merchant_id: int, reason: str | None = None, actor_user_id: int | None = None) -> dict:
    """
    Cancel every open line and the order. Fails if any line has shipped.

    Lifetime sales already booked for the order stay booked.
    """
    def _op():
        order = require_merchant_order(order_id, merchant_id, lock=True)
        if order.status in ("cancelled", "refunded"):
            raise OrderError(f"Order is already {order.status}")

        items = [
            item if item.fulfillment_status == ITEM_CANCELLED else transition_item(item, ITEM_CANCELLED)
            for item in order.items
        ]
        order.items = items
        order.fulfillment_status = CANCELLED
        order.status = "cancelled"

        now = utcnow()
        order.add_timeline_entry("cancelled", reason or "Order cancelled", now)
        append_activity(
            merchant_id=merchant_id,
            event_type="order.cancelled",
            event_category="order",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=reason,
        )
        db.session.commit()
        return order.to_dict()

    return run_with_retry(_op)


def refund_order(*, order_id: int, merchant_id: int, reason: str | None = None, actor_user_id: int | None = None) -> dict:
    """Mark a paid order refunded. Lifetime sales are not reduced."""
    def _op():
        order = require_merchant_order(order_id, merchant_id, lock=True)
        if order.payment_status != "paid":
            raise OrderError("Only paid orders can be refunded")

        order.payment_status = "refunded"
        order.status = "refunded"

        now = utcnow()
        order.add_timeline_entry("refunded", reason or "Order refunded", now)
        append_activity(
            merchant_id=merchant_id,
            event_type="order.refunded",
            event_category="order",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=reason,
            payload={"total_cents": order.total_cents},
        )
        db.session.commit()
        return order.to_dict()

    return run_with_retry(_op)


def update_order_status(
    *,
    order_id: int,
    merchant_id: int,
    status: str | None = None,
    payment_status: str | None = None,
    notes: str | None = None,
    actor_user_id: int | None = None,
) -> dict:
    """Forward-only status/payment changes. Cancel and refund use their own operations."""
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}", field="status")
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}", field="payment_status"
        )

    def _op():
        order = require_merchant_order(order_id, merchant_id, lock=True)
        now = utcnow()

        if status is not None and status != order.status:
            if status not in _STATUS_FLOW.get(order.status, set()):
                raise OrderError(f"Cannot change status from {order.status} to {status}")
            order.status = status
            order.add_timeline_entry(status, f"Status changed to {status}", now)

        if payment_status is not None and payment_status != order.payment_status:
            if payment_status not in _PAYMENT_FLOW.get(order.payment_status, set()):
                raise OrderError(f"Cannot change payment status from {order.payment_status} to {payment_status}")
            order.payment_status = payment_status
            order.add_timeline_entry(f"payment_{payment_status}", f"Payment {payment_status}", now)

        if notes is not None:
            order.notes = notes

        append_activity(
            merchant_id=merchant_id,
            event_type="order.updated",
            event_category="order",
            entity_type="order",
            entity_id=order.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
        )
        db.session.commit()
        return order.to_dict()

    return run_with_retry(_op)
