# Overview: Subscription limits, usage and lifetime-sales progression toward FREE FOR LIFE.

"""
Subscription Service

INVARIANTS:
- lifetime_sales_cents only grows; there is no negative-amount path here.
- status free_for_life is one-way. Plan changes and billing events never
  move a subscription out of it, and every limit stays unlimited.
- Limit checks and the row write they guard happen in one transaction
  with the subscription row locked (the per-merchant serialization point).
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta
from flask import current_app
from sqlalchemy import func, or_, update

from ..extensions import db
from ..limits import (
    EffectiveLimits,
    LimitExceededError,
    RESOURCE_ADS,
    RESOURCE_ORDERS,
    RESOURCE_PRODUCTS,
    RESOURCE_TEAM_MEMBERS,
    RESOURCES,
    UNLIMITED,
    check_limit,
    limit_from_column,
    remaining,
)
from ..models import Merchant, Order, Plan, Product, Subscription, TeamInvitation, User
from ..models.auth import ROLE_STAFF
from ..models.billing import FREE_FOR_LIFE
from ..validation import ValidationError
from app.time_utils import parse_iso_datetime, utc_today, utcnow
from .activity_service import append_activity
from .concurrency import begin_write, lock_for_update, run_with_retry
from . import plan_service


class ConfigurationError(RuntimeError):
    """Required configuration is missing or invalid."""


class SubscriptionError(Exception):
    """Raised for subscription operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


BILLING_INTERVALS = {"monthly": 1, "yearly": 12}

# Payment processor subscription states -> local status
PROCESSOR_STATUS_MAP = {
    "trialing": "trial",
    "active": "active",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "cancelled",
    "cancelled": "cancelled",
    "incomplete_expired": "expired",
    "expired": "expired",
}

_LIMIT_COLUMNS = {
    RESOURCE_PRODUCTS: "product_limit",
    RESOURCE_ORDERS: "order_limit",
    RESOURCE_TEAM_MEMBERS: "team_member_limit",
    RESOURCE_ADS: "daily_ads_limit",
}


class SubscriptionEngine:
    """
    Lifetime sales accumulation and the FREE FOR LIFE unlock.

    The threshold is injected; the engine holds no other state.
    """

    def __init__(self, threshold_cents: int):
        if isinstance(threshold_cents, bool) or not isinstance(threshold_cents, int) or threshold_cents <= 0:
            raise ConfigurationError("FREE_FOR_LIFE_THRESHOLD_CENTS must be a positive integer")
        self.threshold_cents = threshold_cents

    def progress_for(self, lifetime_sales_cents: int) -> int:
        ratio = Decimal(lifetime_sales_cents) / Decimal(self.threshold_cents) * 100
        progress = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return max(0, min(100, progress))

    def apply_sales(self, subscription: Subscription, amount_cents: int, now) -> bool:
        """
        Add sales to a (locked) subscription row. Returns True when this call
        unlocked FREE FOR LIFE.
        """
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
            raise ValidationError("amount_cents must be an integer", field="amount_cents")
        if amount_cents < 0:
            raise ValidationError("amount_cents must be >= 0", field="amount_cents")

        subscription.lifetime_sales_cents = (subscription.lifetime_sales_cents or 0) + amount_cents
        subscription.progress_to_free_for_life = self.progress_for(subscription.lifetime_sales_cents)

        if subscription.lifetime_sales_cents >= self.threshold_cents and not subscription.is_free_for_life:
            self.unlock(subscription, now)
            return True
        return False

    @staticmethod
    def unlock(subscription: Subscription, now) -> None:
        subscription.status = FREE_FOR_LIFE
        subscription.product_limit = UNLIMITED
        subscription.order_limit = UNLIMITED
        subscription.team_member_limit = UNLIMITED
        subscription.daily_ads_limit = UNLIMITED
        subscription.free_for_life_unlocked_at = now
        subscription.cancelled_at = None


def get_engine() -> SubscriptionEngine:
    threshold = current_app.config.get("FREE_FOR_LIFE_THRESHOLD_CENTS")
    if threshold is None:
        raise ConfigurationError("FREE_FOR_LIFE_THRESHOLD_CENTS is not configured")
    return SubscriptionEngine(threshold)


# ---------------------------------------------------------------------------
# Lookups and limits
# ---------------------------------------------------------------------------

def get_subscription(merchant_id: int, *, lock: bool = False) -> Subscription | None:
    query = db.session.query(Subscription).filter(Subscription.merchant_id == merchant_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def require_subscription(merchant_id: int, *, lock: bool = False) -> Subscription:
    subscription = get_subscription(merchant_id, lock=lock)
    if subscription is None:
        raise SubscriptionError("No subscription found", details={"merchant_id": merchant_id})
    return subscription


def effective_limits(subscription: Subscription) -> EffectiveLimits:
    """Limits in force: FREE FOR LIFE overrides everything, then overrides, then the plan."""
    if subscription.is_free_for_life:
        return EffectiveLimits.unlimited()

    plan = subscription.plan
    values = {}
    for resource, column in _LIMIT_COLUMNS.items():
        override = getattr(subscription, column)
        raw = override if override is not None else getattr(plan, column)
        values[resource] = limit_from_column(raw)
    return EffectiveLimits(**values)


def ads_used_today(subscription: Subscription, today=None) -> int:
    today = today or utc_today()
    if subscription.ads_counter_date != today:
        return 0
    return subscription.ads_generated_today or 0


def count_usage(subscription: Subscription, resource: str) -> int:
    merchant_id = subscription.merchant_id
    if resource == RESOURCE_PRODUCTS:
        return db.session.query(func.count(Product.id)).filter(Product.merchant_id == merchant_id).scalar()
    if resource == RESOURCE_ORDERS:
        # Orders count per billing period
        return (
            db.session.query(func.count(Order.id))
            .filter(
                Order.merchant_id == merchant_id,
                Order.created_at >= subscription.current_period_start,
            )
            .scalar()
        )
    if resource == RESOURCE_TEAM_MEMBERS:
        staff = (
            db.session.query(func.count(User.id))
            .filter(User.merchant_id == merchant_id, User.role == ROLE_STAFF, User.is_active.is_(True))
            .scalar()
        )
        pending = (
            db.session.query(func.count(TeamInvitation.id))
            .filter(
                TeamInvitation.merchant_id == merchant_id,
                TeamInvitation.status == "pending",
                TeamInvitation.expires_at > utcnow(),
            )
            .scalar()
        )
        return staff + pending
    if resource == RESOURCE_ADS:
        return ads_used_today(subscription)
    raise KeyError(resource)


def require_within_limit(
    merchant_id: int,
    resource: str,
    *,
    subscription: Subscription | None = None,
) -> Subscription:
    """
    Raise LimitExceededError unless one more unit of resource is allowed.

    Locks the subscription row (or reuses the locked one passed in) so the
    check and the caller's insert serialize per merchant. Must run before
    anything is created. Returns the locked subscription.
    """
    if subscription is None:
        subscription = require_subscription(merchant_id, lock=True)
    limit = effective_limits(subscription).for_resource(resource)
    used = count_usage(subscription, resource)
    if not check_limit(used, limit):
        raise LimitExceededError(resource, used, limit)
    return subscription


def usage_summary(subscription: Subscription) -> dict:
    limits = effective_limits(subscription)
    summary = {}
    for resource in RESOURCES:
        used = count_usage(subscription, resource)
        limit = limits.for_resource(resource)
        summary[resource] = {
            "used": used,
            "limit": UNLIMITED if limit is None else limit,
            "remaining": remaining(used, limit),
        }
    return summary


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def start_trial(merchant_id: int, plan_slug: str | None = None, *, commit: bool = True) -> Subscription:
    """Create the merchant's subscription in trial status (merchant signup)."""
    existing = get_subscription(merchant_id)
    if existing is not None:
        return existing

    plan = plan_service.require_plan(plan_slug or current_app.config.get("DEFAULT_PLAN_SLUG", "free"))
    now = utcnow()
    trial_days = current_app.config.get("TRIAL_DAYS", 14)

    subscription = Subscription(
        merchant_id=merchant_id,
        plan_id=plan.id,
        status="trial",
        billing_interval="monthly",
        current_period_start=now,
        current_period_end=now + relativedelta(months=1),
        trial_end=now + timedelta(days=trial_days),
        lifetime_sales_cents=0,
        progress_to_free_for_life=0,
        ads_generated_today=0,
    )
    db.session.add(subscription)
    db.session.flush()

    append_activity(
        merchant_id=merchant_id,
        event_type="subscription.trial_started",
        event_category="subscription",
        entity_type="subscription",
        entity_id=subscription.id,
        occurred_at=now,
        note=f"Trial started on plan {plan.slug}",
    )
    if commit:
        db.session.commit()
    return subscription


def accumulate_locked(subscription: Subscription, amount_cents: int, *, source: str | None = None) -> bool:
    """
    Add to lifetime sales on an already-locked subscription inside the caller's transaction.

    Returns True if FREE FOR LIFE was unlocked by this call.
    """
    engine = get_engine()
    now = utcnow()
    unlocked = engine.apply_sales(subscription, amount_cents, now)
    if unlocked:
        current_app.logger.info(
            "Merchant %s unlocked FREE FOR LIFE at %s cents lifetime sales",
            subscription.merchant_id,
            subscription.lifetime_sales_cents,
        )
        append_activity(
            merchant_id=subscription.merchant_id,
            event_type="subscription.free_for_life_unlocked",
            event_category="subscription",
            entity_type="subscription",
            entity_id=subscription.id,
            occurred_at=now,
            note=f"Lifetime sales reached {subscription.lifetime_sales_cents} cents",
            payload={"source": source, "threshold_cents": engine.threshold_cents},
        )
    return unlocked


def accumulate_lifetime_sales(merchant_id: int, amount_cents: int) -> Subscription:
    """
    Add amount_cents to the merchant's lifetime sales in its own transaction.

    Callers must deduplicate (one call per order); order creation does this
    itself through Order.sales_recorded_at.
    """
    get_engine()  # fail fast on missing configuration, outside the retry loop

    def _op():
        begin_write()
        subscription = require_subscription(merchant_id, lock=True)
        accumulate_locked(subscription, amount_cents, source="manual")
        db.session.commit()
        return subscription

    return run_with_retry(_op)


def check_and_unlock_free_for_life(merchant_id: int) -> bool:
    """Re-evaluate the unlock against the current threshold. Returns True when newly unlocked."""
    engine = get_engine()

    def _op():
        begin_write()
        subscription = require_subscription(merchant_id, lock=True)
        # Adding zero recomputes progress and unlocks if the threshold is already met
        unlocked = accumulate_locked(subscription, 0, source="check")
        db.session.commit()
        return unlocked

    unlocked = run_with_retry(_op)
    if not unlocked:
        subscription = require_subscription(merchant_id)
        current_app.logger.debug(
            "Merchant %s at %s%% of %s cents threshold",
            merchant_id, subscription.progress_to_free_for_life, engine.threshold_cents,
        )
    return unlocked


def change_plan(
    merchant_id: int,
    plan_slug: str,
    billing_interval: str = "monthly",
    *,
    actor_user_id: int | None = None,
) -> Subscription:
    """
    Move the merchant to another plan and open a new billing period.

    A FREE FOR LIFE subscription records the new plan reference but keeps
    its status and unlimited limits.
    """
    if billing_interval not in BILLING_INTERVALS:
        raise ValidationError("billing_interval must be 'monthly' or 'yearly'", field="billing_interval")
    plan = plan_service.require_plan(plan_slug)
    if not plan.is_active:
        raise ValidationError(f"Plan is not available: {plan_slug}", field="plan_slug")

    def _op():
        subscription = require_subscription(merchant_id, lock=True)
        now = utcnow()
        previous_slug = subscription.plan.slug if subscription.plan else None

        subscription.plan_id = plan.id
        subscription.billing_interval = billing_interval
        subscription.current_period_start = now
        subscription.current_period_end = now + relativedelta(months=BILLING_INTERVALS[billing_interval])

        if not subscription.is_free_for_life:
            subscription.status = "active"
            subscription.cancelled_at = None
            # Follow the new plan's limits
            subscription.product_limit = None
            subscription.order_limit = None
            subscription.team_member_limit = None
            subscription.daily_ads_limit = None

        append_activity(
            merchant_id=merchant_id,
            event_type="subscription.plan_changed",
            event_category="subscription",
            entity_type="subscription",
            entity_id=subscription.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=f"Plan changed from {previous_slug} to {plan.slug} ({billing_interval})",
        )
        db.session.commit()
        db.session.refresh(subscription)
        return subscription

    return run_with_retry(_op)


def renew_period(subscription: Subscription, period_end, now) -> bool:
    """
    Move the billing window to end at period_end. Returns True on renewal.

    The new period starts where the old one ended, so per-period order
    usage restarts. An end at or before the current one is a replay and
    changes nothing.
    """
    previous_end = subscription.current_period_end
    if previous_end is not None and period_end <= previous_end:
        return False
    subscription.current_period_start = previous_end or now
    subscription.current_period_end = period_end
    return True


def apply_billing_event(event: dict) -> Subscription | None:
    """
    Consume a payment processor subscription-status event.

    Expected shape:
        {"type": "...", "data": {"merchant_id"?, "subscription_id"?, "customer_id"?,
                                 "status", "plan_slug"?, "current_period_end"?}}

    Returns the updated subscription, or None when the event matches no merchant.
    """
    data = event.get("data") if isinstance(event, dict) else None
    if not isinstance(data, dict):
        raise ValidationError("event.data must be an object", field="data")

    processor_status = data.get("status")
    if event.get("type") == "customer.subscription.deleted":
        processor_status = "canceled"
    new_status = PROCESSOR_STATUS_MAP.get(processor_status)
    if new_status is None:
        raise ValidationError(f"Unsupported subscription status: {processor_status!r}", field="status")

    plan = None
    if data.get("plan_slug"):
        plan = plan_service.require_plan(data["plan_slug"])

    period_end = None
    if data.get("current_period_end") is not None:
        raw_end = data["current_period_end"]
        try:
            period_end = parse_iso_datetime(raw_end) if isinstance(raw_end, str) else None
        except ValueError:
            period_end = None
        if period_end is None:
            raise ValidationError("current_period_end must be an ISO-8601 datetime", field="current_period_end")

    def _op():
        query = db.session.query(Subscription)
        if data.get("merchant_id") is not None:
            query = query.filter(Subscription.merchant_id == data["merchant_id"])
        elif data.get("subscription_id"):
            query = query.filter(Subscription.external_subscription_id == data["subscription_id"])
        else:
            raise ValidationError("event must identify merchant_id or subscription_id", field="data")
        subscription = lock_for_update(query).first()
        if subscription is None:
            return None

        now = utcnow()
        if data.get("subscription_id"):
            subscription.external_subscription_id = data["subscription_id"]
        if data.get("customer_id"):
            subscription.external_customer_id = data["customer_id"]
        if plan is not None:
            subscription.plan_id = plan.id
        if period_end is not None:
            renew_period(subscription, period_end, now)

        if subscription.is_free_for_life:
            current_app.logger.info(
                "Ignoring billing status %s for FREE FOR LIFE merchant %s",
                new_status, subscription.merchant_id,
            )
        else:
            subscription.status = new_status
            if new_status == "cancelled" and subscription.cancelled_at is None:
                subscription.cancelled_at = now

        append_activity(
            merchant_id=subscription.merchant_id,
            event_type="subscription.billing_event",
            event_category="subscription",
            entity_type="subscription",
            entity_id=subscription.id,
            occurred_at=now,
            note=f"{event.get('type')}: {processor_status}",
        )
        db.session.commit()
        return subscription

    return run_with_retry(_op)


# ---------------------------------------------------------------------------
# Daily ad counters
# ---------------------------------------------------------------------------

def record_ad_generation(subscription: Subscription, now) -> None:
    """Count one generated ad on a locked subscription, rolling the counter to today first."""
    today = now.date()
    if subscription.ads_counter_date != today:
        subscription.ads_generated_today = 0
        subscription.ads_counter_date = today
    subscription.ads_generated_today = (subscription.ads_generated_today or 0) + 1
    subscription.last_ad_generated_at = now


def reset_daily_ad_counters(today=None) -> int:
    """
    Zero every ad counter whose day has rolled over.

    Single UPDATE statement; safe to re-run the same day (matches nothing)
    and safe against live traffic. version_id is bumped so an in-flight
    read-modify-write of the same row fails its optimistic check and retries.
    """
    today = today or utc_today()
    result = db.session.execute(
        update(Subscription)
        .where(or_(Subscription.ads_counter_date < today, Subscription.ads_counter_date.is_(None)))
        .values(
            ads_generated_today=0,
            ads_counter_date=today,
            version_id=Subscription.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info("Reset daily ad counters for %s subscriptions (%s)", result.rowcount, today)
    return result.rowcount


def recompute_progress() -> dict:
    """
    Recompute progress for every subscription against the configured threshold.

    Used after the threshold changes. Each subscription is its own unit of work.
    """
    engine = get_engine()
    ids = [row[0] for row in db.session.query(Subscription.merchant_id).all()]
    db.session.commit()

    updated = 0
    unlocked = 0
    for merchant_id in ids:
        def _op(merchant_id=merchant_id):
            subscription = require_subscription(merchant_id, lock=True)
            newly = accumulate_locked(subscription, 0, source="recompute")
            db.session.commit()
            return newly

        if run_with_retry(_op):
            unlocked += 1
        updated += 1
    return {"updated": updated, "unlocked": unlocked, "threshold_cents": engine.threshold_cents}


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

def subscription_summary(merchant_id: int) -> dict:
    subscription = require_subscription(merchant_id)
    engine = get_engine()
    plan: Plan = subscription.plan
    merchant = db.session.get(Merchant, merchant_id)
    return {
        "merchant": merchant.to_dict() if merchant else None,
        "subscription": subscription.to_dict(),
        "plan": plan.to_dict() if plan else None,
        "limits": effective_limits(subscription).to_dict(),
        "usage": usage_summary(subscription),
        "free_for_life": {
            "unlocked": subscription.is_free_for_life,
            "threshold_cents": engine.threshold_cents,
            "lifetime_sales_cents": subscription.lifetime_sales_cents,
            "progress_percentage": subscription.progress_to_free_for_life,
            "remaining_cents": max(0, engine.threshold_cents - subscription.lifetime_sales_cents),
        },
        "available_plans": [p.to_dict() for p in plan_service.list_plans()],
    }
