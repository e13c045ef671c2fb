from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

SUBSCRIPTION_STATUSES = ("trial", "active", "cancelled", "expired", "past_due", "free_for_life")
FREE_FOR_LIFE = "free_for_life"


class Plan(db.Model):
    """
    Subscription tier.

    Limit columns use -1 for unlimited. Plans are managed by platform admins
    only; merchants just reference them.
    """
    __tablename__ = "plans"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    monthly_price_cents = db.Column(db.Integer, nullable=False, default=0)
    yearly_price_cents = db.Column(db.Integer, nullable=False, default=0)

    product_limit = db.Column(db.Integer, nullable=False)
    order_limit = db.Column(db.Integer, nullable=False, default=-1)
    team_member_limit = db.Column(db.Integer, nullable=False)
    daily_ads_limit = db.Column(db.Integer, nullable=False, default=0)

    has_video_ads = db.Column(db.Boolean, nullable=False, default=False)
    is_white_label = db.Column(db.Boolean, nullable=False, default=False)
    has_vip_support = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Plan id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "monthly_price_cents": self.monthly_price_cents,
            "yearly_price_cents": self.yearly_price_cents,
            "product_limit": self.product_limit,
            "order_limit": self.order_limit,
            "team_member_limit": self.team_member_limit,
            "daily_ads_limit": self.daily_ads_limit,
            "has_video_ads": self.has_video_ads,
            "is_white_label": self.is_white_label,
            "has_vip_support": self.has_vip_support,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }


class Subscription(db.Model):
    """
    One subscription per merchant.

    INVARIANTS:
    - lifetime_sales_cents never decreases
    - progress_to_free_for_life is derived from lifetime_sales_cents (0-100)
    - status free_for_life is terminal: every limit column is -1 from then on

    Limit override columns: NULL follows the plan, -1 is unlimited, any
    other value replaces the plan's limit.
    """
    __tablename__ = "subscriptions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, unique=True, index=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("plans.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="trial", index=True)
    # monthly, yearly
    billing_interval = db.Column(db.String(16), nullable=False, default="monthly")
    current_period_start = db.Column(db.DateTime(timezone=True), nullable=False)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=False)
    trial_end = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Payment processor references
    external_customer_id = db.Column(db.String(255), nullable=True)
    external_subscription_id = db.Column(db.String(255), nullable=True, index=True)

    product_limit = db.Column(db.Integer, nullable=True)
    order_limit = db.Column(db.Integer, nullable=True)
    team_member_limit = db.Column(db.Integer, nullable=True)
    daily_ads_limit = db.Column(db.Integer, nullable=True)

    lifetime_sales_cents = db.Column(db.BigInteger, nullable=False, default=0)
    progress_to_free_for_life = db.Column(db.Integer, nullable=False, default=0)
    free_for_life_unlocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    ads_generated_today = db.Column(db.Integer, nullable=False, default=0)
    # UTC day ads_generated_today belongs to
    ads_counter_date = db.Column(db.Date, nullable=True, index=True)
    last_ad_generated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    merchant = db.relationship("Merchant", backref=db.backref("subscription", uselist=False, lazy=True))
    plan = db.relationship("Plan")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_free_for_life(self) -> bool:
        return self.status == FREE_FOR_LIFE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "plan_id": self.plan_id,
            "plan_slug": self.plan.slug if self.plan else None,
            "status": self.status,
            "billing_interval": self.billing_interval,
            "current_period_start": to_utc_z(self.current_period_start),
            "current_period_end": to_utc_z(self.current_period_end),
            "trial_end": to_utc_z(self.trial_end),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "lifetime_sales_cents": self.lifetime_sales_cents,
            "progress_to_free_for_life": self.progress_to_free_for_life,
            "free_for_life_unlocked_at": to_utc_z(self.free_for_life_unlocked_at),
            "ads_generated_today": self.ads_generated_today,
            "ads_counter_date": self.ads_counter_date.isoformat() if self.ads_counter_date else None,
            "version_id": self.version_id,
        }


class AdCreative(db.Model):
    """Generated ad creative; counts against the daily ads limit."""
    __tablename__ = "ad_creatives"
    __table_args__ = (
        db.Index("ix_ad_creatives_merchant_created", "merchant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    # instagram, facebook, tiktok, pinterest, general
    platform = db.Column(db.String(32), nullable=False, default="general")
    format = db.Column(db.String(32), nullable=False, default="square")
    headline = db.Column(db.String(500), nullable=True)
    ad_copy = db.Column(db.Text, nullable=True)
    call_to_action = db.Column(db.String(100), nullable=True)
    hashtags = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "product_id": self.product_id,
            "platform": self.platform,
            "format": self.format,
            "headline": self.headline,
            "ad_copy": self.ad_copy,
            "call_to_action": self.call_to_action,
            "hashtags": list(self.hashtags or []),
            "created_at": to_utc_z(self.created_at),
        }
