# Overview: Service-layer operations for subscription plans (admin-managed tiers).

from __future__ import annotations

from ..extensions import db
from ..models import Plan
from ..validation import ConflictError, ValidationError

PLAN_MUTABLE_FIELDS = {
    "name", "description", "monthly_price_cents", "yearly_price_cents",
    "product_limit", "order_limit", "team_member_limit", "daily_ads_limit",
    "has_video_ads", "is_white_label", "has_vip_support", "is_active", "sort_order",
}

LIMIT_FIELDS = ("product_limit", "order_limit", "team_member_limit", "daily_ads_limit")

# Launch tiers. -1 = unlimited.
DEFAULT_PLANS = [
    {
        "slug": "free", "name": "Free", "description": "Get started with basic features",
        "monthly_price_cents": 0, "yearly_price_cents": 0,
        "product_limit": 25, "order_limit": 50, "team_member_limit": 1, "daily_ads_limit": 0,
        "sort_order": 0,
    },
    {
        "slug": "starter", "name": "Starter", "description": "For growing businesses",
        "monthly_price_cents": 2900, "yearly_price_cents": 29000,
        "product_limit": 100, "order_limit": 500, "team_member_limit": 3, "daily_ads_limit": 1,
        "sort_order": 1,
    },
    {
        "slug": "growth", "name": "Growth", "description": "Scale your operations",
        "monthly_price_cents": 4900, "yearly_price_cents": 49000,
        "product_limit": 250, "order_limit": 1500, "team_member_limit": 5, "daily_ads_limit": 2,
        "sort_order": 2,
    },
    {
        "slug": "professional", "name": "Professional", "description": "For established businesses",
        "monthly_price_cents": 9900, "yearly_price_cents": 99000,
        "product_limit": 1000, "order_limit": 5000, "team_member_limit": 10, "daily_ads_limit": 3,
        "has_video_ads": True, "sort_order": 3,
    },
    {
        "slug": "millionaire", "name": "Millionaire", "description": "Enterprise-grade features",
        "monthly_price_cents": 24900, "yearly_price_cents": 249000,
        "product_limit": -1, "order_limit": -1, "team_member_limit": -1, "daily_ads_limit": 5,
        "has_video_ads": True, "is_white_label": True, "has_vip_support": True, "sort_order": 4,
    },
]


def _validate_plan_patch(patch: dict) -> None:
    for key in patch:
        if key not in PLAN_MUTABLE_FIELDS and key != "slug":
            raise ValidationError(f"Field not allowed: {key}", field=key)
    for key in LIMIT_FIELDS:
        if key in patch:
            value = patch[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < -1:
                raise ValidationError(f"{key} must be an integer >= 0, or -1 for unlimited", field=key)
    for key in ("monthly_price_cents", "yearly_price_cents"):
        if key in patch:
            value = patch[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(f"{key} must be an integer >= 0", field=key)


def list_plans(*, active_only: bool = True) -> list[Plan]:
    query = db.session.query(Plan)
    if active_only:
        query = query.filter(Plan.is_active.is_(True))
    return query.order_by(Plan.sort_order.asc(), Plan.id.asc()).all()


def get_plan_by_slug(slug: str) -> Plan | None:
    return db.session.query(Plan).filter_by(slug=slug).first()


def require_plan(slug: str) -> Plan:
    plan = get_plan_by_slug(slug)
    if plan is None:
        raise ValidationError(f"Plan not found: {slug}", field="plan_slug")
    return plan


def create_plan(data: dict, *, commit: bool = True) -> Plan:
    slug = (data.get("slug") or "").strip()
    if not slug:
        raise ValidationError("slug is required", field="slug")
    if not data.get("name"):
        raise ValidationError("name is required", field="name")
    for key in ("product_limit", "team_member_limit"):
        if key not in data:
            raise ValidationError(f"{key} is required", field=key)
    _validate_plan_patch(data)

    if get_plan_by_slug(slug):
        raise ConflictError(f"Plan slug already exists: {slug}")

    plan = Plan(slug=slug)
    for key, value in data.items():
        if key in PLAN_MUTABLE_FIELDS:
            setattr(plan, key, value)
    db.session.add(plan)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return plan


def update_plan(slug: str, patch: dict) -> Plan | None:
    plan = get_plan_by_slug(slug)
    if plan is None:
        return None
    if "slug" in patch:
        raise ValidationError("slug cannot be changed", field="slug")
    _validate_plan_patch(patch)
    for key, value in patch.items():
        setattr(plan, key, value)
    db.session.commit()
    return plan


def seed_default_plans() -> int:
    """Create any missing launch tiers. Idempotent; existing plans are left alone."""
    created = 0
    for data in DEFAULT_PLANS:
        if get_plan_by_slug(data["slug"]) is None:
            create_plan(dict(data), commit=False)
            created += 1
    db.session.commit()
    return created
