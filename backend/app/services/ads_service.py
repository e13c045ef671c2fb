# Overview: Service-layer operations for ad creatives; daily-limited generation per merchant.

from __future__ import annotations

from ..extensions import db
from ..limits import RESOURCE_ADS
from ..models import AdCreative, Product
from ..validation import ValidationError
from app.time_utils import utcnow
from .activity_service import append_activity
from .concurrency import begin_write, run_with_retry
from .subscription_service import record_ad_generation, require_within_limit

AD_PLATFORMS = ("general", "instagram", "facebook", "tiktok", "pinterest")
AD_FORMATS = ("square", "story", "landscape", "video")

_PLATFORM_HASHTAGS = {
    "instagram": ["#instashop", "#newarrivals"],
    "tiktok": ["#tiktokmademebuyit", "#fyp"],
    "pinterest": ["#shopping", "#inspiration"],
    "facebook": ["#deals"],
    "general": ["#deals"],
}


def _compose(product: Product | None, platform: str) -> dict:
    # Template copy; a generation backend can replace this
    if product is None:
        return {
            "headline": "Your Amazing Product",
            "ad_copy": "Discover the best deals on quality products. Limited time offer!",
            "call_to_action": "Shop Now",
            "hashtags": ["#shopping", "#sale"] + _PLATFORM_HASHTAGS[platform],
        }
    category_tag = f"#{product.category.replace(' ', '').lower()}" if product.category else "#musthave"
    return {
        "headline": product.title[:500],
        "ad_copy": f"{product.title} is here. Order today while stock lasts!",
        "call_to_action": "Shop Now",
        "hashtags": [category_tag] + _PLATFORM_HASHTAGS[platform],
    }


def generate_ad(
    *,
    merchant_id: int,
    product_id: int | None = None,
    platform: str = "general",
    format: str = "square",
    actor_user_id: int | None = None,
) -> dict:
    """
    Create one ad creative and count it against today's allowance.

    The limit check, the creative and the counter increment share one
    transaction under the subscription row lock.
    """
    if platform not in AD_PLATFORMS:
        raise ValidationError(f"platform must be one of: {', '.join(AD_PLATFORMS)}", field="platform")
    if format not in AD_FORMATS:
        raise ValidationError(f"format must be one of: {', '.join(AD_FORMATS)}", field="format")

    def _op():
        begin_write()
        subscription = require_within_limit(merchant_id, RESOURCE_ADS)

        if format == "video" and not subscription.is_free_for_life and not subscription.plan.has_video_ads:
            raise ValidationError("Video ads are not included in your plan", field="format")

        product = None
        if product_id is not None:
            product = db.session.query(Product).filter_by(id=product_id, merchant_id=merchant_id).first()
            if product is None:
                raise ValidationError("Product not found", field="product_id")

        now = utcnow()
        creative = AdCreative(
            merchant_id=merchant_id,
            product_id=product.id if product else None,
            platform=platform,
            format=format,
            **_compose(product, platform),
        )
        db.session.add(creative)
        record_ad_generation(subscription, now)
        db.session.flush()

        append_activity(
            merchant_id=merchant_id,
            event_type="ads.generated",
            event_category="ads",
            entity_type="ad_creative",
            entity_id=creative.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
        )
        db.session.commit()
        return creative.to_dict()

    return run_with_retry(_op)


def list_ads(merchant_id: int, limit: int = 50) -> list[dict]:
    ads = (
        db.session.query(AdCreative)
        .filter(AdCreative.merchant_id == merchant_id)
        .order_by(AdCreative.created_at.desc(), AdCreative.id.desc())
        .limit(min(max(limit, 1), 200))
        .all()
    )
    return [a.to_dict() for a in ads]
