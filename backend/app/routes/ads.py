# Overview: Flask API routes for ad creatives.

from flask import Blueprint, request, jsonify, g

from ..models.auth import ROLE_MERCHANT, ROLE_STAFF
from ..services import ads_service, subscription_service
from ..decorators import handle_service_errors, require_auth, require_merchant, require_role


ads_bp = Blueprint("ads", __name__, url_prefix="/api/ads")


@ads_bp.get("")
@require_auth
@require_merchant
@handle_service_errors("list ads")
def list_ads_route():
    subscription = subscription_service.require_subscription(g.merchant_id)
    limit = subscription_service.effective_limits(subscription).daily_ads
    used = subscription_service.ads_used_today(subscription)
    return jsonify({
        "items": ads_service.list_ads(g.merchant_id, limit=request.args.get("limit", default=50, type=int)),
        "ads_generated_today": used,
        "daily_ads_limit": -1 if limit is None else limit,
        "remaining_today": None if limit is None else max(0, limit - used),
    }), 200


@ads_bp.post("/generate")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("generate ad")
def generate_ad_route():
    """Body: {"product_id"?, "platform"?, "format"?}. 403 once today's allowance is used up."""
    data = request.get_json(silent=True) or {}
    creative = ads_service.generate_ad(
        merchant_id=g.merchant_id,
        product_id=data.get("product_id"),
        platform=data.get("platform", "general"),
        format=data.get("format", "square"),
        actor_user_id=g.current_user.id,
    )
    return jsonify({"ad": creative}), 201
