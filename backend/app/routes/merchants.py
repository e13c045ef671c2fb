# Overview: Flask API routes for merchant signup and account settings.

"""
Merchant routes.

- POST  /api/merchants/register          public signup (merchant + owner + trial)
- GET   /api/merchants/me                 the caller's merchant
- PATCH /api/merchants/me                 business name, default pricing rule
- POST  /api/merchants/me/shopify         finish the Shopify OAuth install
- GET   /api/merchants/me/activity        recent activity log
- GET   /api/merchants/dashboard          order revenue/profit totals and product usage
"""

from flask import Blueprint, request, jsonify, g

from ..extensions import db
from ..models import Merchant
from ..models.auth import ROLE_MERCHANT
from ..pricing import parse_pricing_rule
from ..services import auth_service, integration_service, orders_service
from ..services.activity_service import list_activity
from ..validation import ValidationError
from ..decorators import handle_service_errors, require_auth, require_merchant, require_role


merchants_bp = Blueprint("merchants", __name__, url_prefix="/api/merchants")


@merchants_bp.post("/register")
@handle_service_errors("register merchant")
def register_route():
    data = request.get_json(silent=True) or {}
    for key in ("business_name", "email", "password"):
        if not data.get(key):
            raise ValidationError(f"{key} is required", field=key)

    merchant, owner = auth_service.register_merchant(
        business_name=data["business_name"],
        owner_email=data["email"],
        owner_name=data.get("name") or data["business_name"],
        password=data["password"],
        plan_slug=data.get("plan_slug"),
    )
    return jsonify({"merchant": merchant.to_dict(), "user": owner.to_dict()}), 201


@merchants_bp.get("/me")
@require_auth
@require_merchant
@handle_service_errors("load merchant")
def get_me_route():
    merchant = db.session.get(Merchant, g.merchant_id)
    return jsonify({"merchant": merchant.to_dict()}), 200


@merchants_bp.patch("/me")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT)
@handle_service_errors("update merchant")
def update_me_route():
    data = request.get_json(silent=True) or {}
    merchant = db.session.get(Merchant, g.merchant_id)

    unknown = set(data) - {"business_name", "default_pricing_rule"}
    if unknown:
        field = sorted(unknown)[0]
        raise ValidationError(f"Field not allowed: {field}", field=field)

    if "business_name" in data:
        name = (data["business_name"] or "").strip()
        if not name:
            raise ValidationError("business_name cannot be blank", field="business_name")
        merchant.business_name = name[:255]

    if "default_pricing_rule" in data:
        rule = parse_pricing_rule(data["default_pricing_rule"])
        merchant.default_pricing_rule_type = rule.type
        merchant.default_pricing_rule_value = rule.value

    db.session.commit()
    return jsonify({"merchant": merchant.to_dict()}), 200


@merchants_bp.post("/me/shopify")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT)
@handle_service_errors("connect Shopify store")
def connect_shopify_route():
    data = request.get_json(silent=True) or {}
    if not data.get("shop") or not data.get("code"):
        raise ValidationError("shop and code are required", field="shop")
    merchant = integration_service.connect_store(
        merchant_id=g.merchant_id, shop=data["shop"], code=data["code"]
    )
    return jsonify({"merchant": merchant}), 200


@merchants_bp.get("/me/activity")
@require_auth
@require_merchant
@handle_service_errors("list activity")
def activity_route():
    category = request.args.get("category")
    limit = request.args.get("limit", default=50, type=int)
    return jsonify({"items": list_activity(merchant_id=g.merchant_id, event_category=category, limit=limit)}), 200


@merchants_bp.get("/dashboard")
@require_auth
@require_merchant
@handle_service_errors("load dashboard")
def dashboard_route():
    return jsonify({"stats": orders_service.dashboard_stats(g.merchant_id)}), 200
