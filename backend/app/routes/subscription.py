# Overview: Flask API routes for the merchant subscription and payment processor webhooks.

"""
Subscription routes.

- GET  /api/subscription                       plan, limits, usage, FREE FOR LIFE progress
- GET  /api/subscription/plans                 active plans (public)
- POST /api/subscription/upgrade               change plan / billing interval
- POST /api/subscription/check-free-for-life   re-evaluate the unlock
- POST /api/billing/webhook                    payment processor status events
"""

import hmac

from flask import Blueprint, current_app, request, jsonify, g

from ..models.auth import ROLE_MERCHANT
from ..services import plan_service, subscription_service
from ..validation import ValidationError
from ..decorators import handle_service_errors, require_auth, require_merchant, require_role


subscription_bp = Blueprint("subscription", __name__, url_prefix="/api/subscription")
billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


@subscription_bp.get("")
@require_auth
@require_merchant
@handle_service_errors("load subscription")
def summary_route():
    return jsonify(subscription_service.subscription_summary(g.merchant_id)), 200


@subscription_bp.get("/plans")
@handle_service_errors("list plans")
def plans_route():
    return jsonify({"items": [p.to_dict() for p in plan_service.list_plans()]}), 200


@subscription_bp.post("/upgrade")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT)
@handle_service_errors("change plan")
def upgrade_route():
    """
    Body: {"plan_slug": str, "billing_interval": "monthly"|"yearly"}

    A FREE FOR LIFE merchant keeps its status and unlimited limits.
    """
    data = request.get_json(silent=True) or {}
    plan_slug = data.get("plan_slug")
    if not plan_slug:
        raise ValidationError("plan_slug is required", field="plan_slug")

    subscription_service.change_plan(
        g.merchant_id,
        plan_slug,
        data.get("billing_interval", "monthly"),
        actor_user_id=g.current_user.id,
    )
    return jsonify(subscription_service.subscription_summary(g.merchant_id)), 200


@subscription_bp.post("/check-free-for-life")
@require_auth
@require_merchant
@handle_service_errors("check free for life")
def check_free_for_life_route():
    unlocked = subscription_service.check_and_unlock_free_for_life(g.merchant_id)
    summary = subscription_service.subscription_summary(g.merchant_id)
    summary["newly_unlocked"] = unlocked
    return jsonify(summary), 200


@billing_bp.post("/webhook")
@handle_service_errors("process billing webhook")
def billing_webhook_route():
    """
    Payment processor subscription-status events.

    SECURITY: the X-Billing-Signature header must equal BILLING_WEBHOOK_SECRET
    (constant-time compare). Unknown merchants are acknowledged with 202 so
    the processor stops retrying.
    """
    secret = current_app.config.get("BILLING_WEBHOOK_SECRET")
    if not secret:
        current_app.logger.error("Billing webhook received but BILLING_WEBHOOK_SECRET is not set")
        return jsonify({"error": "Webhook not configured"}), 503

    signature = request.headers.get("X-Billing-Signature", "")
    if not hmac.compare_digest(signature.encode("utf-8"), secret.encode("utf-8")):
        current_app.logger.warning("Billing webhook rejected: bad signature from %s", request.remote_addr)
        return jsonify({"error": "Invalid signature"}), 401

    event = request.get_json(silent=True)
    if not isinstance(event, dict):
        raise ValidationError("Invalid JSON payload")

    subscription = subscription_service.apply_billing_event(event)
    if subscription is None:
        return jsonify({"received": True, "matched": False}), 202
    return jsonify({"received": True, "matched": True, "status": subscription.status}), 200
