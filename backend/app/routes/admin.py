# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/app/routes/admin.py
"""
Platform admin routes.

Provides endpoints for:
- Global catalog (create, update, pricing, bulk pricing)
- Plans (list, create, update)
- Suppliers (list, create)
- Merchants (list, suspend, reactivate)

All endpoints require an authenticated platform admin.
"""

from flask import Blueprint, request, jsonify

from ..extensions import db
from ..models import Merchant, Product, Supplier
from ..models.auth import ROLE_ADMIN
from ..services import plan_service, products_service, session_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import handle_service_errors, require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "title", "description", "category", "supplier_sku",
        "supplier_price_cents", "inventory_quantity", "status",
    },
    required_on_create={"title", "supplier_price_cents"},
)

SUPPLIER_TYPES = ("gigab2b", "shopify", "amazon", "woocommerce", "custom")

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# GLOBAL CATALOG
# =============================================================================

@admin_bp.post("/products")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("create global product")
def create_product_route():
    """
    Add a product to the global catalog.

    Body: product fields plus supplier_id and an optional pricing_rule.
    """
    payload = dict(request.get_json(silent=True) or {})
    supplier_id = payload.pop("supplier_id", None)
    pricing_rule = payload.pop("pricing_rule", None)
    if isinstance(supplier_id, bool) or not isinstance(supplier_id, int):
        raise ValidationError("supplier_id must be an integer", field="supplier_id")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    created = products_service.create_global_product(
        patch=patch, supplier_id=supplier_id, pricing_rule=pricing_rule
    )
    return jsonify({"product": created}), 201


@admin_bp.put("/products/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("update global product")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    updated = products_service.update_global_product(product_id, patch)
    if updated is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": updated}), 200


@admin_bp.put("/products/<int:product_id>/pricing")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("update global product pricing")
def update_product_pricing_route(product_id: int):
    data = request.get_json(silent=True) or {}
    updated = products_service.update_product_pricing(product_id, data.get("pricing_rule"))
    return jsonify({"product": updated}), 200


@admin_bp.post("/products/bulk-pricing")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("bulk update global pricing")
def bulk_pricing_route():
    data = request.get_json(silent=True) or {}
    result = products_service.bulk_update_pricing(data.get("product_ids"), data.get("pricing_rule"))
    return jsonify(result.to_dict()), 200


# =============================================================================
# PLANS
# =============================================================================

@admin_bp.get("/plans")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("list plans")
def list_plans_route():
    include_inactive = request.args.get("all", "").lower() in ("1", "true", "yes")
    plans = plan_service.list_plans(active_only=not include_inactive)
    return jsonify({"items": [p.to_dict() for p in plans]}), 200


@admin_bp.post("/plans")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("create plan")
def create_plan_route():
    data = request.get_json(silent=True) or {}
    plan = plan_service.create_plan(data)
    return jsonify({"plan": plan.to_dict()}), 201


@admin_bp.put("/plans/<slug>")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("update plan")
def update_plan_route(slug: str):
    data = request.get_json(silent=True) or {}
    plan = plan_service.update_plan(slug, data)
    if plan is None:
        return jsonify({"error": "Plan not found"}), 404
    return jsonify({"plan": plan.to_dict()}), 200


# =============================================================================
# SUPPLIERS
# =============================================================================

@admin_bp.get("/suppliers")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("list suppliers")
def list_suppliers_route():
    suppliers = db.session.query(Supplier).order_by(Supplier.name.asc()).all()
    return jsonify({"items": [s.to_dict() for s in suppliers]}), 200


@admin_bp.post("/suppliers")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("create supplier")
def create_supplier_route():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", field="name")
    supplier_type = data.get("type", "custom")
    if supplier_type not in SUPPLIER_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(SUPPLIER_TYPES)}", field="type")
    if db.session.query(Supplier).filter_by(name=name).first():
        raise ConflictError(f"Supplier already exists: {name}")

    supplier = Supplier(name=name, type=supplier_type)
    db.session.add(supplier)
    db.session.commit()
    return jsonify({"supplier": supplier.to_dict()}), 201


# =============================================================================
# MERCHANTS
# =============================================================================

@admin_bp.get("/merchants")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("list merchants")
def list_merchants_route():
    merchants = db.session.query(Merchant).order_by(Merchant.id.asc()).all()
    items = []
    for merchant in merchants:
        row = merchant.to_dict()
        row["subscription"] = merchant.subscription.to_dict() if merchant.subscription else None
        items.append(row)
    return jsonify({"items": items}), 200


@admin_bp.post("/merchants/<int:merchant_id>/suspend")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("suspend merchant")
def suspend_merchant_route(merchant_id: int):
    """Suspend a merchant and revoke every session of its users."""
    merchant = db.session.get(Merchant, merchant_id)
    if merchant is None:
        return jsonify({"error": "Merchant not found"}), 404
    merchant.is_suspended = True
    db.session.commit()
    for user in merchant.users:
        session_service.revoke_all_user_sessions(user.id, reason="Merchant suspended")
    return jsonify({"merchant": merchant.to_dict()}), 200


@admin_bp.post("/merchants/<int:merchant_id>/reactivate")
@require_auth
@require_role(ROLE_ADMIN)
@handle_service_errors("reactivate merchant")
def reactivate_merchant_route(merchant_id: int):
    merchant = db.session.get(Merchant, merchant_id)
    if merchant is None:
        return jsonify({"error": "Merchant not found"}), 404
    merchant.is_suspended = False
    merchant.is_active = True
    db.session.commit()
    return jsonify({"merchant": merchant.to_dict()}), 200
