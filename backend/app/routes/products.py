# Overview: Flask API routes for merchant products; parses input and returns JSON responses.

# backend/app/routes/products.py
"""
Merchant product routes.

MULTI-TENANT: every route works on the caller's imported copies only.
The merchant_id comes from g.merchant_id (set by @require_auth).
"""
from flask import Blueprint, request, jsonify, g

from ..models.auth import ROLE_MERCHANT, ROLE_STAFF
from ..services import integration_service, products_service
from ..validation import ValidationError
from ..decorators import handle_service_errors, require_auth, require_merchant, require_role

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_merchant
@handle_service_errors("list products")
def list_products_route():
    """
    List the caller's products with optional search and pagination.

    Query params: q, status, page, per_page (default 20, max 100)
    """
    result = products_service.list_merchant_products(
        g.merchant_id,
        search=request.args.get("q"),
        status=request.args.get("status"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@products_bp.post("/import")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("import product")
def import_product_route():
    """
    Import a global catalog product.

    Body: {"product_id": int, "pricing_rule": {"type", "value"} (optional)}
    403 with resource/used/limit when the product limit is reached.
    """
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise ValidationError("product_id must be an integer", field="product_id")

    created = products_service.import_product(
        merchant_id=g.merchant_id,
        product_id=product_id,
        pricing_rule=data.get("pricing_rule"),
        actor_user_id=g.current_user.id,
    )
    return jsonify({"product": created}), 201


@products_bp.put("/<int:product_id>/pricing")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("update product pricing")
def update_pricing_route(product_id: int):
    data = request.get_json(silent=True) or {}
    updated = products_service.update_product_pricing(
        product_id, data.get("pricing_rule"), merchant_id=g.merchant_id
    )
    return jsonify({"product": updated}), 200


@products_bp.post("/bulk-pricing")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("bulk update pricing")
def bulk_pricing_route():
    """Per-product outcome; 200 even when some products fail."""
    data = request.get_json(silent=True) or {}
    result = products_service.bulk_update_pricing(
        data.get("product_ids"), data.get("pricing_rule"), merchant_id=g.merchant_id
    )
    return jsonify(result.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("delete product")
def delete_product_route(product_id: int):
    """Delete an imported copy. The global catalog product is unaffected."""
    products_service.delete_merchant_product(product_id, g.merchant_id, actor_user_id=g.current_user.id)
    return jsonify({"ok": True}), 200


@products_bp.post("/<int:product_id>/push")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("push product")
def push_product_route(product_id: int):
    """Push to the connected Shopify store; 502 body carries the failure when the push fails."""
    result = integration_service.push_product_to_store(merchant_id=g.merchant_id, product_id=product_id)
    status = 200 if result["error"] is None else 502
    return jsonify(result), status
