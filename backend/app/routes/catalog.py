# Overview: Flask API routes for browsing the global supplier catalog.

from flask import Blueprint, request, jsonify

from ..services import products_service
from ..pricing import parse_pricing_rule, price_summary
from ..decorators import handle_service_errors, require_auth

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("")
@require_auth
@handle_service_errors("list catalog")
def list_catalog_route():
    """
    Search the global catalog.

    Query params:
    - q: case-insensitive substring over title, description, category, SKU
    - category, supplier_id: exact filters
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    result = products_service.list_catalog(
        search=request.args.get("q"),
        category=request.args.get("category"),
        supplier_id=request.args.get("supplier_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@catalog_bp.get("/<int:product_id>")
@require_auth
@handle_service_errors("load catalog product")
def get_catalog_product_route(product_id: int):
    product = products_service.get_global_product(product_id)
    if product is None or product.status != "active":
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.post("/<int:product_id>/price-preview")
@require_auth
@handle_service_errors("preview price")
def price_preview_route(product_id: int):
    """Selling price, profit and margin a rule would give this product. Writes nothing."""
    product = products_service.get_global_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    data = request.get_json(silent=True) or {}
    rule = parse_pricing_rule(data.get("pricing_rule"))
    return jsonify(price_summary(product.supplier_price_cents, rule)), 200
