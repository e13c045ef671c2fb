# Overview: Flask API routes for merchant orders; parses input and returns JSON responses.

"""
Order routes.

MULTI-TENANT: orders are always read and written under g.merchant_id.
A foreign order id answers 404, same as a missing one.
"""

from flask import Blueprint, request, jsonify, g

from ..models.auth import ROLE_MERCHANT, ROLE_STAFF
from ..services import orders_service
from ..validation import ValidationError
from ..decorators import handle_service_errors, require_auth, require_merchant, require_role


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("create order")
def create_order_route():
    """
    Create an order.

    201 for a new order, 200 when order_number already exists with the
    same content (nothing is booked twice). 403 when the order limit for
    the billing period is reached.
    """
    payload = request.get_json(silent=True) or {}
    order, created = orders_service.create_order(
        merchant_id=g.merchant_id,
        payload=payload,
        actor_user_id=g.current_user.id,
    )
    return jsonify({"order": order, "created": created}), 201 if created else 200


@orders_bp.get("")
@require_auth
@require_merchant
@handle_service_errors("list orders")
def list_orders_route():
    result = orders_service.list_orders(
        g.merchant_id,
        status=request.args.get("status"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result), 200


@orders_bp.get("/<int:order_id>")
@require_auth
@require_merchant
@handle_service_errors("load order")
def get_order_route(order_id: int):
    return jsonify({"order": orders_service.get_order(order_id, g.merchant_id)}), 200


@orders_bp.put("/<int:order_id>/items/<int:item_index>/fulfillment")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("update item fulfillment")
def update_item_fulfillment_route(order_id: int, item_index: int):
    """Body: {"status": "processing|shipped|delivered|cancelled", "tracking_number"?, "carrier"?}"""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        raise ValidationError("status is required", field="status")

    order = orders_service.update_item_fulfillment(
        order_id=order_id,
        merchant_id=g.merchant_id,
        item_index=item_index,
        status=status,
        tracking_number=data.get("tracking_number"),
        carrier=data.get("carrier"),
        actor_user_id=g.current_user.id,
    )
    return jsonify({"order": order}), 200


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("cancel order")
def cancel_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    order = orders_service.cancel_order(
        order_id=order_id,
        merchant_id=g.merchant_id,
        reason=data.get("reason"),
        actor_user_id=g.current_user.id,
    )
    return jsonify({"order": order}), 200


@orders_bp.post("/<int:order_id>/refund")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT)
@handle_service_errors("refund order")
def refund_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    order = orders_service.refund_order(
        order_id=order_id,
        merchant_id=g.merchant_id,
        reason=data.get("reason"),
        actor_user_id=g.current_user.id,
    )
    return jsonify({"order": order}), 200


@orders_bp.patch("/<int:order_id>")
@require_auth
@require_merchant
@require_role(ROLE_MERCHANT, ROLE_STAFF)
@handle_service_errors("update order status")
def update_order_route(order_id: int):
    """Body: any of status, payment_status, notes."""
    data = request.get_json(silent=True) or {}
    unknown = set(data) - {"status", "payment_status", "notes"}
    if unknown:
        field = sorted(unknown)[0]
        raise ValidationError(f"Field not allowed: {field}", field=field)

    order = orders_service.update_order_status(
        order_id=order_id,
        merchant_id=g.merchant_id,
        status=data.get("status"),
        payment_status=data.get("payment_status"),
        notes=data.get("notes"),
        actor_user_id=g.current_user.id,
    )
    return jsonify({"order": order}), 200
