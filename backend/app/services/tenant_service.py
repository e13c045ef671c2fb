"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every merchant-facing request is scoped to one merchant, and cross-tenant
access must be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated merchant request has g.merchant_id set
2. Entity IDs from client input are validated against g.merchant_id
3. A foreign entity is reported exactly like a missing one (404), so
   existence in another tenant is never revealed
"""

from flask import current_app, g
from ..extensions import db
from ..models import Order, Product
from .concurrency import lock_for_update


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted (or the entity does not exist)."""
    pass


def get_current_merchant_id() -> int:
    """
    Current tenant from Flask g.

    Raises TenantAccessError when the caller has no merchant context
    (platform admins calling merchant-only endpoints).
    """
    merchant_id = getattr(g, 'merchant_id', None)
    if merchant_id is None:
        raise TenantAccessError("Merchant context not established")
    return merchant_id


def _log_cross_tenant_attempt(entity: str, entity_id: int, merchant_id: int, owner_id) -> None:
    current_app.logger.warning(
        "Cross-tenant access denied: %s %s belongs to merchant %s, requested by merchant %s",
        entity, entity_id, owner_id, merchant_id,
    )


def require_merchant_product(product_id: int, merchant_id: int, *, lock: bool = False) -> Product:
    """Merchant-owned product, or TenantAccessError. Global catalog rows never match."""
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()

    if not product:
        raise TenantAccessError("Product not found")
    if product.merchant_id != merchant_id:
        if product.merchant_id is not None:
            _log_cross_tenant_attempt("product", product_id, merchant_id, product.merchant_id)
        raise TenantAccessError("Product not found")
    return product


def require_merchant_order(order_id: int, merchant_id: int, *, lock: bool = False) -> Order:
    """Merchant-owned order, or TenantAccessError."""
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()

    if not order:
        raise TenantAccessError("Order not found")
    if order.merchant_id != merchant_id:
        _log_cross_tenant_attempt("order", order_id, merchant_id, order.merchant_id)
        raise TenantAccessError("Order not found")
    return order


def scoped_query(model, merchant_id: int):
    """Query for model filtered to one merchant."""
    return db.session.query(model).filter(model.merchant_id == merchant_id)
