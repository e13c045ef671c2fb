# Overview: Service-layer operations for the merchant's connected Shopify store.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..integrations.shopify_client import ShopifyClient, ShopifyError, normalize_shop_domain
from ..models import Merchant
from app.time_utils import utcnow
from .activity_service import append_activity
from .tenant_service import TenantAccessError, require_merchant_product


class IntegrationError(Exception):
    """Raised when the merchant has no usable store connection."""
    pass


def get_client() -> ShopifyClient:
    config = current_app.config
    return ShopifyClient(
        api_key=config.get("SHOPIFY_API_KEY"),
        api_secret=config.get("SHOPIFY_API_SECRET"),
        api_version=config.get("SHOPIFY_API_VERSION", "2024-10"),
        timeout=config.get("SHOPIFY_TIMEOUT_SECONDS", 15.0),
        transport=config.get("SHOPIFY_TRANSPORT"),
    )


def connect_store(*, merchant_id: int, shop: str, code: str, client: ShopifyClient | None = None) -> dict:
    """Finish the OAuth install: exchange the code and store the token on the merchant."""
    merchant = db.session.get(Merchant, merchant_id)
    if merchant is None:
        raise TenantAccessError("Merchant not found")

    shop = normalize_shop_domain(shop)
    token = (client or get_client()).exchange_code(shop, code)

    merchant.shopify_domain = shop
    merchant.shopify_access_token = token
    merchant.shopify_connected_at = utcnow()
    append_activity(
        merchant_id=merchant_id,
        event_type="integration.connected",
        event_category="integration",
        entity_type="merchant",
        entity_id=merchant_id,
        note=f"Connected {shop}",
    )
    db.session.commit()
    return merchant.to_dict()


def push_product_to_store(
    *,
    merchant_id: int,
    product_id: int,
    client: ShopifyClient | None = None,
) -> dict:
    """
    Push one imported product to the merchant's store.

    Records sync_status synced/failed and remote_product_id. A Shopify
    failure is recorded on the product and logged, not raised.
    """
    merchant = db.session.get(Merchant, merchant_id)
    if merchant is None or not merchant.shopify_access_token or not merchant.shopify_domain:
        raise IntegrationError("No Shopify store connected")

    product = require_merchant_product(product_id, merchant_id)
    payload = {
        "title": product.title,
        "description": product.description,
        "category": product.category,
        "status": product.status,
        "price_cents": product.selling_price_cents,
        "sku": product.supplier_sku,
        "inventory_quantity": product.inventory_quantity,
        "remote_product_id": product.remote_product_id,
    }

    try:
        remote_id = (client or get_client()).push_product(
            merchant.shopify_domain, merchant.shopify_access_token, payload
        )
    except ShopifyError as e:
        current_app.logger.warning("Shopify push failed for product %s: %s", product.id, e)
        product.sync_status = "failed"
        db.session.commit()
        return {"product": product.to_dict(), "error": str(e)}

    product.sync_status = "synced"
    product.remote_product_id = remote_id
    product.last_synced_at = utcnow()
    db.session.commit()
    return {"product": product.to_dict(), "error": None}
