# Overview: Minimal Shopify Admin API client (OAuth code exchange, product push) over httpx.

from __future__ import annotations

import re

import httpx

_SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9\-]*\.myshopify\.com$")


class ShopifyError(Exception):
    """Raised when the Shopify API rejects a request or cannot be reached."""
    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


def normalize_shop_domain(shop: str) -> str:
    shop = (shop or "").strip().lower()
    shop = re.sub(r"^https?://", "", shop).rstrip("/")
    if not _SHOP_DOMAIN_RE.match(shop):
        raise ShopifyError(f"Invalid shop domain: {shop!r}")
    return shop


class ShopifyClient:
    """
    Shopify Admin REST client.

    transport is passed straight to httpx.Client; tests use httpx.MockTransport.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        api_secret: str | None,
        api_version: str = "2024-10",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def _check(self, response: httpx.Response, action: str) -> dict:
        if response.status_code >= 400:
            raise ShopifyError(
                f"Shopify {action} failed: {response.status_code}",
                status_code=response.status_code,
                details={"response": response.text[:1000]},
            )
        return response.json()

    def exchange_code(self, shop: str, code: str) -> str:
        """Trade an OAuth authorization code for a permanent access token."""
        if not self.api_key or not self.api_secret:
            raise ShopifyError("Shopify API credentials are not configured")
        shop = normalize_shop_domain(shop)

        try:
            with self._client() as client:
                response = client.post(
                    f"https://{shop}/admin/oauth/access_token",
                    json={
                        "client_id": self.api_key,
                        "client_secret": self.api_secret,
                        "code": code,
                    },
                )
        except httpx.HTTPError as e:
            raise ShopifyError(f"Shopify token exchange failed: {e}") from e

        data = self._check(response, "token exchange")
        token = data.get("access_token")
        if not token:
            raise ShopifyError("Shopify token exchange returned no access_token")
        return token

    def push_product(self, shop: str, access_token: str, product: dict) -> str:
        """
        Create (or update, when remote_product_id is set) a product in the
        store. Returns the remote product id as a string.
        """
        shop = normalize_shop_domain(shop)
        base = f"https://{shop}/admin/api/{self.api_version}"
        body = {
            "product": {
                "title": product["title"],
                "body_html": product.get("description") or "",
                "product_type": product.get("category") or "",
                "status": "active" if product.get("status") == "active" else "draft",
                "variants": [{
                    "price": f"{product['price_cents'] / 100:.2f}",
                    "sku": product.get("sku") or "",
                    "inventory_quantity": product.get("inventory_quantity", 0),
                }],
            }
        }
        headers = {"X-Shopify-Access-Token": access_token}
        remote_id = product.get("remote_product_id")

        try:
            with self._client() as client:
                if remote_id:
                    response = client.put(f"{base}/products/{remote_id}.json", json=body, headers=headers)
                else:
                    response = client.post(f"{base}/products.json", json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ShopifyError(f"Shopify product push failed: {e}") from e

        data = self._check(response, "product push")
        return str(data["product"]["id"])
