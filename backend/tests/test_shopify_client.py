# Overview: Pytest coverage for the Shopify client and store connection, against httpx.MockTransport.

import json

import httpx
import pytest

from app.extensions import db
from app.integrations.shopify_client import ShopifyClient, ShopifyError, normalize_shop_domain
from app.models import Merchant
from app.services import integration_service, products_service
from app.services.integration_service import IntegrationError

SHOP = "acme-store.myshopify.com"


def _client(handler) -> ShopifyClient:
    return ShopifyClient(api_key="key", api_secret="secret", transport=httpx.MockTransport(handler))


class TestShopDomain:
    @pytest.mark.parametrize("raw", ["acme-store.myshopify.com", "https://Acme-Store.myshopify.com/", " acme-store.myshopify.com "])
    def test_normalizes(self, raw):
        assert normalize_shop_domain(raw) == SHOP

    @pytest.mark.parametrize("raw", ["", "evil.com", "acme.myshopify.com.evil.com", "-acme.myshopify.com"])
    def test_rejects(self, raw):
        with pytest.raises(ShopifyError):
            normalize_shop_domain(raw)


class TestShopifyClient:
    def test_exchange_code(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"access_token": "shpat_123", "scope": "write_products"})

        assert _client(handler).exchange_code(SHOP, "abc") == "shpat_123"
        assert seen["url"] == f"https://{SHOP}/admin/oauth/access_token"
        assert seen["body"] == {"client_id": "key", "client_secret": "secret", "code": "abc"}

    def test_exchange_code_without_credentials(self):
        client = ShopifyClient(api_key=None, api_secret=None)
        with pytest.raises(ShopifyError):
            client.exchange_code(SHOP, "abc")

    def test_exchange_code_rejected(self):
        client = _client(lambda request: httpx.Response(400, json={"error": "invalid_request"}))
        with pytest.raises(ShopifyError) as exc:
            client.exchange_code(SHOP, "bad")
        assert exc.value.status_code == 400

    def test_push_creates_then_updates(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, request.url.path, request.headers["X-Shopify-Access-Token"]))
            body = json.loads(request.content)
            assert body["product"]["variants"][0]["price"] == "12.00"
            return httpx.Response(200, json={"product": {"id": 98765}})

        client = _client(handler)
        product = {"title": "Wireless Earbuds", "price_cents": 1200, "status": "active"}

        assert client.push_product(SHOP, "shpat_123", product) == "98765"
        assert client.push_product(SHOP, "shpat_123", {**product, "remote_product_id": "98765"}) == "98765"
        assert calls == [
            ("POST", "/admin/api/2024-10/products.json", "shpat_123"),
            ("PUT", "/admin/api/2024-10/products/98765.json", "shpat_123"),
        ]

    def test_network_error_becomes_shopify_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ShopifyError):
            _client(handler).push_product(SHOP, "shpat_123", {"title": "X", "price_cents": 100})


class TestIntegrationService:
    def _connect(self, merchant_id):
        client = _client(lambda request: httpx.Response(200, json={"access_token": "shpat_123"}))
        return integration_service.connect_store(
            merchant_id=merchant_id, shop="https://acme-store.myshopify.com", code="abc", client=client
        )

    def test_connect_store(self, db_session, merchant_a):
        merchant = self._connect(merchant_a.id)

        assert merchant["shopify_domain"] == SHOP
        assert merchant["shopify_connected"] is True
        assert "shopify_access_token" not in merchant
        assert db.session.get(Merchant, merchant_a.id).shopify_access_token == "shpat_123"

    def test_push_requires_connection(self, db_session, merchant_a, catalog_product):
        copy = products_service.import_product(merchant_id=merchant_a.id, product_id=catalog_product["id"])
        with pytest.raises(IntegrationError):
            integration_service.push_product_to_store(merchant_id=merchant_a.id, product_id=copy["id"])

    def test_push_records_sync(self, db_session, merchant_a, catalog_product):
        self._connect(merchant_a.id)
        copy = products_service.import_product(
            merchant_id=merchant_a.id, product_id=catalog_product["id"],
            pricing_rule={"type": "percentage", "value": 20},
        )
        client = _client(lambda request: httpx.Response(201, json={"product": {"id": 555}}))

        result = integration_service.push_product_to_store(
            merchant_id=merchant_a.id, product_id=copy["id"], client=client
        )
        assert result["error"] is None
        assert result["product"]["sync_status"] == "synced"
        assert result["product"]["remote_product_id"] == "555"

    def test_push_failure_is_recorded(self, db_session, merchant_a, catalog_product):
        self._connect(merchant_a.id)
        copy = products_service.import_product(merchant_id=merchant_a.id, product_id=catalog_product["id"])
        client = _client(lambda request: httpx.Response(422, json={"errors": {"title": ["is invalid"]}}))

        result = integration_service.push_product_to_store(
            merchant_id=merchant_a.id, product_id=copy["id"], client=client
        )
        assert result["error"] is not None
        assert result["product"]["sync_status"] == "failed"
        assert result["product"]["remote_product_id"] is None
