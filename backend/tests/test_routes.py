# Overview: Pytest coverage for the HTTP API; status codes, error bodies and role checks.

import pytest

from app.extensions import db
from app.models import Merchant

from conftest import PASSWORD, WEBHOOK_SECRET, auth_headers, get_auth_token


@pytest.fixture
def headers_a(client, merchant_a):
    return auth_headers(get_auth_token(client, "owner@acme.com"))


@pytest.fixture
def headers_b(client, merchant_b):
    return auth_headers(get_auth_token(client, "owner@beta.com"))


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin@platform.com"))


def _import(client, headers, product_id, rule=None):
    body = {"product_id": product_id}
    if rule is not None:
        body["pricing_rule"] = rule
    return client.post("/api/products/import", json=body, headers=headers)


class TestSystem:
    def test_health(self, client, plans):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["status"] == "healthy"
        assert response.json["checks"]["billing"]["details"]["threshold_configured"] is True

    def test_health_degraded_without_plans(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["status"] == "degraded"


class TestAuth:
    def test_register_then_login(self, client, plans):
        response = client.post("/api/merchants/register", json={
            "business_name": "Gamma Goods",
            "email": "Owner@Gamma.com",
            "password": PASSWORD,
        })
        assert response.status_code == 201
        assert response.json["user"]["email"] == "owner@gamma.com"
        assert response.json["user"]["role"] == "merchant"

        token = get_auth_token(client, "owner@gamma.com")
        assert token

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["merchant_id"] == response.json["merchant"]["id"]

    def test_register_weak_password(self, client, plans):
        response = client.post("/api/merchants/register", json={
            "business_name": "Weak", "email": "weak@example.com", "password": "short",
        })
        assert response.status_code == 400
        assert response.json["field"] == "password"

    def test_register_duplicate_email(self, client, merchant_a):
        response = client.post("/api/merchants/register", json={
            "business_name": "Copycat", "email": "owner@acme.com", "password": PASSWORD,
        })
        assert response.status_code == 409

    def test_bad_credentials(self, client, merchant_a):
        response = client.post("/api/auth/login", json={"email": "owner@acme.com", "password": "WrongPass123!"})
        assert response.status_code == 401

    def test_missing_token(self, client, db_session):
        assert client.get("/api/products").status_code == 401
        assert client.get("/api/products", headers=auth_headers("nope")).status_code == 401

    def test_logout_revokes_token(self, client, headers_a):
        assert client.post("/api/auth/logout", headers=headers_a).status_code == 200
        assert client.get("/api/auth/me", headers=headers_a).status_code == 401


class TestProductRoutes:
    def test_import_and_list(self, client, headers_a, catalog_product):
        response = _import(client, headers_a, catalog_product["id"], {"type": "percentage", "value": 20})
        assert response.status_code == 201
        assert response.json["product"]["merchant_price_cents"] == 1200

        listing = client.get("/api/products", headers=headers_a)
        assert listing.status_code == 200
        assert [p["id"] for p in listing.json["items"]] == [response.json["product"]["id"]]

    def test_import_duplicate_is_409(self, client, headers_a, catalog_product):
        _import(client, headers_a, catalog_product["id"])
        assert _import(client, headers_a, catalog_product["id"]).status_code == 409

    def test_invalid_rule_is_400(self, client, headers_a, catalog_product):
        response = _import(client, headers_a, catalog_product["id"], {"type": "fixed", "value": -1})
        assert response.status_code == 400
        assert "error" in response.json

    def test_limit_body(self, client, headers_a, merchant_a, catalog_product):
        from app.services import subscription_service

        subscription = subscription_service.require_subscription(merchant_a.id)
        subscription.product_limit = 0
        db.session.commit()

        response = _import(client, headers_a, catalog_product["id"])
        assert response.status_code == 403
        assert response.json["code"] == "LIMIT_EXCEEDED"
        assert response.json["resource"] == "products"
        assert response.json["used"] == 0
        assert response.json["limit"] == 0

    def test_foreign_product_is_404(self, client, headers_a, headers_b, catalog_product):
        product_b = _import(client, headers_b, catalog_product["id"]).json["product"]

        response = client.put(
            f"/api/products/{product_b['id']}/pricing",
            json={"pricing_rule": {"type": "fixed", "value": 1}},
            headers=headers_a,
        )
        assert response.status_code == 404
        assert response.json["error"] == "Product not found"
        assert client.delete(f"/api/products/{product_b['id']}", headers=headers_a).status_code == 404

    def test_price_preview_writes_nothing(self, client, headers_a, catalog_product):
        response = client.post(
            f"/api/catalog/{catalog_product['id']}/price-preview",
            json={"pricing_rule": {"type": "percentage", "value": 50}},
            headers=headers_a,
        )
        assert response.status_code == 200
        assert response.json["selling_price_cents"] == 1500
        assert client.get("/api/products", headers=headers_a).json["items"] == []


class TestOrderRoutes:
    def _order(self, product_id, number="#1001"):
        return {
            "order_number": number,
            "customer_email": "buyer@example.com",
            "items": [{"product_id": product_id, "quantity": 2}],
            "shipping_cents": 500,
        }

    def test_create_then_replay(self, client, headers_a, catalog_product):
        product = _import(client, headers_a, catalog_product["id"], {"type": "percentage", "value": 20}).json["product"]

        first = client.post("/api/orders", json=self._order(product["id"]), headers=headers_a)
        assert first.status_code == 201
        assert first.json["created"] is True
        assert first.json["order"]["financials"]["total_cents"] == 2900

        replay = client.post("/api/orders", json=self._order(product["id"]), headers=headers_a)
        assert replay.status_code == 200
        assert replay.json["created"] is False

        summary = client.get("/api/subscription", headers=headers_a).json
        assert summary["free_for_life"]["lifetime_sales_cents"] == 2900

    def test_illegal_transition_is_400(self, client, headers_a, catalog_product):
        product = _import(client, headers_a, catalog_product["id"]).json["product"]
        order = client.post("/api/orders", json=self._order(product["id"]), headers=headers_a).json["order"]

        url = f"/api/orders/{order['id']}/items/0/fulfillment"
        assert client.put(url, json={"status": "delivered"}, headers=headers_a).status_code == 200
        response = client.put(url, json={"status": "shipped"}, headers=headers_a)
        assert response.status_code == 400
        assert response.json["current"] == "delivered"
        assert response.json["target"] == "shipped"

    def test_foreign_order_is_404(self, client, headers_a, headers_b, catalog_product):
        product = _import(client, headers_b, catalog_product["id"]).json["product"]
        order = client.post("/api/orders", json=self._order(product["id"]), headers=headers_b).json["order"]

        assert client.get(f"/api/orders/{order['id']}", headers=headers_a).status_code == 404
        assert client.post(f"/api/orders/{order['id']}/cancel", headers=headers_a).status_code == 404

    def test_dashboard(self, client, headers_a, headers_b, catalog_product):
        product = _import(client, headers_a, catalog_product["id"], {"type": "percentage", "value": 20}).json["product"]
        client.post("/api/orders", json=self._order(product["id"]), headers=headers_a)

        stats = client.get("/api/merchants/dashboard", headers=headers_a).json["stats"]
        assert stats["total_orders"] == 1
        assert stats["total_revenue_cents"] == 2900
        assert stats["total_profit_cents"] == 400
        assert stats["pending_orders"] == 1
        assert (stats["product_count"], stats["product_limit"]) == (1, 25)

        assert client.get("/api/merchants/dashboard", headers=headers_b).json["stats"]["total_orders"] == 0
        assert client.get("/api/merchants/dashboard").status_code == 401


class TestSubscriptionRoutes:
    def test_summary(self, client, headers_a):
        response = client.get("/api/subscription", headers=headers_a)
        assert response.status_code == 200
        assert response.json["plan"]["slug"] == "free"
        assert response.json["limits"]["products"] == 25
        assert response.json["free_for_life"]["threshold_cents"] == 1_000_000
        assert response.json["free_for_life"]["progress_percentage"] == 0

    def test_plans_are_public(self, client, plans):
        response = client.get("/api/subscription/plans")
        assert response.status_code == 200
        assert {p["slug"] for p in response.json["items"]} >= {"free", "starter", "millionaire"}

    def test_upgrade(self, client, headers_a):
        response = client.post(
            "/api/subscription/upgrade",
            json={"plan_slug": "growth", "billing_interval": "yearly"},
            headers=headers_a,
        )
        assert response.status_code == 200
        assert response.json["plan"]["slug"] == "growth"
        assert response.json["limits"]["products"] == 250

    def test_upgrade_unknown_plan(self, client, headers_a):
        response = client.post("/api/subscription/upgrade", json={"plan_slug": "platinum"}, headers=headers_a)
        assert response.status_code == 400
        assert response.json["field"] == "plan_slug"

    def test_check_free_for_life(self, client, headers_a):
        response = client.post("/api/subscription/check-free-for-life", headers=headers_a)
        assert response.status_code == 200
        assert response.json["newly_unlocked"] is False


class TestBillingWebhook:
    def _event(self, merchant_id, status="past_due"):
        return {"type": "customer.subscription.updated", "data": {"merchant_id": merchant_id, "status": status}}

    def test_bad_signature(self, client, merchant_a):
        response = client.post(
            "/api/billing/webhook", json=self._event(merchant_a.id), headers={"X-Billing-Signature": "wrong"}
        )
        assert response.status_code == 401

    def test_applies_status(self, client, merchant_a):
        response = client.post(
            "/api/billing/webhook", json=self._event(merchant_a.id),
            headers={"X-Billing-Signature": WEBHOOK_SECRET},
        )
        assert response.status_code == 200
        assert response.json == {"received": True, "matched": True, "status": "past_due"}

    def test_unknown_merchant_acknowledged(self, client, db_session):
        response = client.post(
            "/api/billing/webhook", json=self._event(424242),
            headers={"X-Billing-Signature": WEBHOOK_SECRET},
        )
        assert response.status_code == 202
        assert response.json["matched"] is False

    def test_unsupported_status(self, client, merchant_a):
        response = client.post(
            "/api/billing/webhook", json=self._event(merchant_a.id, status="paused_forever"),
            headers={"X-Billing-Signature": WEBHOOK_SECRET},
        )
        assert response.status_code == 400

    def test_unconfigured_secret(self, app, client, merchant_a, monkeypatch):
        monkeypatch.setitem(app.config, "BILLING_WEBHOOK_SECRET", None)
        response = client.post(
            "/api/billing/webhook", json=self._event(merchant_a.id),
            headers={"X-Billing-Signature": WEBHOOK_SECRET},
        )
        assert response.status_code == 503


class TestTeamRoutes:
    def test_free_plan_allows_one_invite(self, client, headers_a):
        first = client.post("/api/team/invitations", json={"email": "staff1@acme.com"}, headers=headers_a)
        assert first.status_code == 201

        second = client.post("/api/team/invitations", json={"email": "staff2@acme.com"}, headers=headers_a)
        assert second.status_code == 403
        assert second.json["resource"] == "team_members"
        assert second.json["used"] == 1

    def test_accept_invitation_and_staff_roles(self, client, headers_a, catalog_product):
        invitation = client.post(
            "/api/team/invitations", json={"email": "staff@acme.com", "name": "Sam"}, headers=headers_a
        ).json["invitation"]

        accepted = client.post(f"/api/team/invitations/{invitation['id']}/accept", json={"password": PASSWORD})
        assert accepted.status_code == 201
        assert accepted.json["user"]["role"] == "staff"

        staff_headers = auth_headers(get_auth_token(client, "staff@acme.com"))
        # Staff can import, but not change the plan or invite
        assert _import(client, staff_headers, catalog_product["id"]).status_code == 201
        assert client.post(
            "/api/subscription/upgrade", json={"plan_slug": "growth"}, headers=staff_headers
        ).status_code == 403
        assert client.post(
            "/api/team/invitations", json={"email": "x@acme.com"}, headers=staff_headers
        ).status_code == 403

        team = client.get("/api/team", headers=headers_a).json
        assert [m["email"] for m in team["members"] if m["role"] == "staff"] == ["staff@acme.com"]

    def test_revoke_frees_the_slot(self, client, headers_a):
        invitation = client.post(
            "/api/team/invitations", json={"email": "staff1@acme.com"}, headers=headers_a
        ).json["invitation"]

        assert client.delete(f"/api/team/invitations/{invitation['id']}", headers=headers_a).status_code == 200
        assert client.delete(f"/api/team/invitations/{invitation['id']}", headers=headers_a).status_code == 404
        assert client.post(
            "/api/team/invitations", json={"email": "staff2@acme.com"}, headers=headers_a
        ).status_code == 201


class TestAdsRoutes:
    def test_free_plan_cannot_generate(self, client, headers_a):
        response = client.post("/api/ads/generate", json={}, headers=headers_a)
        assert response.status_code == 403
        assert response.json["resource"] == "daily_ads"
        assert response.json["limit"] == 0

    def test_starter_plan_gets_one_per_day(self, client, headers_a):
        client.post("/api/subscription/upgrade", json={"plan_slug": "starter"}, headers=headers_a)

        response = client.post("/api/ads/generate", json={"platform": "instagram"}, headers=headers_a)
        assert response.status_code == 201
        assert response.json["ad"]["platform"] == "instagram"

        assert client.post("/api/ads/generate", json={}, headers=headers_a).status_code == 403

        listing = client.get("/api/ads", headers=headers_a).json
        assert listing["ads_generated_today"] == 1
        assert listing["daily_ads_limit"] == 1
        assert listing["remaining_today"] == 0
        assert len(listing["items"]) == 1

    def test_video_needs_plan_feature(self, client, headers_a):
        client.post("/api/subscription/upgrade", json={"plan_slug": "starter"}, headers=headers_a)
        response = client.post("/api/ads/generate", json={"format": "video"}, headers=headers_a)
        assert response.status_code == 400
        assert response.json["field"] == "format"


class TestAdminRoutes:
    def test_merchant_cannot_use_admin_routes(self, client, headers_a, supplier):
        response = client.post(
            "/api/admin/products",
            json={"title": "Sneaky", "supplier_price_cents": 100, "supplier_id": supplier.id},
            headers=headers_a,
        )
        assert response.status_code == 403

    def test_admin_is_not_a_merchant(self, client, admin_headers):
        assert client.get("/api/products", headers=admin_headers).status_code == 403

    def test_admin_creates_global_product(self, client, admin_headers, supplier):
        response = client.post(
            "/api/admin/products",
            json={
                "title": "Smart Watch",
                "supplier_price_cents": 4000,
                "supplier_id": supplier.id,
                "pricing_rule": {"type": "percentage", "value": 25},
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json["product"]["merchant_id"] is None
        assert response.json["product"]["merchant_price_cents"] == 5000

    def test_admin_rejects_unknown_fields(self, client, admin_headers, supplier):
        response = client.post(
            "/api/admin/products",
            json={"title": "X", "supplier_price_cents": 1, "supplier_id": supplier.id, "merchant_id": 1},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_suspend_merchant_revokes_sessions(self, client, admin_headers, headers_a, merchant_a):
        response = client.post(f"/api/admin/merchants/{merchant_a.id}/suspend", headers=admin_headers)
        assert response.status_code == 200
        assert response.json["merchant"]["is_suspended"] is True
        assert client.get("/api/auth/me", headers=headers_a).status_code == 401

        db.session.expire_all()
        assert db.session.get(Merchant, merchant_a.id).is_suspended is True
