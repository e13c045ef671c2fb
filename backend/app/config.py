# backend/app/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int | None = None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/dropship.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///dropship.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Lifetime sales (in cents) that unlock the FREE FOR LIFE tier.
    # Required: there is no default, the subscription engine refuses to start without it.
    FREE_FOR_LIFE_THRESHOLD_CENTS = _int_env("FREE_FOR_LIFE_THRESHOLD_CENTS")

    # Plan assigned to new merchants and the length of their trial
    DEFAULT_PLAN_SLUG = os.environ.get("DEFAULT_PLAN_SLUG", "free")
    TRIAL_DAYS = _int_env("TRIAL_DAYS", 14)

    # Shared secret expected in the X-Billing-Signature header of payment processor webhooks
    BILLING_WEBHOOK_SECRET = os.environ.get("BILLING_WEBHOOK_SECRET")

    # Commerce platform (Shopify) app credentials
    SHOPIFY_API_KEY = os.environ.get("SHOPIFY_API_KEY")
    SHOPIFY_API_SECRET = os.environ.get("SHOPIFY_API_SECRET")
    SHOPIFY_API_VERSION = os.environ.get("SHOPIFY_API_VERSION", "2024-10")
    SHOPIFY_TIMEOUT_SECONDS = float(os.environ.get("SHOPIFY_TIMEOUT_SECONDS", "15"))
