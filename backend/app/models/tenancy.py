from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Supplier(db.Model):
    """
    Upstream supplier that owns global catalog products.

    Suppliers are platform-level: they are not scoped to a merchant.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    # gigab2b, shopify, amazon, woocommerce, custom
    type = db.Column(db.String(32), nullable=False, default="custom")
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Merchant(db.Model):
    """
    Multi-tenant root: every storefront is a Merchant.

    DESIGN:
    - Merchants are the tenant boundary
    - Imported products, orders, subscriptions and team members all carry merchant_id
    - All merchant-facing queries must be scoped by merchant_id
    """
    __tablename__ = "merchants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False)
    owner_email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_suspended = db.Column(db.Boolean, nullable=False, default=False)

    # Markup applied on import when the request carries no rule
    default_pricing_rule_type = db.Column(db.String(16), nullable=False, default="percentage")
    default_pricing_rule_value = db.Column(db.Numeric(12, 4), nullable=False, default=20)

    # Connected commerce platform store
    shopify_domain = db.Column(db.String(255), nullable=True)
    shopify_access_token = db.Column(db.String(255), nullable=True)
    shopify_connected_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Merchant id={self.id} business_name={self.business_name!r}>"

    @property
    def default_pricing_rule(self) -> dict:
        return {"type": self.default_pricing_rule_type, "value": self.default_pricing_rule_value}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "owner_email": self.owner_email,
            "is_active": self.is_active,
            "is_suspended": self.is_suspended,
            "default_pricing_rule": {
                "type": self.default_pricing_rule_type,
                "value": float(self.default_pricing_rule_value),
            },
            "shopify_domain": self.shopify_domain,
            "shopify_connected": bool(self.shopify_access_token),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
