from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product.

    MULTI-TENANT: merchant_id IS NULL marks a global catalog product owned by
    a supplier. Importing creates a merchant copy (merchant_id set,
    source_product_id pointing back at the global row). Deleting the copy
    never touches the global product.

    PRICING INVARIANT:
    merchant_price_cents == apply_markup(supplier_price_cents, pricing_rule)
    as of the last pricing update. Both are written together by
    products_service; neither is edited independently once a rule exists.
    """
    __tablename__ = "products"
    __table_args__ = (
        # A merchant imports a given global product at most once
        db.UniqueConstraint("merchant_id", "source_product_id", name="uq_products_merchant_source"),
        db.Index("ix_products_merchant_status", "merchant_id", "status"),
        db.Index("ix_products_supplier", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=True, index=True)
    source_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True, index=True)
    supplier_sku = db.Column(db.String(128), nullable=True)

    # Authoritative storage in cents
    supplier_price_cents = db.Column(db.Integer, nullable=False)
    merchant_price_cents = db.Column(db.Integer, nullable=True)

    # percentage | fixed; value is a percent or a cent amount
    pricing_rule_type = db.Column(db.String(16), nullable=True)
    pricing_rule_value = db.Column(db.Numeric(12, 4), nullable=True)

    inventory_quantity = db.Column(db.Integer, nullable=False, default=0)
    # draft, active, archived
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    # Commerce platform push state: pending, synced, failed
    sync_status = db.Column(db.String(16), nullable=False, default="pending")
    remote_product_id = db.Column(db.String(64), nullable=True)
    last_synced_at = db.Column(db.DateTime(timezone=True), nullable=True)
    imported_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    source_product = db.relationship("Product", remote_side=[id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} title={self.title!r} merchant_id={self.merchant_id}>"

    @property
    def is_global(self) -> bool:
        return self.merchant_id is None

    @property
    def pricing_rule(self) -> dict | None:
        if self.pricing_rule_type is None:
            return None
        return {"type": self.pricing_rule_type, "value": float(self.pricing_rule_value)}

    @property
    def selling_price_cents(self) -> int:
        """Price charged to customers; falls back to cost for unpriced products."""
        if self.merchant_price_cents is None:
            return self.supplier_price_cents
        return self.merchant_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "merchant_id": self.merchant_id,
            "source_product_id": self.source_product_id,
            "is_global": self.is_global,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "supplier_sku": self.supplier_sku,
            "supplier_price_cents": self.supplier_price_cents,
            "merchant_price_cents": self.merchant_price_cents,
            "pricing_rule": self.pricing_rule,
            "inventory_quantity": self.inventory_quantity,
            "status": self.status,
            "sync_status": self.sync_status,
            "remote_product_id": self.remote_product_id,
            "last_synced_at": to_utc_z(self.last_synced_at),
            "imported_at": to_utc_z(self.imported_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
