from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z
from app.settlement import OrderItem


class Order(db.Model):
    """
    Customer order scoped to one merchant.

    Line items are stored embedded (JSON) as immutable snapshots of price,
    cost and profit at the time of sale. Financial columns are written once
    from build_order_financials and never edited by hand.

    Orders are never deleted; they move to cancelled/refunded instead.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("merchant_id", "order_number", name="uq_orders_merchant_number"),
        db.Index("ix_orders_merchant_created", "merchant_id", "created_at"),
        db.Index("ix_orders_merchant_status", "merchant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey("merchants.id"), nullable=False, index=True)

    # Merchant-facing number (e.g. storefront order name); idempotency key for creation
    order_number = db.Column(db.String(64), nullable=False)

    customer_email = db.Column(db.String(255), nullable=False)
    shipping_address = db.Column(db.JSON, nullable=False, default=dict)

    items_json = db.Column("items", db.JSON, nullable=False, default=list)

    # Financials (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    total_cost_cents = db.Column(db.Integer, nullable=False)
    total_profit_cents = db.Column(db.Integer, nullable=False)
    discount_clamped = db.Column(db.Boolean, nullable=False, default=False)

    # pending, processing, completed, cancelled, refunded
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    # pending, paid, refunded, failed
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    # unfulfilled, partial, fulfilled, cancelled (derived from items)
    fulfillment_status = db.Column(db.String(16), nullable=False, default="unfulfilled")

    # Set once the order total has been added to lifetime sales
    sales_recorded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    timeline = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    merchant = db.relationship("Merchant", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def items(self) -> list[OrderItem]:
        return [OrderItem.from_dict(row) for row in (self.items_json or [])]

    @items.setter
    def items(self, items: list[OrderItem]) -> None:
        # Reassign a new list so SQLAlchemy sees the JSON column as changed
        self.items_json = [item.to_dict() for item in items]

    def add_timeline_entry(self, status: str, message: str, at) -> None:
        self.timeline = list(self.timeline or []) + [
            {"status": status, "message": message, "created_at": to_utc_z(at)}
        ]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "merchant_id": self.merchant_id,
            "order_number": self.order_number,
            "customer_email": self.customer_email,
            "shipping_address": self.shipping_address,
            "items": list(self.items_json or []),
            "financials": {
                "subtotal_cents": self.subtotal_cents,
                "shipping_cents": self.shipping_cents,
                "tax_cents": self.tax_cents,
                "discount_cents": self.discount_cents,
                "total_cents": self.total_cents,
                "total_cost_cents": self.total_cost_cents,
                "total_profit_cents": self.total_profit_cents,
                "discount_clamped": self.discount_clamped,
            },
            "status": self.status,
            "payment_status": self.payment_status,
            "fulfillment_status": self.fulfillment_status,
            "sales_recorded_at": to_utc_z(self.sales_recorded_at),
            "timeline": list(self.timeline or []),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
