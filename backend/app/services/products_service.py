# backend/app/services/products_service.py
"""
Products Service with Merchant Tenancy

MULTI-TENANT: the global catalog (merchant_id IS NULL) is platform-owned and
read-only to merchants. Merchants work on imported copies only.
- import_product checks the product limit under the subscription row lock
- pricing updates recompute merchant_price_cents from the rule, never by hand
- delete_merchant_product removes the copy; the global product persists
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..limits import RESOURCE_PRODUCTS
from ..models import Merchant, Product, Supplier
from ..pricing import PricingRule, apply_markup, parse_pricing_rule, price_summary
from ..validation import ConflictError, ValidationError
from app.time_utils import utcnow
from .activity_service import append_activity
from .concurrency import ConcurrencyConflictError, begin_write, lock_for_update, run_with_retry
from .subscription_service import require_within_limit
from .tenant_service import TenantAccessError, require_merchant_product, scoped_query

PRODUCT_MUTABLE_FIELDS = {
    "title", "description", "category", "supplier_sku",
    "supplier_price_cents", "inventory_quantity", "status",
}

# Bulk requests larger than this are rejected up front
MAX_BULK_ITEMS = 500


@dataclass
class BatchResult:
    """Per-item outcome of a bulk operation. Never all-or-nothing."""
    succeeded: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    errors: dict[int, str] = field(default_factory=dict)

    def record_failure(self, item_id: int, message: str) -> None:
        self.failed.append(item_id)
        self.errors[item_id] = message

    def to_dict(self) -> dict:
        return {
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
            "errors": {str(k): v for k, v in self.errors.items()},
            "succeeded_count": len(self.succeeded),
            "failed_count": len(self.failed),
        }


def _paginate(base_query, page: int | None, per_page: int | None) -> dict:
    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(max(per_page or 20, 1), 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def _search_filter(search: str):
    pattern = f"%{search.strip()}%"
    return or_(
        Product.title.ilike(pattern),
        Product.description.ilike(pattern),
        Product.category.ilike(pattern),
        Product.supplier_sku.ilike(pattern),
    )


def list_catalog(
    *,
    search: str | None = None,
    category: str | None = None,
    supplier_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Active global catalog products with case-insensitive substring search.

    Args:
        search: matched against title, description, category and SKU
        category: exact category filter
        supplier_id: only this supplier's products
        page: 1-indexed page. If None, returns all items.
        per_page: items per page (default 20, max 100)
    """
    query = db.session.query(Product).filter(
        Product.merchant_id.is_(None),
        Product.status == "active",
    )
    if search and search.strip():
        query = query.filter(_search_filter(search))
    if category:
        query = query.filter(Product.category == category)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)

    return _paginate(query.order_by(Product.title.asc(), Product.id.asc()), page, per_page)


def list_merchant_products(
    merchant_id: int,
    *,
    search: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """MULTI-TENANT: only products imported by merchant_id."""
    query = scoped_query(Product, merchant_id)
    if search and search.strip():
        query = query.filter(_search_filter(search))
    if status:
        query = query.filter(Product.status == status)
    return _paginate(query.order_by(Product.title.asc(), Product.id.asc()), page, per_page)


def get_global_product(product_id: int) -> Product | None:
    return db.session.query(Product).filter(
        Product.id == product_id,
        Product.merchant_id.is_(None),
    ).first()


def create_global_product(*, patch: dict, supplier_id: int, pricing_rule=None) -> dict:
    """
    Admin: add a product to the global catalog.

    patch is already validated (validate_payload + enforce_rules_product).
    An optional pricing_rule sets a suggested selling price.
    """
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None or not supplier.is_active:
        raise ValidationError("Supplier not found", field="supplier_id")

    product = Product(supplier_id=supplier.id, merchant_id=None)
    for key, value in patch.items():
        if key in PRODUCT_MUTABLE_FIELDS:
            setattr(product, key, value)

    if pricing_rule is not None:
        _apply_rule(product, parse_pricing_rule(pricing_rule))

    db.session.add(product)
    db.session.flush()
    append_activity(
        event_type="product.created",
        event_category="product",
        entity_type="product",
        entity_id=product.id,
        note=f"Global product {product.title} created",
    )
    db.session.commit()
    return product.to_dict()


def update_global_product(product_id: int, patch: dict) -> dict | None:
    """
    Admin: edit a global product. Does not touch merchant copies; their
    cost and price were snapshotted at import.
    """
    def _op():
        product = lock_for_update(
            db.session.query(Product).filter(Product.id == product_id, Product.merchant_id.is_(None))
        ).first()
        if product is None:
            return None
        for key, value in patch.items():
            if key in PRODUCT_MUTABLE_FIELDS:
                setattr(product, key, value)
        if "supplier_price_cents" in patch and product.pricing_rule_type:
            _apply_rule(product, parse_pricing_rule(product.pricing_rule))
        db.session.commit()
        return product.to_dict()

    return run_with_retry(_op)


def _apply_rule(product: Product, rule: PricingRule) -> None:
    """Write rule and derived price together."""
    product.merchant_price_cents = apply_markup(product.supplier_price_cents, rule)
    product.pricing_rule_type = rule.type
    product.pricing_rule_value = rule.value


def _merchant_default_rule(merchant_id: int) -> PricingRule:
    merchant = db.session.get(Merchant, merchant_id)
    if merchant is None:
        raise TenantAccessError("Merchant not found")
    return parse_pricing_rule(merchant.default_pricing_rule)


def import_product(
    *,
    merchant_id: int,
    product_id: int,
    pricing_rule=None,
    actor_user_id: int | None = None,
) -> dict:
    """
    Copy a global product into the merchant's store.

    The product limit is checked under the subscription row lock, before the
    copy is created. Without a pricing_rule the merchant's default applies.

    Raises:
        ValidationError: unknown/inactive product or bad pricing rule
        ConflictError: already imported
        LimitExceededError: product limit reached
    """
    rule = parse_pricing_rule(pricing_rule) if pricing_rule is not None else _merchant_default_rule(merchant_id)

    def _op():
        begin_write()
        source = get_global_product(product_id)
        if source is None or source.status != "active":
            raise ValidationError("Catalog product not found", field="product_id")

        subscription = require_within_limit(merchant_id, RESOURCE_PRODUCTS)

        existing = db.session.query(Product.id).filter_by(
            merchant_id=merchant_id, source_product_id=source.id
        ).first()
        if existing:
            raise ConflictError("Product already imported")

        now = utcnow()
        copy = Product(
            supplier_id=source.supplier_id,
            merchant_id=merchant_id,
            source_product_id=source.id,
            title=source.title,
            description=source.description,
            category=source.category,
            supplier_sku=source.supplier_sku,
            supplier_price_cents=source.supplier_price_cents,
            inventory_quantity=source.inventory_quantity,
            status="active",
            sync_status="pending",
            imported_at=now,
        )
        _apply_rule(copy, rule)
        db.session.add(copy)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Product already imported")

        append_activity(
            merchant_id=merchant_id,
            event_type="product.imported",
            event_category="product",
            entity_type="product",
            entity_id=copy.id,
            actor_user_id=actor_user_id,
            occurred_at=now,
            note=f"Imported {copy.title}",
            payload={"source_product_id": source.id, "subscription_id": subscription.id},
        )
        db.session.commit()
        return copy.to_dict()

    return run_with_retry(_op)


def update_product_pricing(
    product_id: int,
    pricing_rule,
    *,
    merchant_id: int | None = None,
) -> dict:
    """
    Set a product's rule and recompute its selling price.

    merchant_id scopes the update to the merchant's own copy; None means a
    platform admin editing a global product.
    """
    rule = parse_pricing_rule(pricing_rule)

    def _op():
        if merchant_id is not None:
            product = require_merchant_product(product_id, merchant_id, lock=True)
        else:
            product = lock_for_update(
                db.session.query(Product).filter(Product.id == product_id, Product.merchant_id.is_(None))
            ).first()
            if product is None:
                raise TenantAccessError("Product not found")

        _apply_rule(product, rule)
        db.session.commit()
        result = product.to_dict()
        result["price_summary"] = price_summary(product.supplier_price_cents, rule)
        return result

    return run_with_retry(_op)


def bulk_update_pricing(
    product_ids: list,
    pricing_rule,
    *,
    merchant_id: int | None = None,
) -> BatchResult:
    """
    Apply one rule to many products, one transaction per product.

    A bad rule fails the whole request (nothing to apply); a bad or
    conflicting product only fails its own entry.
    """
    rule = parse_pricing_rule(pricing_rule)
    if not isinstance(product_ids, list) or not product_ids:
        raise ValidationError("product_ids must be a non-empty list", field="product_ids")
    if len(product_ids) > MAX_BULK_ITEMS:
        raise ValidationError(f"At most {MAX_BULK_ITEMS} products per request", field="product_ids")

    result = BatchResult()
    for raw_id in product_ids:
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            result.record_failure(raw_id, "Invalid product id")
            continue
        try:
            update_product_pricing(raw_id, rule, merchant_id=merchant_id)
        except TenantAccessError:
            db.session.rollback()
            result.record_failure(raw_id, "Product not found")
        except (ValidationError, ConcurrencyConflictError) as e:
            db.session.rollback()
            result.record_failure(raw_id, str(e))
        else:
            result.succeeded.append(raw_id)

    if result.failed:
        current_app.logger.warning(
            "Bulk pricing: %d succeeded, %d failed (merchant=%s)",
            len(result.succeeded), len(result.failed), merchant_id,
        )
    return result


def delete_merchant_product(product_id: int, merchant_id: int, actor_user_id: int | None = None) -> bool:
    """
    Remove a merchant's imported copy. The global product is never touched.

    Raises TenantAccessError for global or foreign products.
    """
    product = require_merchant_product(product_id, merchant_id)
    title = product.title
    db.session.delete(product)
    append_activity(
        merchant_id=merchant_id,
        event_type="product.deleted",
        event_category="product",
        entity_type="product",
        entity_id=product_id,
        actor_user_id=actor_user_id,
        note=f"Removed {title}",
    )
    db.session.commit()
    return True
