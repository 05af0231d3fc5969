# backend/boutique_pos/services/products_service.py
"""
Products and categories.

Products are soft-deleted only. Creating a product opens its stock record
in the same transaction, so every product the ledger sees has exactly one
StockRecord.
"""
from __future__ import annotations

from decimal import Decimal

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Category, Product
from ..money import parse_amount, parse_rate, to_cents
from ..time_utils import parse_iso_date
from ..validation import coerce_int
from .concurrency import lock_for_update, transaction
from .inventory_service import create_stock_record

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "barcode", "category_id", "description", "image_url", "is_active"}


def _apply_money_fields(product: Product, patch: dict) -> None:
    if "selling_price" in patch:
        product.selling_price_cents = to_cents(parse_amount(patch["selling_price"], "selling_price"))
    if "cost_price" in patch:
        raw = patch["cost_price"]
        product.cost_price_cents = 0 if raw is None else to_cents(parse_amount(raw, "cost_price"))
    if "tax_rate" in patch:
        raw = patch["tax_rate"]
        rate = Decimal("0") if raw is None else parse_rate(raw, "tax_rate")
        if rate > 1:
            raise ValidationError("tax_rate must be a fraction between 0 and 1 (0.16 for 16%)")
        product.tax_rate_bps = int(rate * 10000)


def _ensure_unique(session, patch: dict, *, exclude_id: int | None = None) -> None:
    for field, label in (("sku", "SKU"), ("barcode", "Barcode")):
        value = patch.get(field)
        if not value:
            continue
        query = session.query(Product).filter(getattr(Product, field) == value)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f"{label} already exists.")


def _ensure_category(session, category_id: int | None) -> None:
    if category_id is not None and session.get(Category, category_id) is None:
        raise NotFoundError("Category not found.")


def list_products(session) -> list[Product]:
    return (
        session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def get_product(session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found.")
    return product


def search_products(session, q: str) -> list[Product]:
    if not q or not q.strip():
        raise ValidationError("Search query is required.")
    pattern = f"%{q.strip()}%"
    return (
        session.query(Product)
        .outerjoin(Category, Product.category_id == Category.id)
        .filter(
            Product.is_active.is_(True),
            Product.name.ilike(pattern)
            | Product.sku.ilike(pattern)
            | Product.barcode.ilike(pattern)
            | Category.name.ilike(pattern),
        )
        .order_by(Product.name.asc())
        .all()
    )


def create_product(session, patch: dict) -> Product:
    """
    Create a product and its stock record from a validated patch.

    Extra (non-column) keys: selling_price (required), cost_price, tax_rate,
    initial_stock, reorder_level, expiry_date.
    """
    if patch.get("selling_price") is None:
        raise ValidationError("Product name and selling price are required.")

    initial_stock = coerce_int(patch.get("initial_stock") or 0, "initial_stock")
    reorder_level = coerce_int(
        patch["reorder_level"] if patch.get("reorder_level") is not None else 10,
        "reorder_level",
    )
    try:
        expiry_date = parse_iso_date(patch.get("expiry_date"))
    except (TypeError, ValueError):
        raise ValidationError("expiry_date must be an ISO-8601 date (YYYY-MM-DD)")

    with transaction(session):
        _ensure_unique(session, patch)
        _ensure_category(session, patch.get("category_id"))
        product = Product(**{k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS})
        _apply_money_fields(product, patch)
        session.add(product)
        session.flush()
        create_stock_record(
            session,
            product_id=product.id,
            initial_quantity=initial_stock,
            reorder_level=reorder_level,
            expiry_date=expiry_date,
        )
    return product


def update_product(session, product_id: int, patch: dict) -> Product:
    if "name" in patch and not patch["name"]:
        raise ValidationError("Product name cannot be blank.")
    if "selling_price" in patch and patch["selling_price"] is None:
        raise ValidationError("selling_price cannot be null")

    with transaction(session):
        product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found.")
        _ensure_unique(session, patch, exclude_id=product_id)
        if "category_id" in patch:
            _ensure_category(session, patch["category_id"])
        for k, v in patch.items():
            if k in PRODUCT_MUTABLE_FIELDS:
                setattr(product, k, v)
        _apply_money_fields(product, patch)
    return product


def deactivate_product(session, product_id: int) -> Product:
    """Soft delete: the row and its sale history stay."""
    with transaction(session):
        product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found.")
        product.is_active = False
    return product


def list_categories(session) -> list[Category]:
    return session.query(Category).order_by(Category.name.asc()).all()


def create_category(session, patch: dict) -> Category:
    name = patch.get("name")
    if not name:
        raise ValidationError("Category name is required.")
    with transaction(session):
        if session.query(Category).filter(Category.name == name).first() is not None:
            raise ConflictError("Category already exists.")
        category = Category(name=name, description=patch.get("description"))
        session.add(category)
        session.flush()
    return category
