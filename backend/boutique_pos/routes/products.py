# Overview: Flask API routes for products and categories; parses input and returns JSON responses.

# backend/boutique_pos/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Reads are open to every role
- Create/update require MANAGE_PRODUCTS
- Deactivation requires DELETE_PRODUCTS
- Category creation requires MANAGE_CATEGORIES
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import InternalError, PosError
from ..extensions import db
from ..models import Category, Product
from ..services import inventory_service, products_service
from ..validation import ModelValidationPolicy, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "sku", "barcode", "category_id", "description", "image_url", "is_active"},
    required_on_create={"name"},
    extra_fields={"selling_price", "cost_price", "tax_rate", "initial_stock", "reorder_level", "expiry_date"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    products = products_service.list_products(db.session)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/search")
@require_auth
def search_products_route():
    """Match name, SKU, barcode or category name. Query param: q."""
    try:
        products = products_service.search_products(db.session, request.args.get("q", ""))
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/low-stock")
@require_auth
def low_stock_products_route():
    records = inventory_service.list_low_stock(db.session)
    return jsonify({"products": [r.to_dict() for r in records]}), 200


@products_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = products_service.list_categories(db.session)
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@products_bp.post("/categories")
@require_auth
@require_permission("MANAGE_CATEGORIES")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = products_service.create_category(db.session, patch)
        return jsonify({"message": "Category created.", "category": category.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create category")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(db.session, product_id)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a product and open its stock record.

    Requires MANAGE_PRODUCTS permission.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        product = products_service.create_product(db.session, patch)
        return jsonify({"message": "Product created.", "product": product.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """
    Update product fields. Stock quantity is not editable here; use
    POST /api/inventory/adjust.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        for key in ("initial_stock", "reorder_level", "expiry_date"):
            patch.pop(key, None)
        product = products_service.update_product(db.session, product_id, patch)
        return jsonify({"message": "Product updated.", "product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete. Requires DELETE_PRODUCTS permission."""
    try:
        products_service.deactivate_product(db.session, product_id)
        return jsonify({"message": "Product deactivated."}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code
