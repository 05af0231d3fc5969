# Overview: Flask API routes for customers and loyalty; parses input and returns JSON responses.

# backend/boutique_pos/routes/customers.py
"""Customer management routes. Every role may read and create customers."""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import InternalError, PosError, ValidationError
from ..extensions import db
from ..models import Customer
from ..services import customers_service
from ..validation import ModelValidationPolicy, coerce_int, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "birthday", "notes"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    customers = customers_service.list_customers(db.session)
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/search")
@require_auth
def search_customers_route():
    """Match name, phone or email. Query param: q."""
    try:
        customers = customers_service.search_customers(db.session, request.args.get("q", ""))
        return jsonify({"customers": [c.to_dict() for c in customers]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customers_service.get_customer(db.session, customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/<int:customer_id>/purchases")
@require_auth
def purchase_history_route(customer_id: int):
    try:
        sales = customers_service.purchase_history(db.session, customer_id)
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customers_service.create_customer(db.session, patch)
        return jsonify({"message": "Customer created.", "customer": customer.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customers_service.update_customer(db.session, customer_id, patch)
        return jsonify({"message": "Customer updated.", "customer": customer.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@customers_bp.put("/<int:customer_id>/loyalty")
@require_auth
@require_permission("CREDIT_LOYALTY")
def add_loyalty_route(customer_id: int):
    """
    Manually credit loyalty points. Body: {points}

    Requires: CREDIT_LOYALTY permission
    Available to: admin, manager, cashier
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("points") is None:
            raise ValidationError("Points value is required.")
        customer = customers_service.add_loyalty_points(
            db.session, customer_id, coerce_int(data["points"], "points")
        )
        return jsonify({"message": "Loyalty points updated.", "customer": customer.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update loyalty points")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code
