# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/boutique_pos/routes/inventory.py
"""
Stock ledger routes.

Quantities only change through POST /adjust (manual, audited) or through
sales and refunds. There is no endpoint that sets a quantity directly.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import InternalError, PosError, ValidationError
from ..extensions import db
from ..services import inventory_service
from ..validation import coerce_int

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    records = inventory_service.list_inventory(db.session)
    return jsonify({"inventory": [r.to_dict() for r in records]}), 200


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    records = inventory_service.list_low_stock(db.session)
    return jsonify({"inventory": [r.to_dict() for r in records]}), 200


@inventory_bp.get("/expiring")
@require_auth
def expiring_route():
    """Stock expiring within ?days= (default 30)."""
    try:
        raw_days = request.args.get("days")
        days = inventory_service.DEFAULT_EXPIRY_WINDOW_DAYS if raw_days is None else coerce_int(raw_days, "days")
        records = inventory_service.list_expiring(db.session, days=days)
        return jsonify({"days": days, "inventory": [r.to_dict() for r in records]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/adjustments")
@require_auth
def adjustments_route():
    """Most recent manual adjustments, newest first."""
    entries = inventory_service.list_adjustments(db.session)
    return jsonify({"adjustments": [a.to_dict() for a in entries]}), 200


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_stock_route():
    """
    Record a manual adjustment.

    Body: {product_id, type, quantity, reason?, variant_id?}
    type is one of damage, loss, return, correction, restock.

    Requires: ADJUST_INVENTORY permission
    Available to: admin, manager, stock_controller
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("product_id") is None or not data.get("type") or data.get("quantity") is None:
            raise ValidationError("Product, type and quantity are required.")

        variant_id = data.get("variant_id")
        change, entry = inventory_service.adjust_stock(
            db.session,
            product_id=coerce_int(data["product_id"], "product_id"),
            adjustment_type=data["type"],
            quantity=coerce_int(data["quantity"], "quantity"),
            actor_user_id=g.current_user.id,
            reason=data.get("reason"),
            variant_id=None if variant_id is None else coerce_int(variant_id, "variant_id"),
        )

        current_app.logger.info(
            "Stock adjusted: product=%s type=%s %s -> %s by user=%s",
            change.product_id, entry.type, change.previous_quantity, change.new_quantity, g.current_user.id,
        )

        return jsonify({
            "message": "Stock adjusted successfully.",
            "previous_quantity": change.previous_quantity,
            "new_quantity": change.new_quantity,
            "adjustment": {
                "id": entry.id,
                "type": entry.type,
                "quantity": entry.quantity,
                "reason": entry.reason,
            },
        }), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@inventory_bp.put("/<int:product_id>/reorder-level")
@require_auth
@require_permission("UPDATE_REORDER_LEVEL")
def update_reorder_level_route(product_id: int):
    """
    Requires: UPDATE_REORDER_LEVEL permission
    Available to: admin, manager
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("reorder_level") is None:
            raise ValidationError("reorder_level is required.")
        record = inventory_service.update_reorder_level(
            db.session,
            product_id=product_id,
            reorder_level=coerce_int(data["reorder_level"], "reorder_level"),
        )
        return jsonify({"message": "Reorder level updated.", "inventory": record.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update reorder level")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code
