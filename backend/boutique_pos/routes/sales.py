# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/boutique_pos/routes/sales.py
"""Sales API routes with permission enforcement"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import InternalError, PosError, ValidationError
from ..extensions import db
from ..services import sales_service
from ..services.sales_service import SalePolicy
from ..time_utils import parse_iso_datetime
from ..validation import coerce_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _datetime_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Ring up a sale: check stock, price, persist, deduct and credit loyalty
    in one transaction.

    Requires: CREATE_SALE permission
    Available to: admin, manager, cashier
    """
    try:
        sale_request = sales_service.parse_sale_request(
            request.get_json(silent=True) or {},
            cashier_id=g.current_user.id,
        )
        sale = sales_service.create_sale(
            db.session,
            sale_request,
            SalePolicy.from_config(current_app.config),
        )

        current_app.logger.info(
            "Sale %s completed by user=%s total=%s items=%s",
            sale.id, g.current_user.id, sale.total_cents, len(sale.items),
        )

        return jsonify({
            "message": "Sale completed successfully.",
            "sale": sale.to_dict(include_items=True),
        }), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: from, to (ISO-8601), cashier_id."""
    try:
        cashier_id = request.args.get("cashier_id")
        sales = sales_service.list_sales(
            db.session,
            start=_datetime_arg("from"),
            end=_datetime_arg("to"),
            cashier_id=None if not cashier_id else coerce_int(cashier_id, "cashier_id"),
        )
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/summary/today")
@require_auth
def today_summary_route():
    return jsonify(sales_service.today_summary(db.session)), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(db.session, sale_id)
        return jsonify({"sale": sale.to_dict(include_items=True)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/<int:sale_id>/refund")
@require_auth
@require_permission("REFUND_SALE")
def refund_sale_route(sale_id: int):
    """
    Refund a completed sale and restock every line.

    Requires: REFUND_SALE permission
    Available to: admin, manager
    """
    try:
        sale = sales_service.refund_sale(db.session, sale_id, actor_user_id=g.current_user.id)
        current_app.logger.info("Sale %s refunded by user=%s", sale.id, g.current_user.id)
        return jsonify({
            "message": "Sale refunded successfully.",
            "sale": sale.to_dict(include_items=True),
        }), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to refund sale")
        error = InternalError()
        return jsonify(error.to_dict()), error.status_code
