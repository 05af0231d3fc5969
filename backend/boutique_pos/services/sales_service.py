# Overview: Sale transaction pipeline (orchestrator) and refund processor.

"""
Sales Service - sale transaction pipeline and refunds

A sale attempt moves Validating -> StockChecking -> Pricing -> Persisting and
ends Committed or Aborted. Everything from the first stock read to the
loyalty credit runs inside one transaction(), so an abort at any step
leaves stock, sales, sale_items, payments and customers exactly as they
were. There is no partial sale.

Refunds are the mirror image: one transaction restores every line's
quantity through the stock ledger and flips the sale to refunded. A sale is
refunded at most once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, update

from ..errors import (
    AlreadyRefundedError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from ..models import (
    PAYMENT_METHODS,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_REFUNDED,
    Customer,
    Payment,
    Product,
    Sale,
    SaleItem,
)
from ..money import ZERO, format_cents, from_cents, parse_amount, parse_rate, quantize, to_cents
from ..time_utils import start_of_day, to_utc_z, utcnow
from ..validation import coerce_int
from .concurrency import transaction
from .customers_service import credit_loyalty
from .inventory_service import adjust, get_stock_record
from .pricing import DEFAULT_TAX_RATE, PricedLine, SaleTotals, calculate_totals

DEFAULT_LOYALTY_POINTS_PER = Decimal("100")


@dataclass(frozen=True)
class SalePolicy:
    """
    Business knobs for the pipeline, normally built from app config.

    allow_underpayment: accept amount_paid < total (the sale is recorded
        with zero change). When False the sale is rejected.
    clamp_negative_taxable: floor taxable amount at zero when the order
        discount exceeds the subtotal.
    loyalty_points_per: currency units per loyalty point.
    """
    tax_rate: Decimal = DEFAULT_TAX_RATE
    loyalty_points_per: Decimal = DEFAULT_LOYALTY_POINTS_PER
    allow_underpayment: bool = True
    clamp_negative_taxable: bool = False

    @classmethod
    def from_config(cls, config) -> "SalePolicy":
        return cls(
            tax_rate=parse_rate(config.get("TAX_RATE", DEFAULT_TAX_RATE), "TAX_RATE"),
            loyalty_points_per=parse_rate(
                config.get("LOYALTY_POINTS_PER", DEFAULT_LOYALTY_POINTS_PER), "LOYALTY_POINTS_PER"
            ),
            allow_underpayment=bool(config.get("ALLOW_UNDERPAYMENT", True)),
            clamp_negative_taxable=bool(config.get("CLAMP_NEGATIVE_TAXABLE", False)),
        )

    def loyalty_points_for(self, total: Decimal) -> int:
        if total <= 0 or self.loyalty_points_per <= 0:
            return 0
        return int(total // self.loyalty_points_per)


@dataclass(frozen=True)
class SaleItemRequest:
    product_id: int
    quantity: int
    discount: Decimal = ZERO
    variant_id: int | None = None


@dataclass(frozen=True)
class SaleRequest:
    cashier_id: int
    items: tuple[SaleItemRequest, ...]
    payment_method: str
    amount_paid: Decimal
    discount_amount: Decimal = ZERO
    customer_id: int | None = None
    session_id: int | None = None


def _optional_int(value, name: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, name)


def parse_sale_request(payload: dict, *, cashier_id: int) -> SaleRequest:
    """
    Validating step: turn a JSON body into a SaleRequest.

    Raises ValidationError with no side effects.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_items = payload.get("items")
    if not raw_items or not isinstance(raw_items, list):
        raise ValidationError("Sale must have at least one item.")

    payment_method = payload.get("payment_method")
    if not payment_method:
        raise ValidationError("Payment method is required.")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            "Unrecognized payment method.",
            details={"allowed": list(PAYMENT_METHODS)},
        )

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        product_id = coerce_int(raw["product_id"], f"items[{index}].product_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")
        discount = raw.get("discount")
        items.append(SaleItemRequest(
            product_id=product_id,
            quantity=quantity,
            discount=ZERO if discount in (None, "") else parse_amount(discount, f"items[{index}].discount"),
            variant_id=_optional_int(raw.get("variant_id"), f"items[{index}].variant_id"),
        ))

    discount_amount = payload.get("discount_amount")
    amount_paid = payload.get("amount_paid")
    if amount_paid is None:
        raise ValidationError("amount_paid is required.")

    return SaleRequest(
        cashier_id=cashier_id,
        items=tuple(items),
        payment_method=payment_method,
        amount_paid=parse_amount(amount_paid, "amount_paid"),
        discount_amount=ZERO if discount_amount in (None, "") else parse_amount(discount_amount, "discount_amount"),
        customer_id=_optional_int(payload.get("customer_id"), "customer_id"),
        session_id=_optional_int(payload.get("session_id"), "session_id"),
    )


def _check_stock(session, request: SaleRequest) -> list[Product]:
    """
    StockChecking step, in submission order.

    The first unknown/inactive product or short stock aborts the sale.
    Quantities for a product listed on several lines are summed so the
    check matches what the deductions will need.
    """
    products: list[Product] = []
    needed: dict[int, int] = {}
    for item in request.items:
        product = session.query(Product).filter_by(id=item.product_id, is_active=True).first()
        if product is None:
            raise NotFoundError(
                f"Product not found: {item.product_id}",
                details={"product_id": item.product_id},
            )

        needed[item.product_id] = needed.get(item.product_id, 0) + item.quantity
        record = get_stock_record(session, item.product_id, lock=True)
        on_hand = record.quantity if record is not None else 0
        if on_hand < needed[item.product_id]:
            raise InsufficientStockError(
                f"Insufficient stock for: {product.name}",
                details={
                    "product_id": product.id,
                    "requested_quantity": needed[item.product_id],
                    "on_hand": on_hand,
                },
            )
        products.append(product)
    return products


def create_sale(session, request: SaleRequest, policy: SalePolicy | None = None) -> Sale:
    """
    Run the full pipeline and return the committed Sale with its items.

    Raises ValidationError, NotFoundError or InsufficientStockError; on any
    exception nothing is persisted.
    """
    policy = policy or SalePolicy()
    if not request.items:
        raise ValidationError("Sale must have at least one item.")
    if request.payment_method not in PAYMENT_METHODS:
        raise ValidationError("Unrecognized payment method.")

    with transaction(session):
        if request.customer_id is not None:
            if session.get(Customer, request.customer_id) is None:
                raise NotFoundError("Customer not found.", details={"customer_id": request.customer_id})

        products = _check_stock(session, request)

        totals: SaleTotals = calculate_totals(
            [
                PricedLine(
                    unit_price=from_cents(product.selling_price_cents),
                    quantity=item.quantity,
                    discount=item.discount,
                )
                for product, item in zip(products, request.items)
            ],
            discount_amount=request.discount_amount,
            amount_paid=request.amount_paid,
            tax_rate=policy.tax_rate,
            clamp_negative_taxable=policy.clamp_negative_taxable,
        )
        if not policy.allow_underpayment and totals.amount_paid < totals.total:
            raise ValidationError(
                "Amount paid is less than the sale total.",
                details={"total": str(totals.total), "amount_paid": str(totals.amount_paid)},
            )

        # A concurrent sale can drain the shelf after the check above;
        # the ledger's conditional write is the final word.
        for product, item in zip(products, request.items):
            try:
                adjust(session, item.product_id, -item.quantity)
            except InsufficientStockError as exc:
                raise InsufficientStockError(
                    f"Insufficient stock for: {product.name}", details=exc.details
                ) from exc

        sale = Sale(
            customer_id=request.customer_id,
            cashier_id=request.cashier_id,
            register_session_id=request.session_id,
            subtotal_cents=to_cents(totals.subtotal),
            discount_cents=to_cents(totals.discount),
            tax_cents=to_cents(totals.tax_amount),
            total_cents=to_cents(totals.total),
            amount_paid_cents=to_cents(totals.amount_paid),
            change_cents=to_cents(totals.change),
            payment_method=request.payment_method,
            status=SALE_STATUS_COMPLETED,
            created_at=utcnow(),
        )
        session.add(sale)
        session.flush()

        for product, item, amount in zip(products, request.items, totals.line_totals):
            session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price_cents=product.selling_price_cents,
                discount_cents=to_cents(item.discount),
                line_total_cents=to_cents(amount),
            ))

        session.add(Payment(
            sale_id=sale.id,
            method=request.payment_method,
            amount_cents=to_cents(totals.amount_paid),
            status="completed",
        ))

        if request.customer_id is not None:
            credit_loyalty(session, request.customer_id, policy.loyalty_points_for(totals.total))

        session.flush()
        sale_id = sale.id

    return get_sale(session, sale_id)


def refund_sale(session, sale_id: int, actor_user_id: int | None = None) -> Sale:
    """
    Restore stock for every line and mark the sale refunded, atomically.

    Raises NotFoundError if the sale does not exist and AlreadyRefundedError
    on a second call; neither touches stock. Loyalty points and the payment
    row are left as they are.

    The completed -> refunded transition is claimed with a conditional
    UPDATE before any stock moves, so of two concurrent refunds exactly one
    restores stock.
    """
    with transaction(session):
        claimed = session.execute(
            update(Sale)
            .where(Sale.id == sale_id, Sale.status == SALE_STATUS_COMPLETED)
            .values(
                status=SALE_STATUS_REFUNDED,
                refunded_at=utcnow(),
                refunded_by_user_id=actor_user_id,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if not claimed:
            if session.get(Sale, sale_id) is None:
                raise NotFoundError("Sale not found.")
            raise AlreadyRefundedError("Sale already refunded.", details={"sale_id": sale_id})

        items = session.query(SaleItem).filter_by(sale_id=sale_id).order_by(SaleItem.id).all()
        for item in items:
            adjust(session, item.product_id, item.quantity)

        sale = session.get(Sale, sale_id)
        session.refresh(sale)

    return sale


def get_sale(session, sale_id: int) -> Sale:
    sale = session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found.")
    return sale


def list_sales(
    session,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    cashier_id: int | None = None,
) -> list[Sale]:
    query = session.query(Sale)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at <= end)
    if cashier_id is not None:
        query = query.filter(Sale.cashier_id == cashier_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def today_summary(session, now: datetime | None = None) -> dict:
    """Aggregates over today's (UTC) completed sales plus a per-method breakdown."""
    now = now or utcnow()
    day_start = start_of_day(now.date())
    day_end = day_start + timedelta(days=1)

    window = (
        Sale.status == SALE_STATUS_COMPLETED,
        Sale.created_at >= day_start,
        Sale.created_at < day_end,
    )

    row = session.query(
        func.count(Sale.id).label("transactions"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("revenue"),
        func.coalesce(func.sum(Sale.discount_cents), 0).label("discounts"),
        func.coalesce(func.sum(Sale.tax_cents), 0).label("tax"),
    ).filter(*window).one()

    transactions = int(row.transactions or 0)
    revenue = int(row.revenue or 0)
    average = from_cents(revenue) / transactions if transactions else ZERO

    breakdown = (
        session.query(
            Sale.payment_method,
            func.count(Sale.id).label("count"),
            func.coalesce(func.sum(Sale.total_cents), 0).label("amount"),
        )
        .filter(*window)
        .group_by(Sale.payment_method)
        .order_by(Sale.payment_method.asc())
        .all()
    )

    return {
        "date": day_start.date().isoformat(),
        "generated_at": to_utc_z(now),
        "summary": {
            "total_transactions": transactions,
            "total_revenue": format_cents(revenue),
            "total_discounts": format_cents(int(row.discounts or 0)),
            "total_tax": format_cents(int(row.tax or 0)),
            "average_sale": str(quantize(average)),
        },
        "payment_breakdown": [
            {
                "payment_method": method,
                "count": int(count),
                "amount": format_cents(int(amount or 0)),
            }
            for method, count, amount in breakdown
        ],
    }
