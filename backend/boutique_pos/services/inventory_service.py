# Overview: Stock ledger; the only writer of StockRecord.quantity.

# backend/boutique_pos/services/inventory_service.py
"""
Stock Ledger Invariants (authoritative)

- StockRecord.quantity is never negative, before or after any call.
- adjust() is the only code path that writes quantity. It applies the
  delta with one conditional UPDATE (quantity + delta >= 0) inside the
  caller's transaction, so two concurrent adjustments of the same product
  serialize on the row and neither can overwrite the other.
- adjust() does not commit. Sale and refund flows call it inside their own
  transaction and rely on the Sale/SaleItem rows as the audit trail.
- adjust_stock() is the manual entry point: it owns its transaction and
  appends one StockAdjustment row per call.
- StockAdjustment is append-only (no updates/deletes).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import update

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import ADJUSTMENT_TYPES, Product, StockAdjustment, StockRecord
from ..time_utils import utcnow
from .concurrency import lock_for_update, transaction

# restock/return put goods back on the shelf; everything else removes them
INBOUND_ADJUSTMENT_TYPES = frozenset({"restock", "return"})

DEFAULT_EXPIRY_WINDOW_DAYS = 30
ADJUSTMENT_HISTORY_LIMIT = 100


@dataclass(frozen=True)
class StockChange:
    product_id: int
    previous_quantity: int
    new_quantity: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
        }


def get_stock_record(session, product_id: int, *, lock: bool = False) -> StockRecord | None:
    query = session.query(StockRecord).filter_by(product_id=product_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def adjust(session, product_id: int, delta: int) -> StockChange:
    """
    Apply a signed quantity change to one product.

    Raises NotFoundError if the product has no stock record and
    InsufficientStockError if the result would be negative; in both cases
    nothing is written. Flushes but never commits.
    """
    record = get_stock_record(session, product_id, lock=True)
    if record is None:
        raise NotFoundError("Product inventory not found", details={"product_id": product_id})

    # The floor is checked by the UPDATE itself, against the committed row.
    result = session.execute(
        update(StockRecord)
        .where(StockRecord.id == record.id, StockRecord.quantity + delta >= 0)
        .values(quantity=StockRecord.quantity + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    session.refresh(record)

    if result.rowcount == 0:
        raise InsufficientStockError(
            f"Insufficient stock. Current stock: {record.quantity}",
            details={
                "product_id": product_id,
                "requested_quantity": -delta,
                "on_hand": record.quantity,
            },
        )

    new_quantity = record.quantity
    return StockChange(
        product_id=product_id,
        previous_quantity=new_quantity - delta,
        new_quantity=new_quantity,
    )


def signed_delta(adjustment_type: str, quantity: int) -> int:
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError("Invalid adjustment type.", details={"allowed": list(ADJUSTMENT_TYPES)})
    return quantity if adjustment_type in INBOUND_ADJUSTMENT_TYPES else -quantity


def adjust_stock(
    session,
    *,
    product_id: int,
    adjustment_type: str,
    quantity: int,
    actor_user_id: int | None,
    reason: str | None = None,
    variant_id: int | None = None,
) -> tuple[StockChange, StockAdjustment]:
    """
    Manual stock adjustment with audit row.

    quantity is a positive magnitude; the direction comes from the type.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    delta = signed_delta(adjustment_type, quantity)

    with transaction(session):
        change = adjust(session, product_id, delta)
        entry = StockAdjustment(
            product_id=product_id,
            variant_id=variant_id,
            type=adjustment_type,
            quantity=quantity,
            reason=reason,
            previous_quantity=change.previous_quantity,
            new_quantity=change.new_quantity,
            adjusted_by_user_id=actor_user_id,
            created_at=utcnow(),
        )
        session.add(entry)
        session.flush()

    return change, entry


def create_stock_record(
    session,
    *,
    product_id: int,
    initial_quantity: int = 0,
    reorder_level: int = 10,
    expiry_date=None,
) -> StockRecord:
    """Open the stock record for a new product. Caller owns the transaction."""
    if initial_quantity < 0:
        raise ValidationError("initial_stock must be >= 0")
    if reorder_level < 0:
        raise ValidationError("reorder_level must be >= 0")
    record = StockRecord(
        product_id=product_id,
        quantity=initial_quantity,
        reorder_level=reorder_level,
        expiry_date=expiry_date,
    )
    session.add(record)
    session.flush()
    return record


def update_reorder_level(session, *, product_id: int, reorder_level: int) -> StockRecord:
    if isinstance(reorder_level, bool) or not isinstance(reorder_level, int) or reorder_level < 0:
        raise ValidationError("reorder_level must be a non-negative integer")
    with transaction(session):
        record = get_stock_record(session, product_id, lock=True)
        if record is None:
            raise NotFoundError("Product inventory not found")
        record.reorder_level = reorder_level
    return record


def _active_stock_query(session):
    return session.query(StockRecord).join(Product, StockRecord.product_id == Product.id).filter(
        Product.is_active.is_(True)
    )


def list_inventory(session) -> list[StockRecord]:
    return _active_stock_query(session).order_by(Product.name.asc()).all()


def list_low_stock(session) -> list[StockRecord]:
    return (
        _active_stock_query(session)
        .filter(StockRecord.quantity <= StockRecord.reorder_level)
        .order_by(StockRecord.quantity.asc(), Product.name.asc())
        .all()
    )


def list_expiring(session, *, days: int = DEFAULT_EXPIRY_WINDOW_DAYS) -> list[StockRecord]:
    """Stock expiring within ``days`` days that has not expired yet."""
    if days < 0:
        raise ValidationError("days must be >= 0")
    today = utcnow().date()
    horizon = today + timedelta(days=days)
    return (
        _active_stock_query(session)
        .filter(
            StockRecord.expiry_date.isnot(None),
            StockRecord.expiry_date >= today,
            StockRecord.expiry_date <= horizon,
        )
        .order_by(StockRecord.expiry_date.asc())
        .all()
    )


def list_adjustments(session, *, limit: int = ADJUSTMENT_HISTORY_LIMIT) -> list[StockAdjustment]:
    return (
        session.query(StockAdjustment)
        .order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
        .limit(limit)
        .all()
    )
