# Overview: Transaction scoping and row locking shared by the service layer.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InsufficientStockError, PosError, ValidationError


# Named CHECK constraints and the error each one means to a caller.
# Anything not listed (unique keys) is a conflict.
CHECK_CONSTRAINT_ERRORS = {
    "ck_stock_records_quantity_nonnegative": (InsufficientStockError, "Insufficient stock."),
    "ck_customers_loyalty_nonnegative": (ValidationError, "Loyalty points cannot be negative."),
}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Writers that must not lose updates use a conditional UPDATE instead of
    relying on this lock.
    """
    return query.with_for_update()


def integrity_error_to_pos(exc: IntegrityError) -> PosError:
    """Translate a database constraint violation into a typed error."""
    message = str(exc.orig)
    for constraint, (error_cls, text) in CHECK_CONSTRAINT_ERRORS.items():
        if constraint in message:
            return error_cls(text, details={"constraint": constraint})
    return ConflictError("Record conflicts with existing data")


@contextmanager
def transaction(session):
    """
    All-or-nothing unit of work on ``session``.

    Commits when the block exits normally and rolls back on every exception,
    so no exit path leaves a transaction open. Constraint violations raised
    by the database surface as typed errors: the stock floor as
    InsufficientStockError, unique keys as ConflictError. Nothing is retried.
    """
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise integrity_error_to_pos(exc) from exc
    except BaseException:
        session.rollback()
        raise
