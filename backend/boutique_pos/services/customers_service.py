# Overview: Service-layer operations for customers and loyalty points.

from __future__ import annotations

from sqlalchemy import func, update

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Customer, Sale
from .concurrency import lock_for_update, transaction

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "email", "birthday", "notes"}


def _ensure_unique(session, patch: dict, *, exclude_id: int | None = None) -> None:
    for field, label in (("phone", "Phone"), ("email", "Email")):
        value = patch.get(field)
        if not value:
            continue
        query = session.query(Customer).filter(getattr(Customer, field) == value)
        if exclude_id is not None:
            query = query.filter(Customer.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f"{label} already exists.")


def get_customer(session, customer_id: int) -> Customer:
    customer = session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found.")
    return customer


def list_customers(session) -> list[Customer]:
    return (
        session.query(Customer)
        .filter(Customer.is_active.is_(True))
        .order_by(Customer.name.asc())
        .all()
    )


def search_customers(session, q: str) -> list[Customer]:
    if not q or not q.strip():
        raise ValidationError("Search query is required.")
    pattern = f"%{q.strip()}%"
    return (
        session.query(Customer)
        .filter(
            Customer.is_active.is_(True),
            Customer.name.ilike(pattern)
            | Customer.phone.ilike(pattern)
            | Customer.email.ilike(pattern),
        )
        .order_by(Customer.name.asc())
        .all()
    )


def create_customer(session, patch: dict) -> Customer:
    with transaction(session):
        _ensure_unique(session, patch)
        customer = Customer(**{k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS})
        session.add(customer)
        session.flush()
    return customer


def update_customer(session, customer_id: int, patch: dict) -> Customer:
    if "name" in patch and not patch["name"]:
        raise ValidationError("Customer name is required.")
    with transaction(session):
        customer = lock_for_update(session.query(Customer).filter_by(id=customer_id)).first()
        if customer is None:
            raise NotFoundError("Customer not found.")
        _ensure_unique(session, patch, exclude_id=customer_id)
        for k, v in patch.items():
            if k in CUSTOMER_MUTABLE_FIELDS:
                setattr(customer, k, v)
    return customer


def credit_loyalty(session, customer_id: int, points: int) -> Customer:
    """
    Add loyalty points inside the caller's transaction. Never commits.

    Points only accrue; a negative credit is rejected. The increment is a
    single UPDATE so concurrent credits to one customer all count.
    """
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValidationError("points must be a non-negative integer")
    result = session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(loyalty_points=func.coalesce(Customer.loyalty_points, 0) + points)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Customer not found.")
    customer = session.get(Customer, customer_id)
    session.refresh(customer)
    return customer


def add_loyalty_points(session, customer_id: int, points: int) -> Customer:
    """Manual loyalty credit by staff."""
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValidationError("Points value is required.")
    with transaction(session):
        customer = credit_loyalty(session, customer_id, points)
    return customer


def purchase_history(session, customer_id: int) -> list[Sale]:
    get_customer(session, customer_id)
    return (
        session.query(Sale)
        .filter(Sale.customer_id == customer_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
