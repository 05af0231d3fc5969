from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z

SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_REFUNDED = "refunded"

PAYMENT_METHODS = ("cash", "card", "mobile_money", "bank_transfer", "store_credit")


class Sale(db.Model):
    """
    Completed sale document.

    A sale is written once, in the same transaction as its items, payment
    and stock deductions. The only later change is the one-way transition
    completed -> refunded.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    register_session_id = db.Column(db.Integer, nullable=True)

    # Amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )
    payment = db.relationship(
        "Payment",
        back_populates="sale",
        cascade="all, delete-orphan",
        uselist=False,
    )
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    cashier = db.relationship("User", foreign_keys=[cashier_id])
    refunded_by = db.relationship("User", foreign_keys=[refunded_by_user_id])

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier.name if self.cashier else None,
            "session_id": self.register_session_id,
            "subtotal": format_cents(self.subtotal_cents),
            "discount_amount": format_cents(self.discount_cents),
            "tax_amount": format_cents(self.tax_cents),
            "total": format_cents(self.total_cents),
            "amount_paid": format_cents(self.amount_paid_cents),
            "change_amount": format_cents(self.change_cents),
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "refunded_at": to_utc_z(self.refunded_at) if self.refunded_at else None,
            "refunded_by": self.refunded_by_user_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        else:
            data["items_count"] = len(self.items)
        return data


class SaleItem(db.Model):
    """
    One line of a sale.

    unit_price_cents is a snapshot taken at sale time, not a live reference
    to Product.selling_price_cents. Rows are immutable once written.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.product.sku if self.product else None,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price": format_cents(self.unit_price_cents),
            "discount": format_cents(self.discount_cents),
            "total": format_cents(self.line_total_cents),
        }


class Payment(db.Model):
    """Tender recorded for a sale. One per sale in the current model."""
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)

    method = db.Column(db.String(32), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="payment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount": format_cents(self.amount_cents),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
