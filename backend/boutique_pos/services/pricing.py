# Overview: Pure pricing arithmetic for a sale; no database access.

"""
Sale pricing, in order:

1. line_total = unit_price * quantity - line_discount   (must be >= 0)
2. subtotal   = sum(line_total)
3. taxable    = subtotal - discount_amount
4. tax        = taxable * tax_rate, rounded half-up to the cent
5. total      = taxable + tax
6. change     = max(amount_paid - total, 0)

All amounts are Decimal quantized to 0.01. Because only step 4 rounds,
subtotal == sum(line totals) and total == taxable + tax hold exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from ..errors import ValidationError
from ..money import ZERO, quantize

DEFAULT_TAX_RATE = Decimal("0.16")


@dataclass(frozen=True)
class PricedLine:
    unit_price: Decimal
    quantity: int
    discount: Decimal = ZERO


@dataclass(frozen=True)
class SaleTotals:
    line_totals: tuple[Decimal, ...]
    subtotal: Decimal
    discount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    change: Decimal

    @property
    def balance_due(self) -> Decimal:
        return max(self.total - self.amount_paid, ZERO)


def line_total(line: PricedLine) -> Decimal:
    amount = quantize(line.unit_price * line.quantity - line.discount)
    if amount < 0:
        raise ValidationError(
            "Line discount exceeds line amount",
            details={"unit_price": str(line.unit_price), "quantity": line.quantity, "discount": str(line.discount)},
        )
    return amount


def calculate_totals(
    lines: Sequence[PricedLine],
    *,
    discount_amount: Decimal = ZERO,
    amount_paid: Decimal = ZERO,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    clamp_negative_taxable: bool = False,
) -> SaleTotals:
    """
    Price an ordered sequence of lines.

    A discount larger than the subtotal yields a negative taxable amount
    (and negative tax/total) unless clamp_negative_taxable is set, in which
    case the taxable amount floors at zero.
    """
    line_totals = tuple(line_total(line) for line in lines)
    subtotal = quantize(sum(line_totals, ZERO))
    discount = quantize(discount_amount)

    taxable = subtotal - discount
    if clamp_negative_taxable and taxable < 0:
        taxable = ZERO

    tax = quantize(taxable * tax_rate)
    total = taxable + tax
    paid = quantize(amount_paid)
    change = max(paid - total, ZERO)

    return SaleTotals(
        line_totals=line_totals,
        subtotal=subtotal,
        discount=discount,
        taxable_amount=taxable,
        tax_amount=tax,
        total=total,
        amount_paid=paid,
        change=change,
    )
