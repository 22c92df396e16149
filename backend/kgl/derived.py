# Overview: Pure derivation rules for every computed ledger field.

"""
Derived-field rules (authoritative).

Every computed column is a pure function of stored inputs. Models call
these from their recompute() methods; nothing else writes a derived
column.

- Produce.status        <- (current_stock, minimum_stock)
- Sale.total_price      <- (unit_price, quantity, discount)
- Sale.payment_status   <- (amount_paid, total_price)
- CreditSale.total      <- (unit_price, quantity)
- CreditSale.outstanding<- (total_amount, payments)
- CreditSale.status     <- (outstanding, due_date, now, has_payments)
- Procurement total     <- frozen line totals
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable

MONEY = Decimal("0.01")
QUANTITY = Decimal("0.001")
HUNDRED = Decimal("100")

# Produce statuses
STOCK_AVAILABLE = "available"
STOCK_LOW = "low-stock"
STOCK_OUT = "out-of-stock"
STOCK_DISCONTINUED = "discontinued"

# Sale payment statuses
PAYMENT_PAID = "paid"
PAYMENT_PARTIAL = "partial"
PAYMENT_PENDING = "pending"

# Credit sale statuses
CREDIT_ACTIVE = "active"
CREDIT_PARTIAL = "partial"
CREDIT_PAID = "paid"
CREDIT_OVERDUE = "overdue"
CREDIT_DEFAULTED = "defaulted"
CREDIT_CANCELLED = "cancelled"

# Administrative states that recomputation never overwrites
CREDIT_ADMIN_STATES = {CREDIT_DEFAULTED, CREDIT_CANCELLED}
CREDIT_OPEN_STATES = {CREDIT_ACTIVE, CREDIT_PARTIAL, CREDIT_OVERDUE}


def to_decimal(value, *, field: str = "value") -> Decimal:
    """Coerce ints, strings and Decimals to Decimal. Floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def money(value) -> Decimal:
    return to_decimal(value).quantize(MONEY, rounding=ROUND_HALF_UP)


def quantity(value) -> Decimal:
    return to_decimal(value).quantize(QUANTITY, rounding=ROUND_HALF_UP)


def derive_stock_status(current_stock, minimum_stock) -> str:
    """out-of-stock if <= 0, low-stock if <= minimum, else available."""
    current = to_decimal(current_stock)
    minimum = to_decimal(minimum_stock or 0)
    if current <= 0:
        return STOCK_OUT
    if current <= minimum:
        return STOCK_LOW
    return STOCK_AVAILABLE


def sale_total(unit_price, qty, discount=0) -> Decimal:
    """unit_price * quantity * (1 - discount/100), rounded to cents."""
    gross = to_decimal(unit_price) * to_decimal(qty)
    factor = 1 - to_decimal(discount or 0) / HUNDRED
    return money(gross * factor)


def sale_payment_status(amount_paid, total_price) -> str:
    paid = to_decimal(amount_paid or 0)
    if paid >= to_decimal(total_price):
        return PAYMENT_PAID
    if paid > 0:
        return PAYMENT_PARTIAL
    return PAYMENT_PENDING


def credit_total(unit_price, qty) -> Decimal:
    return money(to_decimal(unit_price) * to_decimal(qty))


def credit_outstanding(total_amount, payment_amounts: Iterable) -> Decimal:
    paid = sum((to_decimal(a) for a in payment_amounts), Decimal("0"))
    return money(to_decimal(total_amount) - paid)


def derive_credit_status(
    *,
    outstanding,
    due_date: datetime | None,
    now: datetime,
    has_payments: bool,
    current_status: str | None = None,
) -> str:
    """
    paid if nothing is outstanding, overdue once past due,
    otherwise partial/active depending on whether anything was paid.
    """
    if current_status in CREDIT_ADMIN_STATES:
        return current_status
    if to_decimal(outstanding) <= 0:
        return CREDIT_PAID
    if due_date is not None and now > due_date:
        return CREDIT_OVERDUE
    return CREDIT_PARTIAL if has_payments else CREDIT_ACTIVE


def line_total(qty, unit_cost) -> Decimal:
    return money(to_decimal(qty) * to_decimal(unit_cost))


def order_total(line_totals: Iterable) -> Decimal:
    return money(sum((to_decimal(t) for t in line_totals), Decimal("0")))


def as_float(value) -> float | None:
    """JSON rendering for Numeric columns."""
    if value is None:
        return None
    return float(value)
