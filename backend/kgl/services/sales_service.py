# Overview: Sales orchestration; immediate-payment stock-out with atomic reversal.

"""
Sales Service

record_sale is the canonical path for a cash sale:

1. resolve the produce by id or case-insensitive name within the branch
2. verify current_stock >= quantity (InsufficientStockError otherwise)
3. decrement stock through stock_service.adjust_stock
4. derive total_price = unit_price * quantity * (1 - discount/100)
5. persist the Sale as completed

Steps 3 and 5 commit together or not at all. A sale never exists without
its stock decrement and a decrement never exists without its sale.

Reversal (cancel/refund) is the mirror image: the sale leaves "completed"
and its quantity goes back into stock in one transaction.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..models import Sale
from ..models.sales import (
    SALE_COMPLETED,
    SALE_CANCELLED,
    SALE_REFUNDED,
    BUYER_TYPES,
    SALE_PAYMENT_METHODS,
)
from kgl import derived
from kgl import validation as v
from kgl.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from . import produce_service, stock_service

SALE_STATUSES = (SALE_COMPLETED, SALE_CANCELLED, SALE_REFUNDED)


def _parse_buyer(buyer: dict | None) -> dict:
    buyer = buyer or {}
    if not isinstance(buyer, dict):
        raise ValidationError("buyer must be an object")
    return {
        "buyer_name": v.optional_text(buyer.get("name"), "buyer.name", max_length=100) or "Walk-in Customer",
        "buyer_phone": v.optional_text(buyer.get("phone"), "buyer.phone", max_length=32),
        "buyer_email": (v.optional_text(buyer.get("email"), "buyer.email", max_length=255) or "").lower() or None,
        "buyer_type": v.parse_choice(buyer.get("type"), "buyer.type", BUYER_TYPES, default="walk-in"),
    }


def _parse_payment(payment: dict | None) -> tuple[str, object]:
    payment = payment or {}
    if not isinstance(payment, dict):
        raise ValidationError("payment must be an object")
    method = v.parse_choice(payment.get("method"), "payment.method", SALE_PAYMENT_METHODS, default="cash")
    amount_paid = payment.get("amount_paid")
    if amount_paid not in (None, ""):
        amount_paid = v.parse_money(amount_paid, "payment.amount_paid")
    else:
        amount_paid = None
    return method, amount_paid


def get_sale(sale_id: int, *, branch_id: int | None = None) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None or (branch_id is not None and sale.branch_id != branch_id):
        raise NotFoundError(f"Sale {sale_id} not found", {"sale_id": sale_id})
    return sale


def record_sale(
    *,
    branch_id: int,
    agent_id: int,
    quantity,
    produce_id=None,
    produce_name: str | None = None,
    unit: str | None = None,
    unit_price=None,
    discount=None,
    buyer: dict | None = None,
    payment: dict | None = None,
    notes: str | None = None,
    sale_date=None,
) -> Sale:
    """
    Record an immediate-payment sale.

    Raises:
        ValidationError: malformed input (before storage is touched)
        NotFoundError: produce does not exist in the branch
        InsufficientStockError: stock below quantity; nothing is changed
        InvalidStateError: produce is discontinued
    """
    if not branch_id:
        raise ValidationError("branch_id is required")
    if not agent_id:
        raise ValidationError("agent_id is required")

    qty = v.parse_quantity(quantity)
    price = v.parse_money(unit_price, "unit_price", allow_zero=False) if unit_price not in (None, "") else None
    discount_pct = v.parse_percent(discount, "discount")
    buyer_fields = _parse_buyer(buyer)
    method, amount_paid = _parse_payment(payment)
    notes = v.optional_text(notes, "notes", max_length=500)
    sold_at = v.parse_datetime(sale_date, "sale_date") or utcnow()

    def _op():
        begin_write()
        produce = produce_service.resolve_produce(
            branch_id=branch_id, produce_id=produce_id, produce_name=produce_name
        )
        if unit and unit != produce.unit:
            raise ValidationError(
                f"unit must match the produce unit ({produce.unit})",
                {"field": "unit", "expected": produce.unit},
            )

        effective_price = price if price is not None else produce.sale_price
        if effective_price is None or effective_price <= 0:
            raise ValidationError(f"unit_price is required; {produce.name} has no sale price")
        if produce.minimum_price is not None and effective_price < produce.minimum_price:
            raise ValidationError(
                f"unit_price cannot be below the minimum price of {produce.minimum_price}",
                {"field": "unit_price", "minimum_price": float(produce.minimum_price)},
            )

        stock_service.ensure_sufficient(produce, qty)
        stock_service.adjust_stock(produce.id, -qty)

        sale = Sale(
            branch_id=branch_id,
            produce_id=produce.id,
            produce_name=produce.name,
            quantity=qty,
            unit=produce.unit,
            unit_price=effective_price,
            discount=discount_pct,
            payment_method=method,
            amount_paid=0,
            agent_user_id=agent_id,
            status=SALE_COMPLETED,
            notes=notes,
            sale_date=sold_at,
            **buyer_fields,
        )
        sale.recompute()
        if amount_paid is None:
            sale.amount_paid = sale.total_price
        elif amount_paid > sale.total_price:
            raise ValidationError(
                "amount_paid cannot exceed total_price",
                {"total_price": float(sale.total_price), "amount_paid": float(amount_paid)},
            )
        else:
            sale.amount_paid = amount_paid
        sale.recompute()

        db.session.add(sale)
        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except InsufficientStockError as e:
        current_app.logger.warning("Sale rejected (branch=%s): %s", branch_id, e.message)
        raise

    current_app.logger.info(
        "Sale recorded: id=%s produce=%s qty=%s total=%s (branch=%s, agent=%s)",
        sale.id, sale.produce_name, sale.quantity, sale.total_price, branch_id, agent_id,
    )
    return sale


def _reverse_sale(
    sale_id: int,
    *,
    user_id: int,
    reason: str,
    target_status: str,
    branch_id: int | None,
) -> Sale:
    reason = v.require_text(reason, "reason", max_length=255)

    def _op():
        begin_write()
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id)
        ).populate_existing().first()
        if sale is None or (branch_id is not None and sale.branch_id != branch_id):
            raise NotFoundError(f"Sale {sale_id} not found", {"sale_id": sale_id})
        if sale.status != SALE_COMPLETED:
            raise InvalidStateError(
                f"Sale {sale.id} is already {sale.status}",
                {"sale_id": sale.id, "status": sale.status},
            )
        if sale.produce_id is None:
            raise InvalidStateError(
                f"Produce '{sale.produce_name}' no longer exists; stock cannot be returned",
                {"sale_id": sale.id},
            )

        stock_service.stock_in(sale.produce_id, sale.quantity)

        sale.status = target_status
        sale.reversed_by_user_id = user_id
        sale.reversed_at = utcnow()
        sale.reversal_reason = reason
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale %s: id=%s qty=%s returned to stock", target_status, sale.id, sale.quantity)
    return sale


def cancel_sale(sale_id: int, *, user_id: int, reason: str, branch_id: int | None = None) -> Sale:
    return _reverse_sale(sale_id, user_id=user_id, reason=reason, target_status=SALE_CANCELLED, branch_id=branch_id)


def refund_sale(sale_id: int, *, user_id: int, reason: str, branch_id: int | None = None) -> Sale:
    return _reverse_sale(sale_id, user_id=user_id, reason=reason, target_status=SALE_REFUNDED, branch_id=branch_id)


def list_sales(
    *,
    branch_id: int | None,
    status: str | None = None,
    agent_id: int | None = None,
    produce_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    query = db.session.query(Sale)
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)
    if status:
        if status not in SALE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")
        query = query.filter(Sale.status == status)
    if agent_id is not None:
        query = query.filter(Sale.agent_user_id == agent_id)
    if produce_id is not None:
        query = query.filter(Sale.produce_id == produce_id)

    total = query.count()
    sales = (
        query.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return sales, total
