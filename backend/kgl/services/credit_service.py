# Overview: Credit sale orchestration; deferred-payment stock-out with an append-only payment trail.

"""
Credit Sale Service

A credit sale takes stock out exactly like a cash sale, but the buyer pays
later through one or more payments.

CREDIT INVARIANTS:
- total_amount = unit_price * quantity, fixed at creation
- outstanding_amount = total_amount - sum(payments), never negative
- Payments are appended, never edited or removed
- Status is re-derived after every payment:
    outstanding <= 0        -> paid
    now > due_date          -> overdue
    any payment recorded    -> partial
    otherwise               -> active
- defaulted and cancelled are administrative and terminal
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..models import CreditSale, CreditSalePayment
from ..models.sales import CREDIT_PAYMENT_METHODS
from kgl import derived
from kgl import validation as v
from kgl.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from . import produce_service, stock_service

CREDIT_STATUSES = (
    derived.CREDIT_ACTIVE,
    derived.CREDIT_PARTIAL,
    derived.CREDIT_PAID,
    derived.CREDIT_OVERDUE,
    derived.CREDIT_DEFAULTED,
    derived.CREDIT_CANCELLED,
)


def _parse_buyer(buyer: dict | None) -> dict:
    if not isinstance(buyer, dict):
        raise ValidationError("buyer is required", {"field": "buyer"})
    email = v.optional_text(buyer.get("email"), "buyer.email", max_length=255)
    return {
        "buyer_name": v.require_text(buyer.get("name"), "buyer.name", max_length=100),
        "buyer_national_id": v.require_text(buyer.get("national_id"), "buyer.national_id", max_length=50),
        "buyer_phone": v.require_text(buyer.get("phone"), "buyer.phone", max_length=32),
        "buyer_email": email.lower() if email else None,
        "buyer_address": v.optional_text(buyer.get("address"), "buyer.address", max_length=200),
        "buyer_location": v.optional_text(buyer.get("location"), "buyer.location", max_length=100),
        "buyer_trust_score": v.parse_int(
            buyer.get("trust_score"), "buyer.trust_score", minimum=0, maximum=100, default=50
        ),
    }


def _parse_terms(terms: dict | None) -> dict:
    if not isinstance(terms, dict):
        raise ValidationError("credit_terms is required", {"field": "credit_terms"})
    return {
        "due_date": v.parse_datetime(terms.get("due_date"), "credit_terms.due_date", required=True),
        "interest_rate": v.parse_percent(terms.get("interest_rate"), "credit_terms.interest_rate"),
        "grace_period_days": v.parse_int(
            terms.get("grace_period_days"), "credit_terms.grace_period_days", minimum=0, default=0
        ),
    }


def _load_locked(credit_sale_id: int, branch_id: int | None) -> CreditSale:
    credit = lock_for_update(
        db.session.query(CreditSale).filter_by(id=credit_sale_id)
    ).populate_existing().first()
    if credit is None or (branch_id is not None and credit.branch_id != branch_id):
        raise NotFoundError(f"Credit sale {credit_sale_id} not found", {"credit_sale_id": credit_sale_id})
    return credit


def get_credit_sale(credit_sale_id: int, *, branch_id: int | None = None) -> CreditSale:
    credit = db.session.get(CreditSale, credit_sale_id)
    if credit is None or (branch_id is not None and credit.branch_id != branch_id):
        raise NotFoundError(f"Credit sale {credit_sale_id} not found", {"credit_sale_id": credit_sale_id})
    return credit


def record_credit_sale(
    *,
    branch_id: int,
    agent_id: int,
    quantity,
    buyer: dict,
    credit_terms: dict,
    produce_id=None,
    produce_name: str | None = None,
    unit: str | None = None,
    unit_price=None,
    notes: str | None = None,
    sale_date=None,
) -> CreditSale:
    """
    Record a credit sale: stock check, decrement and insert in one unit.

    The new credit sale starts with outstanding_amount = total_amount and
    status active (or overdue when the due date is already past).
    """
    if not branch_id:
        raise ValidationError("branch_id is required")
    if not agent_id:
        raise ValidationError("agent_id is required")

    qty = v.parse_quantity(quantity)
    price = v.parse_money(unit_price, "unit_price", allow_zero=False) if unit_price not in (None, "") else None
    buyer_fields = _parse_buyer(buyer)
    terms = _parse_terms(credit_terms)
    notes = v.optional_text(notes, "notes", max_length=500)
    sold_at = v.parse_datetime(sale_date, "sale_date") or utcnow()

    if terms["due_date"] < sold_at:
        raise ValidationError("credit_terms.due_date cannot be before the sale date")

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

        stock_service.ensure_sufficient(produce, qty)
        stock_service.adjust_stock(produce.id, -qty)

        credit = CreditSale(
            branch_id=branch_id,
            produce_id=produce.id,
            produce_name=produce.name,
            quantity=qty,
            unit=produce.unit,
            unit_price=effective_price,
            status=derived.CREDIT_ACTIVE,
            agent_user_id=agent_id,
            notes=notes,
            sale_date=sold_at,
            **buyer_fields,
            **terms,
        )
        credit.recompute()
        db.session.add(credit)
        db.session.commit()
        return credit

    try:
        credit = run_with_retry(_op)
    except InsufficientStockError as e:
        current_app.logger.warning("Credit sale rejected (branch=%s): %s", branch_id, e.message)
        raise

    current_app.logger.info(
        "Credit sale recorded: id=%s buyer=%s total=%s due=%s (branch=%s)",
        credit.id, credit.buyer_name, credit.total_amount, credit.due_date, branch_id,
    )
    return credit


def record_payment(
    credit_sale_id: int,
    *,
    amount,
    recorded_by: int,
    method: str | None = None,
    notes: str | None = None,
    paid_at=None,
    branch_id: int | None = None,
) -> CreditSale:
    """
    Append a payment and re-derive outstanding and status. No stock effect.

    Raises:
        NotFoundError: credit sale does not exist
        ValidationError: amount <= 0, or amount above the outstanding balance
        InvalidStateError: credit sale is paid, defaulted or cancelled
    """
    amount = v.parse_money(amount, "amount", allow_zero=False)
    method = v.parse_choice(method, "method", CREDIT_PAYMENT_METHODS, default="cash")
    notes = v.optional_text(notes, "notes", max_length=200)
    paid_at = v.parse_datetime(paid_at, "paid_at") or utcnow()

    def _op():
        begin_write()
        credit = _load_locked(credit_sale_id, branch_id)

        if credit.status not in derived.CREDIT_OPEN_STATES:
            raise InvalidStateError(
                f"Credit sale {credit.id} is {credit.status}; payments are not accepted",
                {"credit_sale_id": credit.id, "status": credit.status},
            )
        if amount > credit.outstanding_amount:
            raise ValidationError(
                "Payment exceeds the outstanding amount",
                {
                    "outstanding_amount": float(credit.outstanding_amount),
                    "amount": float(amount),
                },
            )

        credit.payments.append(CreditSalePayment(
            amount=amount,
            method=method,
            notes=notes,
            paid_at=paid_at,
            recorded_by_user_id=recorded_by,
        ))
        credit.recompute()
        db.session.commit()
        return credit

    try:
        credit = run_with_retry(_op)
    except ValidationError as e:
        current_app.logger.warning("Payment rejected for credit sale %s: %s", credit_sale_id, e.message)
        raise

    current_app.logger.info(
        "Credit payment recorded: credit_sale=%s amount=%s outstanding=%s status=%s",
        credit.id, amount, credit.outstanding_amount, credit.status,
    )
    return credit


def mark_defaulted(credit_sale_id: int, *, user_id: int, reason: str, branch_id: int | None = None) -> CreditSale:
    """Write off an open credit sale. Terminal; no stock effect."""
    reason = v.require_text(reason, "reason", max_length=255)

    def _op():
        begin_write()
        credit = _load_locked(credit_sale_id, branch_id)
        if credit.status not in derived.CREDIT_OPEN_STATES:
            raise InvalidStateError(
                f"Only open credit sales can be defaulted (status is {credit.status})",
                {"credit_sale_id": credit.id, "status": credit.status},
            )
        credit.status = derived.CREDIT_DEFAULTED
        credit.closed_by_user_id = user_id
        credit.closed_at = utcnow()
        credit.close_reason = reason
        credit.recompute()
        db.session.commit()
        return credit

    credit = run_with_retry(_op)
    current_app.logger.warning(
        "Credit sale defaulted: id=%s outstanding=%s", credit.id, credit.outstanding_amount
    )
    return credit


def cancel_credit_sale(credit_sale_id: int, *, user_id: int, reason: str, branch_id: int | None = None) -> CreditSale:
    """
    Cancel an open credit sale that has no payments and return its
    quantity to stock.
    """
    reason = v.require_text(reason, "reason", max_length=255)

    def _op():
        begin_write()
        credit = _load_locked(credit_sale_id, branch_id)
        if credit.status not in derived.CREDIT_OPEN_STATES:
            raise InvalidStateError(
                f"Only open credit sales can be cancelled (status is {credit.status})",
                {"credit_sale_id": credit.id, "status": credit.status},
            )
        if credit.payments:
            raise InvalidStateError(
                "Credit sale has payments and cannot be cancelled",
                {"credit_sale_id": credit.id, "payments": len(credit.payments)},
            )
        if credit.produce_id is None:
            raise InvalidStateError(
                f"Produce '{credit.produce_name}' no longer exists; stock cannot be returned",
                {"credit_sale_id": credit.id},
            )

        stock_service.stock_in(credit.produce_id, credit.quantity)

        credit.status = derived.CREDIT_CANCELLED
        credit.closed_by_user_id = user_id
        credit.closed_at = utcnow()
        credit.close_reason = reason
        credit.recompute()
        db.session.commit()
        return credit

    credit = run_with_retry(_op)
    current_app.logger.info("Credit sale cancelled: id=%s qty=%s returned to stock", credit.id, credit.quantity)
    return credit


def refresh_overdue(branch_id: int | None = None, *, now=None) -> int:
    """
    Re-derive the status of open credit sales so that past-due ones are
    stored as overdue. Returns the number of rows whose status changed.
    """
    now = now or utcnow()

    def _op():
        begin_write()
        query = db.session.query(CreditSale).filter(
            CreditSale.status.in_(derived.CREDIT_OPEN_STATES)
        )
        if branch_id is not None:
            query = query.filter(CreditSale.branch_id == branch_id)

        changed = 0
        for credit in query.all():
            before = credit.status
            credit.recompute(now=now)
            if credit.status != before:
                changed += 1
        db.session.commit()
        return changed

    changed = run_with_retry(_op)
    current_app.logger.info("Overdue refresh (branch=%s): %s credit sale(s) updated", branch_id, changed)
    return changed


def outstanding_total(branch_id: int | None = None) -> Decimal:
    query = db.session.query(db.func.coalesce(db.func.sum(CreditSale.outstanding_amount), 0)).filter(
        CreditSale.status.in_(derived.CREDIT_OPEN_STATES)
    )
    if branch_id is not None:
        query = query.filter(CreditSale.branch_id == branch_id)
    return derived.money(query.scalar() or 0)


def list_credit_sales(
    *,
    branch_id: int | None,
    status: str | None = None,
    buyer_national_id: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[CreditSale], int]:
    query = db.session.query(CreditSale)
    if branch_id is not None:
        query = query.filter(CreditSale.branch_id == branch_id)
    if status:
        if status not in CREDIT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(CREDIT_STATUSES)}")
        query = query.filter(CreditSale.status == status)
    if buyer_national_id:
        query = query.filter(CreditSale.buyer_national_id == buyer_national_id.strip())

    total = query.count()
    items = (
        query.order_by(CreditSale.sale_date.desc(), CreditSale.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return items, total
