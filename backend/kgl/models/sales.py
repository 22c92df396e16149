from __future__ import annotations

from ..extensions import db
from kgl import derived
from kgl.derived import as_float
from kgl.time_utils import to_utc_z, utcnow

SALE_COMPLETED = "completed"
SALE_CANCELLED = "cancelled"
SALE_REFUNDED = "refunded"

BUYER_TYPES = ("walk-in", "regular", "wholesale")
SALE_PAYMENT_METHODS = ("cash", "transfer", "check", "mobile_money")
CREDIT_PAYMENT_METHODS = ("cash", "transfer", "check", "mobile_money")


class Sale(db.Model):
    """
    Immediate-payment stock-out against one produce line.

    total_price and payment_status are derived by recompute(); values sent
    by callers for those fields are never persisted.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_branch_status_date", "branch_id", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    produce_id = db.Column(db.Integer, db.ForeignKey("produce.id", ondelete="SET NULL"), nullable=True, index=True)
    produce_name = db.Column(db.String(100), nullable=False)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="kg")

    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    buyer_name = db.Column(db.String(100), nullable=False, default="Walk-in Customer")
    buyer_phone = db.Column(db.String(32), nullable=True)
    buyer_email = db.Column(db.String(255), nullable=True)
    buyer_type = db.Column(db.String(16), nullable=False, default="walk-in")

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default=derived.PAYMENT_PENDING)

    agent_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_COMPLETED, index=True)
    notes = db.Column(db.String(500), nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Cancel/refund audit trail
    reversed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reversal_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def recompute(self) -> None:
        self.total_price = derived.sale_total(self.unit_price, self.quantity, self.discount or 0)
        self.payment_status = derived.sale_payment_status(self.amount_paid, self.total_price)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "produce_id": self.produce_id,
            "produce_name": self.produce_name,
            "quantity": as_float(self.quantity),
            "unit": self.unit,
            "unit_price": as_float(self.unit_price),
            "discount": as_float(self.discount),
            "total_price": as_float(self.total_price),
            "buyer": {
                "name": self.buyer_name,
                "phone": self.buyer_phone,
                "email": self.buyer_email,
                "type": self.buyer_type,
            },
            "payment": {
                "method": self.payment_method,
                "amount_paid": as_float(self.amount_paid),
                "status": self.payment_status,
            },
            "agent_user_id": self.agent_user_id,
            "status": self.status,
            "notes": self.notes,
            "sale_date": to_utc_z(self.sale_date),
            "reversed_by_user_id": self.reversed_by_user_id,
            "reversed_at": to_utc_z(self.reversed_at),
            "reversal_reason": self.reversal_reason,
            "created_at": to_utc_z(self.created_at),
        }


class CreditSale(db.Model):
    """
    Deferred-payment stock-out with an append-only payment trail.

    Quantity and unit price are fixed at creation. The only mutation
    afterwards is appending a CreditSalePayment (or an administrative
    default/cancel), each followed by recompute().
    """
    __tablename__ = "credit_sales"
    __table_args__ = (
        db.Index("ix_credit_sales_branch_status_due", "branch_id", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    buyer_name = db.Column(db.String(100), nullable=False)
    buyer_national_id = db.Column(db.String(50), nullable=False, index=True)
    buyer_phone = db.Column(db.String(32), nullable=False)
    buyer_email = db.Column(db.String(255), nullable=True)
    buyer_address = db.Column(db.String(200), nullable=True)
    buyer_location = db.Column(db.String(100), nullable=True)
    buyer_trust_score = db.Column(db.Integer, nullable=False, default=50)

    produce_id = db.Column(db.Integer, db.ForeignKey("produce.id", ondelete="SET NULL"), nullable=True, index=True)
    produce_name = db.Column(db.String(100), nullable=False)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="kg")
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    outstanding_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    interest_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    grace_period_days = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=derived.CREDIT_ACTIVE, index=True)

    agent_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    notes = db.Column(db.String(500), nullable=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    close_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    payments = db.relationship(
        "CreditSalePayment",
        backref="credit_sale",
        lazy=True,
        order_by="CreditSalePayment.id",
        cascade="all, delete-orphan",
    )

    def recompute(self, now=None) -> None:
        """Re-derive total, outstanding and status from quantity, price and payments."""
        self.total_amount = derived.credit_total(self.unit_price, self.quantity)
        self.outstanding_amount = derived.credit_outstanding(
            self.total_amount, (p.amount for p in self.payments)
        )
        self.status = derived.derive_credit_status(
            outstanding=self.outstanding_amount,
            due_date=self.due_date,
            now=now or utcnow(),
            has_payments=bool(self.payments),
            current_status=self.status,
        )

    @property
    def amount_paid(self):
        return self.total_amount - self.outstanding_amount

    def to_dict(self, include_payments: bool = True) -> dict:
        result = {
            "id": self.id,
            "branch_id": self.branch_id,
            "buyer": {
                "name": self.buyer_name,
                "national_id": self.buyer_national_id,
                "phone": self.buyer_phone,
                "email": self.buyer_email,
                "address": self.buyer_address,
                "location": self.buyer_location,
                "trust_score": self.buyer_trust_score,
            },
            "produce_id": self.produce_id,
            "produce_name": self.produce_name,
            "quantity": as_float(self.quantity),
            "unit": self.unit,
            "unit_price": as_float(self.unit_price),
            "total_amount": as_float(self.total_amount),
            "outstanding_amount": as_float(self.outstanding_amount),
            "credit_terms": {
                "due_date": to_utc_z(self.due_date),
                "interest_rate": as_float(self.interest_rate),
                "grace_period_days": self.grace_period_days,
            },
            "status": self.status,
            "agent_user_id": self.agent_user_id,
            "notes": self.notes,
            "sale_date": to_utc_z(self.sale_date),
            "closed_by_user_id": self.closed_by_user_id,
            "closed_at": to_utc_z(self.closed_at),
            "close_reason": self.close_reason,
            "created_at": to_utc_z(self.created_at),
        }
        if include_payments:
            result["payments"] = [p.to_dict() for p in self.payments]
        return result


class CreditSalePayment(db.Model):
    """Append-only payment entry. Rows are inserted, never updated."""
    __tablename__ = "credit_sale_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_credit_payment_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    credit_sale_id = db.Column(db.Integer, db.ForeignKey("credit_sales.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False, default="cash")
    notes = db.Column(db.String(200), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credit_sale_id": self.credit_sale_id,
            "amount": as_float(self.amount),
            "method": self.method,
            "notes": self.notes,
            "paid_at": to_utc_z(self.paid_at),
            "recorded_by_user_id": self.recorded_by_user_id,
        }
