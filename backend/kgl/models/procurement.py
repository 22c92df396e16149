from __future__ import annotations

from ..extensions import db
from kgl import derived
from kgl.derived import as_float
from kgl.time_utils import to_utc_z

ORDER_PENDING = "pending"
ORDER_RECEIVED = "received"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_PENDING, ORDER_RECEIVED, ORDER_CANCELLED)


class ProcurementOrder(db.Model):
    """
    Stock-in event from a supplier/dealer.

    LIFECYCLE:
    - pending -> received   (stock increase for every line, exactly once)
    - pending -> cancelled  (no stock effect)
    received and cancelled are terminal.
    """
    __tablename__ = "procurement_orders"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "order_number", name="uq_procurement_branch_number"),
        db.Index("ix_procurement_branch_status_created", "branch_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # Human-readable order number (e.g., "PO-2026-001")
    order_number = db.Column(db.String(32), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expected_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "ProcurementOrderLine",
        backref="order",
        lazy=True,
        order_by="ProcurementOrderLine.id",
        cascade="all, delete-orphan",
    )

    def recompute(self) -> None:
        """Aggregate total from the frozen line totals."""
        self.total_amount = derived.order_total(line.line_total for line in self.lines)

    def to_dict(self, include_lines: bool = True) -> dict:
        result = {
            "id": self.id,
            "branch_id": self.branch_id,
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "total_amount": as_float(self.total_amount),
            "status": self.status,
            "order_date": to_utc_z(self.order_date),
            "expected_date": to_utc_z(self.expected_date),
            "received_date": to_utc_z(self.received_date),
            "notes": self.notes,
            "recorded_by_user_id": self.recorded_by_user_id,
            "received_by_user_id": self.received_by_user_id,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancellation_reason": self.cancellation_reason,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            result["lines"] = [line.to_dict() for line in self.lines]
        return result


class ProcurementOrderLine(db.Model):
    """
    One produce line of an order. line_total is computed once at creation
    and never recomputed from later produce pricing.
    """
    __tablename__ = "procurement_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("procurement_orders.id"), nullable=False, index=True)

    # Weak reference: history survives produce deletion via the name snapshot
    produce_id = db.Column(db.Integer, db.ForeignKey("produce.id", ondelete="SET NULL"), nullable=True, index=True)
    produce_name = db.Column(db.String(100), nullable=False)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    unit_cost = db.Column(db.Numeric(14, 2), nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "produce_id": self.produce_id,
            "produce_name": self.produce_name,
            "quantity": as_float(self.quantity),
            "unit": self.unit,
            "unit_cost": as_float(self.unit_cost),
            "line_total": as_float(self.line_total),
        }
