# Overview: Procurement orchestration; stock-in from suppliers with atomic receive.

"""
Procurement Service

A procurement order records produce bought from a supplier (dealer).
Lines freeze their line_total at creation; the order total is the sum of
the line totals.

LIFECYCLE:
- pending  -> received  (every line's stock is increased, exactly once)
- pending  -> cancelled (no stock effect)

ATOMICITY:
- Order insert, produce creation and stock increments for a received order
  commit together or not at all.
- receive_order re-reads the status under the write lock, so a second
  receive (sequential or concurrent) is rejected without a second increment.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..models import ProcurementOrder, ProcurementOrderLine
from ..models.inventory import PRODUCE_CATEGORIES, STOCK_UNITS
from ..models.procurement import ORDER_PENDING, ORDER_RECEIVED, ORDER_CANCELLED, ORDER_STATUSES
from kgl import derived
from kgl import validation as v
from kgl.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_document_number, PROCUREMENT_SEQUENCE
from . import produce_service, stock_service, supplier_service

# Accepted on input as a synonym for "received"
STATUS_ALIASES = {"completed": ORDER_RECEIVED}


def _parse_status(value) -> str:
    if value is None or value == "":
        return ORDER_PENDING
    status = STATUS_ALIASES.get(str(value).strip().lower(), str(value).strip().lower())
    if status not in (ORDER_PENDING, ORDER_RECEIVED):
        raise ValidationError(
            "status must be 'pending' or 'received'",
            {"field": "status", "allowed": [ORDER_PENDING, ORDER_RECEIVED, "completed"]},
        )
    return status


def _parse_lines(lines) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("At least one line is required", {"field": "lines"})

    parsed = []
    for index, raw in enumerate(lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        produce_id = raw.get("produce_id")
        produce_name = raw.get("produce_name")
        if produce_id in (None, "") and not (produce_name and str(produce_name).strip()):
            raise ValidationError(f"lines[{index}] needs produce_id or produce_name")

        unit_cost = v.parse_money(raw.get("unit_cost"), f"lines[{index}].unit_cost")
        sale_price = raw.get("sale_price")
        unit = raw.get("unit")
        parsed.append({
            "produce_id": produce_id,
            "produce_name": str(produce_name).strip() if produce_name else None,
            "quantity": v.parse_quantity(raw.get("quantity"), f"lines[{index}].quantity"),
            "unit": (
                v.parse_choice(unit, f"lines[{index}].unit", STOCK_UNITS)
                if unit not in (None, "") else None
            ),
            "unit_cost": unit_cost,
            "category": v.parse_choice(
                raw.get("category"), f"lines[{index}].category", PRODUCE_CATEGORIES, default="other"
            ),
            "sale_price": (
                v.parse_money(sale_price, f"lines[{index}].sale_price")
                if sale_price not in (None, "") else None
            ),
        })
    return parsed


def _check_line_unit(produce, line: dict, index: int) -> None:
    if line["unit"] and line["unit"] != produce.unit:
        raise ValidationError(
            f"lines[{index}].unit must match the produce unit ({produce.unit})",
            {"field": "unit", "expected": produce.unit, "line": index},
        )


def _resolve_line_produce(*, branch_id: int, user_id: int, line: dict, index: int, supplier):
    """Find the line's produce in the branch, creating it for a new name."""
    if line["produce_id"] not in (None, ""):
        produce = produce_service.resolve_produce(branch_id=branch_id, produce_id=line["produce_id"])
        _check_line_unit(produce, line, index)
        return produce

    produce = produce_service.find_by_name(branch_id, line["produce_name"])
    if produce is not None:
        _check_line_unit(produce, line, index)
        return produce

    return produce_service.build_produce(
        branch_id=branch_id,
        created_by_user_id=user_id,
        data={
            "name": line["produce_name"],
            "category": line["category"],
            "unit": line["unit"] or "kg",
            "cost_price": line["unit_cost"],
            "sale_price": line["sale_price"] if line["sale_price"] is not None else line["unit_cost"],
            "supplier_name": supplier.name,
            "supplier_phone": supplier.phone,
            "supplier_email": supplier.email,
        },
    )


def _apply_receipt(order: ProcurementOrder, *, user_id: int) -> None:
    for line in order.lines:
        if line.produce_id is None:
            raise InvalidStateError(
                f"Produce '{line.produce_name}' no longer exists; order cannot be received",
                {"order_id": order.id, "produce_name": line.produce_name},
            )
        stock_service.stock_in(line.produce_id, line.quantity)

    order.status = ORDER_RECEIVED
    order.received_date = utcnow()
    order.received_by_user_id = user_id


def get_order(order_id: int, *, branch_id: int | None = None) -> ProcurementOrder:
    order = db.session.get(ProcurementOrder, order_id)
    if order is None or (branch_id is not None and order.branch_id != branch_id):
        raise NotFoundError(f"Procurement order {order_id} not found", {"order_id": order_id})
    return order


def record_procurement(
    *,
    branch_id: int,
    user_id: int,
    lines: list,
    supplier_id: int | None = None,
    dealer_name: str | None = None,
    dealer_phone: str | None = None,
    dealer_email: str | None = None,
    status: str | None = None,
    order_date=None,
    expected_date=None,
    notes: str | None = None,
) -> ProcurementOrder:
    """
    Record a procurement order.

    The status is taken as given: "pending" defers stock to receive_order;
    "received" (or "completed") increments stock for every line now.

    Raises:
        ValidationError: malformed lines, unknown dealer without contact
        NotFoundError: supplier or produce reference does not exist
    """
    if not branch_id:
        raise ValidationError("branch_id is required")
    if not user_id:
        raise ValidationError("user_id is required")

    parsed_lines = _parse_lines(lines)
    target_status = _parse_status(status)
    order_dt = v.parse_datetime(order_date, "order_date") or utcnow()
    expected_dt = v.parse_datetime(expected_date, "expected_date")
    notes = v.optional_text(notes, "notes")

    if supplier_id in (None, "") and not dealer_name:
        raise ValidationError("supplier_id or dealer_name is required")

    def _op():
        begin_write()

        if supplier_id not in (None, ""):
            supplier = supplier_service.get_supplier(v.parse_int(supplier_id, "supplier_id"))
        else:
            supplier = supplier_service.find_or_create(
                name=dealer_name, phone=dealer_phone, email=dealer_email
            )

        order = ProcurementOrder(
            branch_id=branch_id,
            order_number=next_document_number(
                branch_id=branch_id,
                document_type=PROCUREMENT_SEQUENCE,
                prefix="PO",
                year=order_dt.year,
            ),
            supplier_id=supplier.id,
            status=ORDER_PENDING,
            order_date=order_dt,
            expected_date=expected_dt,
            notes=notes,
            recorded_by_user_id=user_id,
        )

        for index, line in enumerate(parsed_lines):
            produce = _resolve_line_produce(
                branch_id=branch_id, user_id=user_id, line=line, index=index, supplier=supplier
            )
            order.lines.append(ProcurementOrderLine(
                produce_id=produce.id,
                produce_name=produce.name,
                quantity=line["quantity"],
                unit=produce.unit,
                unit_cost=line["unit_cost"],
                line_total=derived.line_total(line["quantity"], line["unit_cost"]),
            ))

        order.recompute()
        db.session.add(order)
        db.session.flush()

        if target_status == ORDER_RECEIVED:
            _apply_receipt(order, user_id=user_id)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Procurement recorded: %s (branch=%s, status=%s, total=%s)",
        order.order_number, branch_id, order.status, order.total_amount,
    )
    return order


def receive_order(order_id: int, *, user_id: int, branch_id: int | None = None) -> ProcurementOrder:
    """
    Receive a pending order: increment stock for every line, exactly once.

    Raises:
        NotFoundError: order does not exist
        InvalidStateError: order is already received or cancelled
    """
    def _op():
        begin_write()
        order = lock_for_update(
            db.session.query(ProcurementOrder).filter_by(id=order_id)
        ).populate_existing().first()
        if order is None or (branch_id is not None and order.branch_id != branch_id):
            raise NotFoundError(f"Procurement order {order_id} not found", {"order_id": order_id})
        if order.status != ORDER_PENDING:
            raise InvalidStateError(
                f"Order {order.order_number} is already {order.status}",
                {"order_id": order.id, "status": order.status},
            )

        _apply_receipt(order, user_id=user_id)
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except InvalidStateError:
        current_app.logger.warning("Rejected receive of procurement order %s", order_id)
        raise
    current_app.logger.info("Procurement received: %s (id=%s)", order.order_number, order.id)
    return order


def cancel_order(order_id: int, *, user_id: int, reason: str, branch_id: int | None = None) -> ProcurementOrder:
    """Cancel a pending order. No stock effect."""
    reason = v.require_text(reason, "reason", max_length=255)

    def _op():
        begin_write()
        order = lock_for_update(
            db.session.query(ProcurementOrder).filter_by(id=order_id)
        ).populate_existing().first()
        if order is None or (branch_id is not None and order.branch_id != branch_id):
            raise NotFoundError(f"Procurement order {order_id} not found", {"order_id": order_id})
        if order.status != ORDER_PENDING:
            raise InvalidStateError(
                f"Only pending orders can be cancelled (order is {order.status})",
                {"order_id": order.id, "status": order.status},
            )
        order.status = ORDER_CANCELLED
        order.cancelled_by_user_id = user_id
        order.cancelled_at = utcnow()
        order.cancellation_reason = reason
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Procurement cancelled: %s (id=%s)", order.order_number, order.id)
    return order


def list_orders(
    *,
    branch_id: int | None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[ProcurementOrder], int]:
    query = db.session.query(ProcurementOrder)
    if branch_id is not None:
        query = query.filter(ProcurementOrder.branch_id == branch_id)
    if status:
        status = STATUS_ALIASES.get(status, status)
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
        query = query.filter(ProcurementOrder.status == status)

    total = query.count()
    orders = (
        query.order_by(ProcurementOrder.created_at.desc(), ProcurementOrder.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return orders, total
