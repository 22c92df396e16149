# Overview: Service-layer operations for produce records; stock itself moves only through stock_service.

"""
Produce Service

Produce is the stock-keeping unit of a branch. This service owns the
descriptive fields (name, category, pricing, thresholds, supplier contact)
and the administrative lifecycle (discontinue, reinstate, delete).

current_stock is NOT writable here. Opening stock given at creation goes
through stock_service.adjust_stock in the same transaction as the insert.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..models import Produce, CreditSale, Sale, ProcurementOrderLine
from ..models.inventory import PRODUCE_CATEGORIES, STOCK_UNITS
from kgl import derived
from kgl import validation as v
from .concurrency import begin_write, run_with_retry
from . import stock_service

# Fields a produce update may touch
UPDATABLE_FIELDS = {
    "name",
    "category",
    "unit",
    "cost_price",
    "sale_price",
    "minimum_price",
    "minimum_stock",
    "maximum_stock",
    "supplier_name",
    "supplier_phone",
    "supplier_email",
}


def get_produce(produce_id: int, *, branch_id: int | None = None) -> Produce:
    produce = db.session.get(Produce, produce_id)
    if produce is None or (branch_id is not None and produce.branch_id != branch_id):
        raise NotFoundError(f"Produce {produce_id} not found", {"produce_id": produce_id})
    return produce


def find_by_name(branch_id: int, name: str) -> Produce | None:
    """Case-insensitive exact name match within a branch."""
    return (
        db.session.query(Produce)
        .filter(
            Produce.branch_id == branch_id,
            func.lower(Produce.name) == name.strip().lower(),
        )
        .first()
    )


def resolve_produce(*, branch_id: int, produce_id=None, produce_name: str | None = None) -> Produce:
    """
    Resolve a produce reference by id or by name within a branch.

    Raises:
        ValidationError: neither reference given
        NotFoundError: no such produce in this branch
    """
    if produce_id not in (None, ""):
        pid = v.parse_int(produce_id, "produce_id")
        return get_produce(pid, branch_id=branch_id)

    if not produce_name or not str(produce_name).strip():
        raise ValidationError("produce_id or produce_name is required")

    produce = find_by_name(branch_id, str(produce_name))
    if produce is None:
        raise NotFoundError(
            f"Produce '{str(produce_name).strip()}' not found in this branch",
            {"produce_name": str(produce_name).strip()},
        )
    return produce


def _clean_fields(data: dict, *, creating: bool) -> dict:
    cleaned = {}

    if creating or "name" in data:
        cleaned["name"] = v.require_text(data.get("name"), "name", max_length=100)
    if creating or "category" in data:
        cleaned["category"] = v.parse_choice(data.get("category"), "category", PRODUCE_CATEGORIES)
    if creating or "unit" in data:
        cleaned["unit"] = v.parse_choice(data.get("unit"), "unit", STOCK_UNITS, default="kg")
    if creating or "cost_price" in data:
        cleaned["cost_price"] = v.parse_money(data.get("cost_price"), "cost_price")
    if creating or "sale_price" in data:
        cleaned["sale_price"] = v.parse_money(data.get("sale_price"), "sale_price")
    if "minimum_price" in data:
        raw = data.get("minimum_price")
        cleaned["minimum_price"] = None if raw in (None, "") else v.parse_money(raw, "minimum_price")
    if creating or "minimum_stock" in data:
        raw = data.get("minimum_stock")
        if raw in (None, ""):
            raw = current_app.config.get("DEFAULT_MINIMUM_STOCK", 10)
        cleaned["minimum_stock"] = derived.quantity(v.parse_decimal(raw, "minimum_stock", minimum=0))
    if "maximum_stock" in data:
        raw = data.get("maximum_stock")
        cleaned["maximum_stock"] = (
            None if raw in (None, "") else derived.quantity(v.parse_decimal(raw, "maximum_stock", minimum=0))
        )

    for key, limit in (("supplier_name", 100), ("supplier_phone", 32), ("supplier_email", 255)):
        if key in data:
            cleaned[key] = v.optional_text(data.get(key), key, max_length=limit)
    if cleaned.get("supplier_email"):
        cleaned["supplier_email"] = cleaned["supplier_email"].lower()

    return cleaned


def _check_pricing(produce: Produce) -> None:
    if produce.minimum_price is not None and produce.sale_price < produce.minimum_price:
        raise ValidationError(
            "sale_price cannot be below minimum_price",
            {"sale_price": float(produce.sale_price), "minimum_price": float(produce.minimum_price)},
        )
    if produce.maximum_stock is not None and produce.maximum_stock < produce.minimum_stock:
        raise ValidationError("maximum_stock cannot be below minimum_stock")


def build_produce(*, branch_id: int, created_by_user_id: int, data: dict) -> Produce:
    """Validate and insert a produce row inside the caller's transaction (flush only)."""
    fields = _clean_fields(data, creating=True)

    if find_by_name(branch_id, fields["name"]):
        raise ValidationError(
            f"Produce '{fields['name']}' already exists in this branch",
            {"name": fields["name"]},
        )

    produce = Produce(
        branch_id=branch_id,
        created_by_user_id=created_by_user_id,
        current_stock=0,
        status=derived.STOCK_OUT,
        **fields,
    )
    _check_pricing(produce)
    produce.recompute()
    db.session.add(produce)
    db.session.flush()
    return produce


def create_produce(*, branch_id: int, created_by_user_id: int, data: dict) -> Produce:
    """
    Create produce, optionally with opening stock (data["current_stock"]).

    Raises:
        ValidationError: bad or duplicate fields
    """
    opening = data.get("current_stock")
    opening_qty = None
    if opening not in (None, "", 0, "0"):
        opening_qty = derived.quantity(v.parse_decimal(opening, "current_stock", minimum=0))

    # Validate before taking the write lock
    _clean_fields(data, creating=True)

    def _op():
        begin_write()
        produce = build_produce(branch_id=branch_id, created_by_user_id=created_by_user_id, data=data)
        if opening_qty:
            stock_service.adjust_stock(produce.id, opening_qty)
        db.session.commit()
        return produce

    produce = run_with_retry(_op)
    current_app.logger.info(
        "Produce created: %s (id=%s, branch=%s, stock=%s)",
        produce.name, produce.id, branch_id, produce.current_stock,
    )
    return produce


def update_produce(produce_id: int, *, branch_id: int | None, data: dict) -> Produce:
    """
    Update descriptive fields. Stock is not editable here; a
    current_stock key is rejected. Status is re-derived.
    """
    if "current_stock" in data:
        raise ValidationError("current_stock cannot be edited directly; record a procurement or sale")
    if "status" in data:
        raise ValidationError("status is derived; use discontinue/reinstate")

    unknown = set(data) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown or read-only fields: {', '.join(sorted(unknown))}")

    fields = _clean_fields(data, creating=False)

    def _op():
        begin_write()
        produce = get_produce(produce_id, branch_id=branch_id)
        if "name" in fields:
            existing = find_by_name(produce.branch_id, fields["name"])
            if existing is not None and existing.id != produce.id:
                raise ValidationError(f"Produce '{fields['name']}' already exists in this branch")
        for key, value in fields.items():
            setattr(produce, key, value)
        _check_pricing(produce)
        produce.recompute()
        db.session.commit()
        return produce

    return run_with_retry(_op)


def discontinue_produce(produce_id: int, *, branch_id: int | None) -> Produce:
    def _op():
        begin_write()
        produce = get_produce(produce_id, branch_id=branch_id)
        if produce.is_discontinued:
            raise InvalidStateError(f"Produce {produce.name} is already discontinued")
        produce.status = derived.STOCK_DISCONTINUED
        db.session.commit()
        return produce

    produce = run_with_retry(_op)
    current_app.logger.info("Produce discontinued: %s (id=%s)", produce.name, produce.id)
    return produce


def reinstate_produce(produce_id: int, *, branch_id: int | None) -> Produce:
    def _op():
        begin_write()
        produce = get_produce(produce_id, branch_id=branch_id)
        if not produce.is_discontinued:
            raise InvalidStateError(f"Produce {produce.name} is not discontinued")
        produce.status = derived.STOCK_AVAILABLE
        produce.recompute()
        db.session.commit()
        return produce

    return run_with_retry(_op)


def delete_produce(produce_id: int, *, branch_id: int | None) -> None:
    """
    Delete a produce record. Ledger history keeps its name snapshot.

    Raises:
        InvalidStateError: open credit sales still reference this produce
    """
    def _op():
        begin_write()
        produce = get_produce(produce_id, branch_id=branch_id)
        open_credit = (
            db.session.query(func.count(CreditSale.id))
            .filter(
                CreditSale.produce_id == produce.id,
                CreditSale.status.in_(derived.CREDIT_OPEN_STATES),
            )
            .scalar()
        )
        if open_credit:
            raise InvalidStateError(
                f"Produce {produce.name} has {open_credit} open credit sale(s); discontinue it instead",
                {"open_credit_sales": open_credit},
            )
        # Detach history rows; they keep their produce_name snapshot
        for model in (Sale, CreditSale, ProcurementOrderLine):
            db.session.execute(
                update(model)
                .where(model.produce_id == produce.id)
                .values(produce_id=None)
                .execution_options(synchronize_session=False)
            )
        name = produce.name
        db.session.delete(produce)
        db.session.commit()
        return name

    name = run_with_retry(_op)
    current_app.logger.info("Produce deleted: %s (id=%s)", name, produce_id)


def list_produce(
    *,
    branch_id: int | None,
    category: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> list[Produce]:
    query = db.session.query(Produce)
    if branch_id is not None:
        query = query.filter(Produce.branch_id == branch_id)
    if category:
        query = query.filter(Produce.category == category)
    if status:
        query = query.filter(Produce.status == status)
    if search:
        query = query.filter(Produce.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Produce.name.asc()).all()
