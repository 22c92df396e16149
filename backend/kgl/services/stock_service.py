# Overview: Stock Adjustment Engine; the only writer of Produce.current_stock.

"""
KGL Stock Invariants (authoritative)

- Produce.current_stock is mutated ONLY through adjust_stock().
- A committed current_stock is never below zero.
- Every adjustment re-derives Produce.status in the same DB transaction.
- adjust_stock() never writes sales/credit/procurement rows and never
  commits; the calling orchestrator owns the transaction, so the stock
  change and its ledger entry become visible together or not at all.

Concurrency:
- The mutation is a single conditional UPDATE:
      UPDATE produce SET current_stock = ROUND(current_stock + :delta, 3)
      WHERE id = :id AND ROUND(current_stock + :delta, 3) >= :minimum
  Two writers can never both consume the same units, whatever they read
  beforehand. A zero rowcount means the check failed against the current
  committed value.
"""

from __future__ import annotations

from sqlalchemy import func, update

from ..extensions import db
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..models import Produce
from kgl import derived
from kgl.time_utils import utcnow
from .concurrency import lock_for_update

# Decimal places of Produce.current_stock
QUANTITY_SCALE = 3


def get_produce(produce_id: int, *, lock: bool = False) -> Produce:
    query = db.session.query(Produce).filter_by(id=produce_id)
    if lock:
        query = lock_for_update(query)
    produce = query.first()
    if produce is None:
        raise NotFoundError(f"Produce {produce_id} not found", {"produce_id": produce_id})
    return produce


def ensure_sufficient(produce: Produce, requested) -> None:
    """Pre-check against the loaded value; adjust_stock re-checks atomically."""
    requested = derived.to_decimal(requested)
    if produce.current_stock < requested:
        raise InsufficientStockError(
            available=produce.current_stock,
            requested=requested,
            produce_name=produce.name,
        )


def adjust_stock(produce_id: int, delta, expected_minimum=0) -> Produce:
    """
    Apply a signed stock delta (positive = stock-in, negative = stock-out).

    Raises:
        NotFoundError: produce does not exist
        InvalidStateError: stock-out from discontinued produce
        InsufficientStockError: current_stock + delta < expected_minimum;
            nothing is changed and the error carries the available quantity
    """
    delta = derived.quantity(delta)
    minimum = derived.quantity(expected_minimum)

    if delta < 0:
        produce = get_produce(produce_id)
        if produce.is_discontinued:
            raise InvalidStateError(
                f"Produce {produce.name} is discontinued",
                {"produce_id": produce_id},
            )

    # SQLite keeps Numeric as REAL; round to the column scale so the guard
    # and the stored value are the same three-decimal quantity
    new_stock = func.round(
        Produce.current_stock + delta, QUANTITY_SCALE, type_=Produce.current_stock.type
    )

    values = {"current_stock": new_stock}
    if delta > 0:
        values["last_restocked_at"] = utcnow()

    stmt = (
        update(Produce)
        .where(
            Produce.id == produce_id,
            new_stock >= minimum,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    # Reload the row as this transaction now sees it
    produce = db.session.get(Produce, produce_id, populate_existing=True)
    if produce is None:
        raise NotFoundError(f"Produce {produce_id} not found", {"produce_id": produce_id})

    if result.rowcount == 0:
        raise InsufficientStockError(
            available=produce.current_stock,
            requested=-delta if delta < 0 else None,
            produce_name=produce.name,
        )

    produce.recompute()
    db.session.flush()
    return produce


def stock_in(produce_id: int, quantity) -> Produce:
    quantity = derived.to_decimal(quantity)
    if quantity <= 0:
        raise ValidationError("Stock-in quantity must be positive")
    return adjust_stock(produce_id, quantity)


def stock_out(produce_id: int, quantity) -> Produce:
    quantity = derived.to_decimal(quantity)
    if quantity <= 0:
        raise ValidationError("Stock-out quantity must be positive")
    return adjust_stock(produce_id, -quantity)
