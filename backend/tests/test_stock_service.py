"""
Stock Adjustment Engine tests.

Verifies:
- Stock-in and stock-out move current_stock and re-derive status
- The conditional UPDATE refuses to go below the minimum, even when the
  caller's view of the row is stale
- Discontinued produce cannot be sold from
- Fractional movements never leave a residue in the stored quantity
"""

from decimal import Decimal

import pytest
from sqlalchemy import text, update

from conftest import make_produce
from kgl.errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from kgl.models import Produce
from kgl.services import sales_service, stock_service


class TestAdjustStock:

    def test_stock_out_decrements_and_derives_status(self, db_session, maize):
        produce = stock_service.adjust_stock(maize.id, -45)
        db_session.commit()

        assert produce.current_stock == Decimal("5.000")
        assert produce.status == "low-stock"

    def test_stock_in_stamps_restock_time(self, db_session, maize):
        produce = stock_service.stock_in(maize.id, 20)
        db_session.commit()

        assert produce.current_stock == Decimal("70.000")
        assert produce.status == "available"
        assert produce.last_restocked_at is not None

    def test_sell_to_zero_is_out_of_stock(self, db_session, maize):
        produce = stock_service.stock_out(maize.id, 50)
        db_session.commit()

        assert produce.current_stock == Decimal("0.000")
        assert produce.status == "out-of-stock"

    def test_insufficient_stock_changes_nothing(self, db_session, maize):
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.adjust_stock(maize.id, -60)
        db_session.rollback()

        assert exc_info.value.available == Decimal("50")
        assert exc_info.value.requested == Decimal("60")
        assert exc_info.value.details["available"] == 50.0
        assert db_session.get(Produce, maize.id).current_stock == Decimal("50.000")

    def test_expected_minimum_is_enforced(self, db_session, maize):
        with pytest.raises(InsufficientStockError):
            stock_service.adjust_stock(maize.id, -45, expected_minimum=10)
        db_session.rollback()

    def test_conditional_update_guards_stale_reads(self, db_session, maize):
        """A pre-check against a stale row must not let stock go negative."""
        produce = db_session.get(Produce, maize.id)
        assert produce.current_stock == Decimal("50.000")

        # Another writer consumed stock behind this session's back
        db_session.execute(
            update(Produce)
            .where(Produce.id == maize.id)
            .values(current_stock=3)
            .execution_options(synchronize_session=False)
        )

        stock_service.ensure_sufficient(produce, 6)  # stale view still says 50

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.adjust_stock(maize.id, -6)
        assert exc_info.value.available == Decimal("3")
        db_session.rollback()

    def test_missing_produce(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(999999, 5)

    def test_non_positive_quantities_rejected(self, db_session, maize):
        with pytest.raises(ValidationError):
            stock_service.stock_in(maize.id, 0)
        with pytest.raises(ValidationError):
            stock_service.stock_out(maize.id, -5)

    def test_discontinued_cannot_be_sold_from(self, db_session, maize):
        maize.status = "discontinued"
        db_session.commit()

        with pytest.raises(InvalidStateError):
            stock_service.adjust_stock(maize.id, -1)
        db_session.rollback()

        # Restocking stays possible and the status is kept
        produce = stock_service.stock_in(maize.id, 5)
        db_session.commit()
        assert produce.status == "discontinued"
        assert produce.current_stock == Decimal("55.000")


class TestEnsureSufficient:

    def test_passes_when_enough(self, db_session, maize):
        stock_service.ensure_sufficient(maize, 50)

    def test_raises_with_available(self, db_session, maize):
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.ensure_sufficient(maize, "50.001")
        assert exc_info.value.available == Decimal("50")
        assert "Available: 50" in exc_info.value.message


class TestFractionalStock:
    """Repeated fractional movements land on exact quantities."""

    @staticmethod
    def _raw_stock(db_session, produce_id):
        return db_session.execute(
            text("SELECT current_stock FROM produce WHERE id = :id"), {"id": produce_id}
        ).scalar()

    def test_three_small_sales_empty_the_stock(self, db_session, branch_a, manager_a, agent_a):
        rice = make_produce(branch_a, manager_a, name="Rice", unit="kg", current_stock="0.3", minimum_stock=0)

        for _ in range(3):
            sales_service.record_sale(
                branch_id=branch_a.id, agent_id=agent_a.id, produce_id=rice.id, quantity="0.1"
            )

        produce = db_session.get(Produce, rice.id, populate_existing=True)
        assert produce.current_stock == Decimal("0.000")
        assert produce.status == "out-of-stock"
        assert self._raw_stock(db_session, rice.id) == 0

        with pytest.raises(InsufficientStockError):
            sales_service.record_sale(
                branch_id=branch_a.id, agent_id=agent_a.id, produce_id=rice.id, quantity="0.001"
            )

    def test_small_receipts_can_be_sold_as_one(self, db_session, branch_a, manager_a):
        rice = make_produce(branch_a, manager_a, name="Rice", unit="kg", current_stock=0, minimum_stock=0)

        for _ in range(3):
            stock_service.stock_in(rice.id, "0.1")
            db_session.commit()

        produce = stock_service.stock_out(rice.id, "0.3")
        db_session.commit()

        assert produce.current_stock == Decimal("0.000")
        assert self._raw_stock(db_session, rice.id) == 0
