"""
Procurement tests.

Verifies:
- Pending orders have no stock effect until received
- Receiving increments every line exactly once
- Unknown produce and dealers are created on the fly
- Order numbers are allocated per branch
"""

from decimal import Decimal

import pytest

from kgl.errors import InvalidStateError, NotFoundError, ValidationError
from kgl.models import Produce, ProcurementOrder, Supplier
from kgl.services import procurement_service, supplier_service


def _line(produce, quantity=20, unit_cost=1200):
    return {"produce_id": produce.id, "quantity": quantity, "unit": produce.unit, "unit_cost": unit_cost}


def _order(branch, user, lines, **kwargs):
    params = {
        "branch_id": branch.id,
        "user_id": user.id,
        "lines": lines,
        "dealer_name": "Kasese Farmers Co-op",
        "dealer_phone": "+256772000111",
    }
    params.update(kwargs)
    return procurement_service.record_procurement(**params)


class TestRecordProcurement:

    def test_pending_order_has_no_stock_effect(self, db_session, branch_a, manager_a, maize):
        order = _order(branch_a, manager_a, [_line(maize)])

        assert order.status == "pending"
        assert order.total_amount == Decimal("24000.00")
        assert order.lines[0].line_total == Decimal("24000.00")
        assert db_session.get(Produce, maize.id).current_stock == Decimal("50.000")

    def test_received_order_increments_stock(self, db_session, branch_a, manager_a, maize):
        order = _order(branch_a, manager_a, [_line(maize)], status="received")

        assert order.status == "received"
        assert order.received_date is not None
        produce = db_session.get(Produce, maize.id)
        assert produce.current_stock == Decimal("70.000")
        assert produce.last_restocked_at is not None

    def test_completed_is_alias_for_received(self, db_session, branch_a, manager_a, maize):
        order = _order(branch_a, manager_a, [_line(maize)], status="completed")
        assert order.status == "received"

    def test_unknown_status_rejected(self, db_session, branch_a, manager_a, maize):
        with pytest.raises(ValidationError):
            _order(branch_a, manager_a, [_line(maize)], status="cancelled")

    def test_new_produce_created_from_line(self, db_session, branch_a, manager_a):
        order = _order(branch_a, manager_a, [{
            "produce_name": "Soybeans",
            "quantity": 30,
            "unit": "bag",
            "unit_cost": 800,
            "sale_price": 950,
            "category": "grains",
        }], status="received")

        produce = db_session.query(Produce).filter_by(name="Soybeans").one()
        assert order.lines[0].produce_id == produce.id
        assert produce.branch_id == branch_a.id
        assert produce.current_stock == Decimal("30.000")
        assert produce.sale_price == Decimal("950.00")
        assert produce.supplier_name == "Kasese Farmers Co-op"

    def test_existing_name_is_reused(self, db_session, branch_a, manager_a, maize):
        order = _order(branch_a, manager_a, [{"produce_name": "maize", "quantity": 5, "unit_cost": 1100}])
        assert order.lines[0].produce_id == maize.id
        assert order.lines[0].unit == "ton"
        assert db_session.query(Produce).count() == 1

    def test_line_unit_must_match_produce_unit(self, db_session, branch_a, manager_a, maize):
        """500 kg received against Maize counted in tons must not add 500 t."""
        line = {"produce_id": maize.id, "quantity": 500, "unit": "kg", "unit_cost": 1200}
        with pytest.raises(ValidationError) as exc_info:
            _order(branch_a, manager_a, [line], status="received")

        assert exc_info.value.details["field"] == "unit"
        assert exc_info.value.details["expected"] == "ton"
        assert db_session.get(Produce, maize.id).current_stock == Decimal("50.000")
        assert db_session.query(ProcurementOrder).count() == 0

    def test_line_unit_checked_for_produce_found_by_name(self, db_session, branch_a, manager_a, maize):
        line = {"produce_name": "Maize", "quantity": 5, "unit": "bag", "unit_cost": 1100}
        with pytest.raises(ValidationError):
            _order(branch_a, manager_a, [line])
        assert db_session.query(ProcurementOrder).count() == 0

    def test_omitted_unit_takes_produce_unit(self, db_session, branch_a, manager_a, maize):
        order = _order(branch_a, manager_a, [{"produce_id": maize.id, "quantity": 5, "unit_cost": 1200}],
                       status="received")

        assert order.lines[0].unit == "ton"
        assert db_session.get(Produce, maize.id).current_stock == Decimal("55.000")

    def test_dealer_is_created_once(self, db_session, branch_a, manager_a, maize):
        first = _order(branch_a, manager_a, [_line(maize)])
        second = _order(branch_a, manager_a, [_line(maize)], dealer_name="kasese farmers co-op", dealer_phone=None)

        assert first.supplier_id == second.supplier_id
        assert db_session.query(Supplier).count() == 1

    def test_new_dealer_requires_phone(self, db_session, branch_a, manager_a, maize):
        with pytest.raises(ValidationError):
            _order(branch_a, manager_a, [_line(maize)], dealer_name="Unknown Dealer", dealer_phone=None)
        assert db_session.query(ProcurementOrder).count() == 0

    def test_existing_supplier_by_id(self, db_session, branch_a, manager_a, maize):
        supplier = supplier_service.create_supplier(name="Gulu Grain Traders", phone="+256701000000")
        order = _order(branch_a, manager_a, [_line(maize)], supplier_id=supplier.id, dealer_name=None)
        assert order.supplier_id == supplier.id

    def test_empty_lines_rejected(self, db_session, branch_a, manager_a):
        with pytest.raises(ValidationError):
            _order(branch_a, manager_a, [])

    def test_bad_line_quantity_rejected(self, db_session, branch_a, manager_a, maize):
        with pytest.raises(ValidationError):
            _order(branch_a, manager_a, [_line(maize, quantity=0)], status="received")
        assert db_session.get(Produce, maize.id).current_stock == Decimal("50.000")

    def test_produce_from_other_branch_rejected(self, db_session, branch_a, manager_a, beans_b):
        with pytest.raises(NotFoundError):
            _order(branch_a, manager_a, [_line(beans_b)])
        assert db_session.query(ProcurementOrder).count() == 0


class TestOrderNumbers:

    def test_numbers_increment_per_branch(self, db_session, branch_a, branch_b, manager_a, manager_b, maize, beans_b):
        first = _order(branch_a, manager_a, [_line(maize)], order_date="2026-03-01")
        second = _order(branch_a, manager_a, [_line(maize)], order_date="2026-03-02")
        other = _order(branch_b, manager_b, [_line(beans_b)], order_date="2026-03-02")

        assert first.order_number == "PO-2026-001"
        assert second.order_number == "PO-2026-002"
        assert other.order_number == "PO-2026-001"


class TestReceiveAndCancel:

    def test_receive_increments_exactly_once(self, db_session, branch_a, manager_a, maize):
        order = _order(branch_a, manager_a, [_line(maize)])

        received = procurement_service.receive_order(order.id, user_id=manager_a.id)
        assert received.status == "received"
        assert received.received_by_user_id == manager_a.id
        assert db_session.get(Produce, maize.id).current_stock == Decimal("70.000")

        with pytest.raises(InvalidStateError):
            procurement_service.receive_order(order.id, user_id=manager_a.id)
        assert db_session.get(Produce, maize.id).current_stock == Decimal("70.000")

    def test_receive_from_other_branch_not_found(self, db_session, branch_a, branch_b, manager_a, maize):
        order = _order(branch_a, manager_a, [_line(maize)])
        with pytest.raises(NotFoundError):
            procurement_service.receive_order(order.id, user_id=manager_a.id, branch_id=branch_b.id)

    def test_cancel_pending_only(self, db_session, branch_a, manager_a, maize):
        order = _order(branch_a, manager_a, [_line(maize)])
        cancelled = procurement_service.cancel_order(order.id, user_id=manager_a.id, reason="Dealer no-show")
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "Dealer no-show"

        with pytest.raises(InvalidStateError):
            procurement_service.receive_order(order.id, user_id=manager_a.id)
        with pytest.raises(InvalidStateError):
            procurement_service.cancel_order(order.id, user_id=manager_a.id, reason="again")
        assert db_session.get(Produce, maize.id).current_stock == Decimal("50.000")

    def test_list_orders_by_status(self, db_session, branch_a, manager_a, maize):
        _order(branch_a, manager_a, [_line(maize)])
        _order(branch_a, manager_a, [_line(maize)], status="received")

        orders, total = procurement_service.list_orders(branch_id=branch_a.id, status="completed")
        assert total == 1
        assert orders[0].status == "received"
