"""
Credit sale tests.

Verifies:
- Credit sale decrements stock and starts fully outstanding
- Outstanding and status after each appended payment
- Overpayment and payments on closed credit are rejected
- Default/cancel administration and overdue refresh
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import buyer_payload, terms_payload
from kgl.errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from kgl.models import CreditSale, CreditSalePayment, Produce
from kgl.services import credit_service
from kgl.time_utils import utcnow


def _credit(branch, agent, produce, **kwargs):
    params = {
        "branch_id": branch.id,
        "agent_id": agent.id,
        "produce_id": produce.id,
        "quantity": 5,
        "unit_price": 2000,
        "buyer": buyer_payload(),
        "credit_terms": terms_payload(),
    }
    params.update(kwargs)
    return credit_service.record_credit_sale(**params)


class TestRecordCreditSale:

    def test_creates_active_credit_and_decrements_stock(self, db_session, branch_a, agent_a, maize):
        credit = _credit(branch_a, agent_a, maize)

        assert credit.status == "active"
        assert credit.total_amount == Decimal("10000.00")
        assert credit.outstanding_amount == Decimal("10000.00")
        assert credit.buyer_trust_score == 50
        assert db_session.get(Produce, maize.id).current_stock == Decimal("45.000")

    def test_insufficient_stock_leaves_no_residue(self, db_session, branch_a, agent_a, maize):
        with pytest.raises(InsufficientStockError) as exc_info:
            _credit(branch_a, agent_a, maize, quantity=80)

        assert exc_info.value.available == Decimal("50")
        assert db_session.query(CreditSale).count() == 0
        assert db_session.get(Produce, maize.id).current_stock == Decimal("50.000")

    @pytest.mark.parametrize("missing", ["name", "national_id", "phone"])
    def test_buyer_fields_required(self, db_session, branch_a, agent_a, maize, missing):
        buyer = buyer_payload()
        buyer.pop(missing)
        with pytest.raises(ValidationError):
            _credit(branch_a, agent_a, maize, buyer=buyer)

    def test_due_date_required(self, db_session, branch_a, agent_a, maize):
        with pytest.raises(ValidationError):
            _credit(branch_a, agent_a, maize, credit_terms={"interest_rate": 5})

    def test_trust_score_bounds(self, db_session, branch_a, agent_a, maize):
        with pytest.raises(ValidationError):
            _credit(branch_a, agent_a, maize, buyer=buyer_payload(trust_score=101))


class TestPayments:

    def test_outstanding_after_each_payment(self, db_session, branch_a, agent_a, maize):
        credit = _credit(branch_a, agent_a, maize)

        credit = credit_service.record_payment(credit.id, amount=2500, recorded_by=agent_a.id)
        assert credit.outstanding_amount == Decimal("7500.00")
        assert credit.status == "partial"

        credit = credit_service.record_payment(credit.id, amount="2500.00", recorded_by=agent_a.id, method="transfer")
        assert credit.outstanding_amount == Decimal("5000.00")
        assert credit.status == "partial"

        credit = credit_service.record_payment(credit.id, amount=5000, recorded_by=agent_a.id)
        assert credit.outstanding_amount == Decimal("0.00")
        assert credit.status == "paid"
        assert [p.amount for p in credit.payments] == [Decimal("2500.00"), Decimal("2500.00"), Decimal("5000.00")]

    def test_payment_has_no_stock_effect(self, db_session, branch_a, agent_a, maize):
        credit = _credit(branch_a, agent_a, maize)
        credit_service.record_payment(credit.id, amount=1000, recorded_by=agent_a.id)
        assert db_session.get(Produce, maize.id).current_stock == Decimal("45.000")

    def test_overpayment_rejected_with_outstanding(self, db_session, branch_a, agent_a, maize):
        credit = _credit(branch_a, agent_a, maize)
        with pytest.raises(ValidationError) as exc_info:
            credit_service.record_payment(credit.id, amount="10000.01", recorded_by=agent_a.id)

        assert exc_info.value.details["outstanding_amount"] == 10000.0
        assert db_session.query(CreditSalePayment).count() == 0

    @pytest.mark.parametrize("amount", [0, -50, "x"])
    def test_non_positive_amount_rejected(self, db_session, branch_a, agent_a, maize, amount):
        credit = _credit(branch_a, agent_a, maize)
        with pytest.raises(ValidationError):
            credit_service.record_payment(credit.id, amount=amount, recorded_by=agent_a.id)

    def test_payment_on_paid_credit_rejected(self, db_session, branch_a, agent_a, maize):
        credit = _credit(branch_a, agent_a, maize)
        credit_service.record_payment(credit.id, amount=10000, recorded_by=agent_a.id)
        with pytest.raises(InvalidStateError):
            credit_service.record_payment(credit.id, amount=1, recorded_by=agent_a.id)

    def test_missing_credit_sale(self, db_session, agent_a):
        with pytest.raises(NotFoundError):
            credit_service.record_payment(424242, amount=10, recorded_by=agent_a.id)

    def test_payment_on_overdue_credit_allowed(self, db_session, branch_a, agent_a, maize):
        credit = _credit(
            branch_a, agent_a, maize,
            sale_date=(utcnow() - timedelta(days=40)).isoformat(),
            credit_terms={"due_date": (utcnow() - timedelta(days=10)).isoformat()},
        )
        assert credit.status == "overdue"

        credit = credit_service.record_payment(credit.id, amount=4000, recorded_by=agent_a.id)
        assert credit.status == "overdue"
        assert credit.outstanding_amount == Decimal("6000.00")


class TestCreditAdministration:

    def test_mark_defaulted_is_terminal(self, db_session, branch_a, agent_a, manager_a, maize):
        credit = _credit(branch_a, agent_a, maize)
        credit = credit_service.mark_defaulted(credit.id, user_id=manager_a.id, reason="Buyer absconded")
        assert credit.status == "defaulted"
        assert credit.closed_by_user_id == manager_a.id

        with pytest.raises(InvalidStateError):
            credit_service.record_payment(credit.id, amount=100, recorded_by=agent_a.id)
        with pytest.raises(InvalidStateError):
            credit_service.mark_defaulted(credit.id, user_id=manager_a.id, reason="again")

    def test_cancel_returns_stock(self, db_session, branch_a, agent_a, manager_a, maize):
        credit = _credit(branch_a, agent_a, maize)
        credit = credit_service.cancel_credit_sale(credit.id, user_id=manager_a.id, reason="Buyer changed mind")

        assert credit.status == "cancelled"
        assert db_session.get(Produce, maize.id).current_stock == Decimal("50.000")

    def test_cancel_with_payments_rejected(self, db_session, branch_a, agent_a, manager_a, maize):
        credit = _credit(branch_a, agent_a, maize)
        credit_service.record_payment(credit.id, amount=100, recorded_by=agent_a.id)

        with pytest.raises(InvalidStateError):
            credit_service.cancel_credit_sale(credit.id, user_id=manager_a.id, reason="x")
        assert db_session.get(Produce, maize.id).current_stock == Decimal("45.000")

    def test_refresh_overdue_persists_status(self, db_session, branch_a, agent_a, maize):
        credit = _credit(branch_a, agent_a, maize, credit_terms=terms_payload(days=3))
        paid = _credit(branch_a, agent_a, maize, credit_terms=terms_payload(days=3))
        credit_service.record_payment(paid.id, amount=10000, recorded_by=agent_a.id)

        changed = credit_service.refresh_overdue(branch_a.id, now=utcnow() + timedelta(days=5))

        assert changed == 1
        assert db_session.get(CreditSale, credit.id).status == "overdue"
        assert db_session.get(CreditSale, paid.id).status == "paid"

    def test_outstanding_total(self, db_session, branch_a, agent_a, maize):
        first = _credit(branch_a, agent_a, maize)
        _credit(branch_a, agent_a, maize, quantity=1)
        credit_service.record_payment(first.id, amount=4000, recorded_by=agent_a.id)

        assert credit_service.outstanding_total(branch_a.id) == Decimal("8000.00")
