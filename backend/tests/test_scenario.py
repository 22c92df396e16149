"""
End-to-end branch day: procurement, sales and credit against one produce.

Maize starts at 50 t (minimum 10). A 20 t delivery arrives, a 65 t sale
leaves 5 t in low-stock, and a further 10 t sale is refused.
"""

from decimal import Decimal

import pytest

from conftest import buyer_payload, terms_payload
from kgl.errors import InsufficientStockError
from kgl.models import Produce
from kgl.services import credit_service, procurement_service, sales_service


class TestMaizeDay:

    def test_receive_sell_and_refuse(self, db_session, branch_a, manager_a, agent_a, maize):
        order = procurement_service.record_procurement(
            branch_id=branch_a.id,
            user_id=manager_a.id,
            dealer_name="Kasese Farmers Co-op",
            dealer_phone="+256772000111",
            lines=[{"produce_id": maize.id, "quantity": 20, "unit": "ton", "unit_cost": 1200}],
        )
        procurement_service.receive_order(order.id, user_id=manager_a.id)
        produce = db_session.get(Produce, maize.id)
        assert produce.current_stock == Decimal("70.000")
        assert produce.status == "available"

        sale = sales_service.record_sale(
            branch_id=branch_a.id, agent_id=agent_a.id, produce_id=maize.id, quantity=65,
        )
        assert sale.total_price == Decimal("97500.00")
        produce = db_session.get(Produce, maize.id)
        assert produce.current_stock == Decimal("5.000")
        assert produce.status == "low-stock"

        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.record_sale(
                branch_id=branch_a.id, agent_id=agent_a.id, produce_id=maize.id, quantity=10,
            )
        assert exc_info.value.available == Decimal("5")
        assert exc_info.value.message == "Insufficient stock for Maize. Available: 5"
        assert db_session.get(Produce, maize.id).current_stock == Decimal("5.000")

    def test_credit_sale_to_out_of_stock_then_paid(self, db_session, branch_a, agent_a, maize):
        credit = credit_service.record_credit_sale(
            branch_id=branch_a.id,
            agent_id=agent_a.id,
            produce_id=maize.id,
            quantity=50,
            buyer=buyer_payload(trust_score=80),
            credit_terms=terms_payload(days=14, interest_rate=2),
        )
        assert credit.total_amount == Decimal("75000.00")
        assert db_session.get(Produce, maize.id).status == "out-of-stock"

        for amount in (25000, 25000, 25000):
            credit = credit_service.record_payment(credit.id, amount=amount, recorded_by=agent_a.id)

        assert credit.status == "paid"
        assert credit.outstanding_amount == Decimal("0.00")
        assert len(credit.payments) == 3
