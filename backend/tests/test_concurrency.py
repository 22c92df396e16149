"""
Concurrent stock-out tests.

Two agents sell the same produce at the same moment against a file-backed
SQLite database (separate connections per thread). Exactly one sale may
succeed when the combined quantity exceeds the stock.
"""

import os
import tempfile
import threading
from decimal import Decimal

import pytest

from conftest import TEST_PASSWORD, buyer_payload, terms_payload
from kgl import create_app
from kgl.errors import InsufficientStockError
from kgl.extensions import db
from kgl.models import CreditSale, Produce, Sale
from kgl.services import auth_service, branch_service, credit_service, produce_service, sales_service


@pytest.fixture
def file_app():
    fd, path = tempfile.mkstemp(suffix=".sqlite3")
    os.close(fd)
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 15}},
        "BCRYPT_ROUNDS": 4,
    })

    with app.app_context():
        db.create_all()
        branch = branch_service.create_branch(name="Maganjo", location="Kampala North", code="MAG")
        agent = auth_service.create_user(
            username="race_agent", password=TEST_PASSWORD, full_name="Race Agent",
            role="agent", branch_id=branch.id,
        )
        produce = produce_service.create_produce(
            branch_id=branch.id,
            created_by_user_id=agent.id,
            data={
                "name": "Maize", "category": "grains", "unit": "kg",
                "cost_price": 1200, "sale_price": 1500,
                "minimum_stock": 2, "current_stock": 10,
            },
        )
        app.config["RACE_IDS"] = (branch.id, agent.id, produce.id)
        db.session.remove()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    os.unlink(path)


def _race(app, work):
    """Run work() in two threads released together; collect outcomes."""
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def runner():
        with app.app_context():
            barrier.wait()
            try:
                work()
                result = "ok"
            except InsufficientStockError:
                result = "insufficient"
            finally:
                db.session.remove()
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=runner) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return sorted(outcomes)


class TestConcurrentStockOut:

    def test_two_sales_cannot_oversell(self, file_app):
        branch_id, agent_id, produce_id = file_app.config["RACE_IDS"]

        def sell():
            sales_service.record_sale(
                branch_id=branch_id, agent_id=agent_id, produce_id=produce_id, quantity=6,
            )

        assert _race(file_app, sell) == ["insufficient", "ok"]

        with file_app.app_context():
            produce = db.session.get(Produce, produce_id)
            assert produce.current_stock == Decimal("4.000")
            assert produce.status == "available"
            assert db.session.query(Sale).count() == 1

    def test_cash_and_credit_sale_cannot_oversell(self, file_app):
        branch_id, agent_id, produce_id = file_app.config["RACE_IDS"]
        turn = iter(("cash", "credit"))
        turn_lock = threading.Lock()

        def sell():
            with turn_lock:
                kind = next(turn)
            if kind == "cash":
                sales_service.record_sale(
                    branch_id=branch_id, agent_id=agent_id, produce_id=produce_id, quantity=7,
                )
            else:
                credit_service.record_credit_sale(
                    branch_id=branch_id, agent_id=agent_id, produce_id=produce_id, quantity=7,
                    buyer=buyer_payload(), credit_terms=terms_payload(),
                )

        assert _race(file_app, sell) == ["insufficient", "ok"]

        with file_app.app_context():
            produce = db.session.get(Produce, produce_id)
            assert produce.current_stock == Decimal("3.000")
            assert db.session.query(Sale).count() + db.session.query(CreditSale).count() == 1
