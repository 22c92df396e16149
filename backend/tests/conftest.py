"""
Pytest fixtures for KGL backend tests.

Provides test database setup, branch/user/produce fixtures, and test client.
"""

from datetime import timedelta

import pytest
from kgl import create_app
from kgl.extensions import db
from kgl.services import auth_service, branch_service, produce_service
from kgl.time_utils import utcnow

TEST_PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def branch_a(db_session):
    """Create Branch A (Maganjo)."""
    return branch_service.create_branch(name="Maganjo", location="Kampala North", code="MAG")


@pytest.fixture(scope='function')
def branch_b(db_session):
    """Create Branch B (Matugga)."""
    return branch_service.create_branch(name="Matugga", location="Wakiso", code="MAT")


def make_user(username: str, role: str, branch=None):
    return auth_service.create_user(
        username=username,
        password=TEST_PASSWORD,
        full_name=username.replace("_", " ").title(),
        role=role,
        branch_id=branch.id if branch is not None else None,
    )


@pytest.fixture(scope='function')
def director(db_session):
    return make_user("director", "director")


@pytest.fixture(scope='function')
def manager_a(db_session, branch_a):
    return make_user("manager_a", "manager", branch_a)


@pytest.fixture(scope='function')
def agent_a(db_session, branch_a):
    return make_user("agent_a", "agent", branch_a)


@pytest.fixture(scope='function')
def manager_b(db_session, branch_b):
    return make_user("manager_b", "manager", branch_b)


@pytest.fixture(scope='function')
def agent_b(db_session, branch_b):
    return make_user("agent_b", "agent", branch_b)


def make_produce(branch, user, **overrides):
    data = {
        "name": "Maize",
        "category": "grains",
        "unit": "ton",
        "cost_price": 1200,
        "sale_price": 1500,
        "minimum_stock": 10,
        "current_stock": 50,
    }
    data.update(overrides)
    return produce_service.create_produce(
        branch_id=branch.id,
        created_by_user_id=user.id,
        data=data,
    )


@pytest.fixture(scope='function')
def maize(db_session, branch_a, manager_a):
    """50 t of Maize in Branch A, minimum stock 10."""
    return make_produce(branch_a, manager_a)


@pytest.fixture(scope='function')
def beans_b(db_session, branch_b, manager_b):
    """Beans in Branch B."""
    return make_produce(
        branch_b, manager_b,
        name="Beans", category="grains", unit="kg",
        cost_price=3000, sale_price=4000, current_stock=100,
    )


def buyer_payload(**overrides) -> dict:
    buyer = {
        "name": "Okello John",
        "national_id": "CM90012345ABCD",
        "phone": "+256700111222",
        "location": "Kawempe",
    }
    buyer.update(overrides)
    return buyer


def terms_payload(days: int = 30, **overrides) -> dict:
    terms = {"due_date": (utcnow() + timedelta(days=days)).isoformat()}
    terms.update(overrides)
    return terms


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def director_headers(client, director):
    return auth_headers(get_auth_token(client, director.username))


@pytest.fixture(scope='function')
def manager_headers(client, manager_a):
    return auth_headers(get_auth_token(client, manager_a.username))


@pytest.fixture(scope='function')
def agent_headers(client, agent_a):
    return auth_headers(get_auth_token(client, agent_a.username))


@pytest.fixture(scope='function')
def agent_b_headers(client, agent_b):
    return auth_headers(get_auth_token(client, agent_b.username))
