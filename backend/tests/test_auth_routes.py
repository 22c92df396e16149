"""
Authentication and session tests.

Verifies:
- Login issues a bearer token; bad credentials are refused
- Logout revokes the token
- Idle and deactivated sessions stop working
- Password strength rules on user creation
"""

from datetime import timedelta

import pytest

from conftest import TEST_PASSWORD, auth_headers, get_auth_token
from kgl.models import SessionToken
from kgl.services import auth_service, session_service
from kgl.time_utils import utcnow


class TestLogin:

    def test_login_returns_token_and_user(self, client, manager_a):
        response = client.post('/api/auth/login', json={'username': 'manager_a', 'password': TEST_PASSWORD})

        assert response.status_code == 200
        assert len(response.json['token']) == 64
        assert response.json['user']['role'] == 'manager'
        assert response.json['user']['branch_id'] == manager_a.branch_id
        assert 'password_hash' not in response.json['user']

    def test_wrong_password(self, client, manager_a):
        response = client.post('/api/auth/login', json={'username': 'manager_a', 'password': 'Wrong12345'})
        assert response.status_code == 401
        assert response.json['kind'] == 'unauthorized'

    def test_missing_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={'username': ''})
        assert response.status_code == 400

    def test_me(self, client, manager_headers, branch_a):
        response = client.get('/api/auth/me', headers=manager_headers)
        assert response.status_code == 200
        assert response.json['user']['username'] == 'manager_a'
        assert response.json['branch']['code'] == 'MAG'

    def test_logout_revokes_token(self, client, manager_a):
        token = get_auth_token(client, 'manager_a')
        headers = auth_headers(token)

        assert client.post('/api/auth/logout', headers=headers).status_code == 200
        assert client.get('/api/auth/me', headers=headers).status_code == 401


class TestSessionValidation:

    def test_no_token(self, client, db_session):
        response = client.get('/api/produce')
        assert response.status_code == 401
        assert response.json['kind'] == 'unauthorized'

    def test_garbage_token(self, client, db_session):
        response = client.get('/api/produce', headers=auth_headers('not-a-token'))
        assert response.status_code == 401

    def test_idle_session_is_revoked(self, db_session, agent_a):
        session, token = session_service.create_session(agent_a.id)
        session.last_used_at = utcnow() - timedelta(days=1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired_session(self, db_session, agent_a):
        session, token = session_service.create_session(agent_a.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_deactivated_user(self, db_session, agent_a):
        _, token = session_service.create_session(agent_a.id)
        agent_a.is_active = False
        db_session.commit()

        assert session_service.validate_session(token) is None


class TestPasswords:

    @pytest.mark.parametrize("password", ["short1", "lettersonly", "1234567890", ""])
    def test_weak_passwords_rejected(self, db_session, branch_a, password):
        with pytest.raises(auth_service.PasswordValidationError):
            auth_service.create_user(
                username='weak_user', password=password, full_name='Weak User',
                role='agent', branch_id=branch_a.id,
            )

    def test_authenticate_stamps_last_login(self, db_session, agent_a):
        user = auth_service.authenticate('agent_a', TEST_PASSWORD)
        assert user.id == agent_a.id
        assert user.last_login_at is not None
        assert auth_service.authenticate('agent_a', 'Nope12345') is None
