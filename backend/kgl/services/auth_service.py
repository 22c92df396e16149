# Overview: User accounts and password handling.

"""
Authentication Service

Every recorded sale, payment and procurement order is attributed to a
user. Passwords are hashed with bcrypt.

ROLES:
- director: cross-branch; no branch_id
- manager:  one branch; full control of that branch
- agent:    one branch; sales and credit sales only
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ValidationError, NotFoundError
from ..models import User, Branch
from ..models.auth import ROLES, ROLE_DIRECTOR
from kgl.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_user(
    *,
    username: str,
    password: str,
    full_name: str,
    role: str,
    branch_id: int | None = None,
    email: str | None = None,
    phone: str | None = None,
) -> User:
    """
    Create a user account.

    Raises:
        ValidationError: bad role, missing branch for branch staff,
            duplicate username or weak password
        NotFoundError: branch does not exist
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if not full_name or not full_name.strip():
        raise ValidationError("full_name is required")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    if role != ROLE_DIRECTOR:
        if not branch_id:
            raise ValidationError(f"branch_id is required for role '{role}'")
        if db.session.get(Branch, branch_id) is None:
            raise NotFoundError(f"Branch {branch_id} not found", {"branch_id": branch_id})
    else:
        branch_id = None

    if db.session.query(User).filter_by(username=username).first():
        raise ValidationError(f"Username '{username}' already exists")

    validate_password_strength(password)

    user = User(
        username=username,
        full_name=full_name.strip(),
        email=email.strip().lower() if email else None,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        branch_id=branch_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for valid credentials, else None."""
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users(*, branch_id: int | None = None) -> list[User]:
    query = db.session.query(User)
    if branch_id is not None:
        query = query.filter(User.branch_id == branch_id)
    return query.order_by(User.username.asc()).all()
