# Overview: Service-layer operations for branches.

import re

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import Branch
from .document_service import ensure_sequence, PROCUREMENT_SEQUENCE

_CODE_RE = re.compile(r"^[A-Z0-9_-]{1,10}$")


def create_branch(*, name: str, location: str, code: str) -> Branch:
    """
    Create a branch and its document sequences.

    Raises:
        ValidationError: missing fields, malformed or duplicate code
    """
    if not name or not name.strip():
        raise ValidationError("Branch name is required")
    if not location or not location.strip():
        raise ValidationError("Branch location is required")

    code = (code or "").strip().upper()
    if not _CODE_RE.match(code):
        raise ValidationError("Branch code must be 1-10 characters (A-Z, 0-9, '-', '_')")

    if db.session.query(Branch).filter_by(code=code).first():
        raise ValidationError(f"Branch code '{code}' already exists")

    branch = Branch(name=name.strip(), location=location.strip(), code=code, is_active=True)
    db.session.add(branch)
    db.session.flush()

    ensure_sequence(branch.id, PROCUREMENT_SEQUENCE)
    db.session.commit()

    current_app.logger.info("Branch created: %s (%s)", branch.code, branch.id)
    return branch


def list_branches(*, include_inactive: bool = False) -> list[Branch]:
    query = db.session.query(Branch)
    if not include_inactive:
        query = query.filter(Branch.is_active.is_(True))
    return query.order_by(Branch.name.asc()).all()
