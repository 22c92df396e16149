"""
Branch Tenancy Service: Branch Resolution and Scoping Helpers

Every ledger row belongs to exactly one branch. Managers and agents work
inside their own branch only; directors operate across branches but must
name the branch they act on.

SECURITY INVARIANTS:
1. The branch a write lands in is always explicit (no "first branch" fallback)
2. A branch_id from client input is validated against the acting user
3. Rows loaded by id are checked against the acting user's branch
"""

from __future__ import annotations

from ..extensions import db
from ..errors import BranchAccessError, NotFoundError, ValidationError
from ..models import Branch, User
from ..models.auth import ROLE_DIRECTOR


def _coerce_branch_id(requested) -> int | None:
    if requested is None or requested == "":
        return None
    if isinstance(requested, bool):
        raise ValidationError("branch_id must be an integer")
    try:
        return int(requested)
    except (TypeError, ValueError):
        raise ValidationError("branch_id must be an integer")


def require_branch(branch_id: int) -> Branch:
    """Load an active branch or raise."""
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError(f"Branch {branch_id} not found", {"branch_id": branch_id})
    if not branch.is_active:
        raise ValidationError(f"Branch {branch.code} is not active", {"branch_id": branch_id})
    return branch


def resolve_branch_id(user: User, requested=None, *, allow_all: bool = False) -> int | None:
    """
    Work out which branch an operation acts on.

    - manager/agent: always their own branch; naming another one is a
      BranchAccessError.
    - director: must name a branch. With allow_all=True (read-only
      listings) an omitted branch means "all branches" and None is returned.
    """
    requested_id = _coerce_branch_id(requested)

    if user.role == ROLE_DIRECTOR:
        if requested_id is None:
            if allow_all:
                return None
            raise ValidationError("branch_id is required for directors")
        require_branch(requested_id)
        return requested_id

    if user.branch_id is None:
        raise BranchAccessError("User is not assigned to a branch", {"user_id": user.id})

    if requested_id is not None and requested_id != user.branch_id:
        raise BranchAccessError(
            "Access denied to another branch",
            {"branch_id": requested_id},
        )
    return user.branch_id


def visible_branch_id(user: User) -> int | None:
    """Branch filter for rows loaded by id: None (no filter) for directors."""
    if user.role == ROLE_DIRECTOR:
        return None
    return user.branch_id
