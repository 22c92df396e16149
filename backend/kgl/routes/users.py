# Overview: Flask API routes for user administration.

"""
User Routes

- Directors list every user and may create users of any role.
- Managers list the users of their branch and may create agents there.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..errors import BranchAccessError
from ..models.auth import ROLE_DIRECTOR, ROLE_MANAGER, ROLE_AGENT
from ..services import auth_service
from ..services.tenant_service import resolve_branch_id
from ..validation import json_body


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def list_users_route():
    branch_id = resolve_branch_id(g.current_user, request.args.get("branch_id"), allow_all=True)
    users = auth_service.list_users(branch_id=branch_id)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.post("")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def create_user_route():
    """
    Create a user.

    Request body:
    {
        "username": "agent1",
        "password": "Password123",
        "full_name": "Sales Agent",
        "role": "agent",
        "branch_id": 1,           // required for managers and agents
        "email": "...",           // optional
        "phone": "..."            // optional
    }
    """
    data = json_body()
    actor = g.current_user
    role = (data.get("role") or "").strip().lower()

    branch_id = data.get("branch_id")
    if actor.role == ROLE_MANAGER:
        if role != ROLE_AGENT:
            raise BranchAccessError("Managers can only create sales agents", {"role": role})
        branch_id = resolve_branch_id(actor, branch_id)
    elif role != ROLE_DIRECTOR:
        branch_id = resolve_branch_id(actor, branch_id)

    user = auth_service.create_user(
        username=data.get("username"),
        password=data.get("password"),
        full_name=data.get("full_name"),
        role=role,
        branch_id=branch_id,
        email=data.get("email"),
        phone=data.get("phone"),
    )
    return jsonify(user.to_dict()), 201
