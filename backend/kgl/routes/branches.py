# Overview: Flask API routes for branch management.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_DIRECTOR
from ..services import branch_service
from ..validation import json_body


branches_bp = Blueprint("branches", __name__, url_prefix="/api/branches")


@branches_bp.get("")
@require_auth
def list_branches_route():
    """
    List branches. Directors see every branch; managers and agents only
    their own.
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    branches = branch_service.list_branches(include_inactive=include_inactive)

    user = g.current_user
    if user.role != ROLE_DIRECTOR:
        branches = [b for b in branches if b.id == user.branch_id]

    return jsonify({"items": [b.to_dict() for b in branches], "count": len(branches)})


@branches_bp.post("")
@require_auth
@require_role(ROLE_DIRECTOR)
def create_branch_route():
    """
    Create a branch.

    Request body:
    {
        "name": "Maganjo",       // required
        "location": "Kampala",   // required
        "code": "MAG"            // required, unique, <= 10 chars
    }
    """
    data = json_body()
    branch = branch_service.create_branch(
        name=data.get("name"),
        location=data.get("location"),
        code=data.get("code"),
    )
    return jsonify(branch.to_dict()), 201
