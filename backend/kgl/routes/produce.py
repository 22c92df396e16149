# Overview: Flask API routes for produce records; parses input and returns JSON responses.

"""
Produce Routes

- Any authenticated user can list and view produce of their branch.
- Managers and directors create, edit, discontinue, reinstate and delete.

Stock levels are never edited here; they move only through procurement,
sales and credit sales.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_DIRECTOR, ROLE_MANAGER
from ..services import produce_service
from ..services.tenant_service import resolve_branch_id, visible_branch_id
from ..validation import json_body


produce_bp = Blueprint("produce", __name__, url_prefix="/api/produce")


@produce_bp.get("")
@require_auth
def list_produce_route():
    """
    Query parameters:
    - branch_id: required context for directors (omit for all branches)
    - category: fruits | vegetables | grains | dairy | meat | other
    - status: available | low-stock | out-of-stock | discontinued
    - search: substring of the produce name
    """
    branch_id = resolve_branch_id(g.current_user, request.args.get("branch_id"), allow_all=True)
    items = produce_service.list_produce(
        branch_id=branch_id,
        category=request.args.get("category"),
        status=request.args.get("status"),
        search=request.args.get("search"),
    )
    return jsonify({"items": [p.to_dict() for p in items], "count": len(items)})


@produce_bp.post("")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def create_produce_route():
    """
    Request body:
    {
        "branch_id": 1,            // directors only
        "name": "Maize",           // required
        "category": "grains",      // required
        "unit": "ton",
        "cost_price": 1200,        // required
        "sale_price": 1500,        // required
        "minimum_price": 1400,
        "minimum_stock": 10,
        "maximum_stock": 500,
        "current_stock": 50,       // opening stock
        "supplier_name": "...", "supplier_phone": "...", "supplier_email": "..."
    }
    """
    data = json_body()
    branch_id = resolve_branch_id(g.current_user, data.pop("branch_id", None))
    produce = produce_service.create_produce(
        branch_id=branch_id,
        created_by_user_id=g.current_user.id,
        data=data,
    )
    return jsonify(produce.to_dict()), 201


@produce_bp.get("/<int:produce_id>")
@require_auth
def get_produce_route(produce_id: int):
    produce = produce_service.get_produce(produce_id, branch_id=visible_branch_id(g.current_user))
    return jsonify(produce.to_dict())


@produce_bp.patch("/<int:produce_id>")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def update_produce_route(produce_id: int):
    data = json_body()
    produce = produce_service.update_produce(
        produce_id,
        branch_id=visible_branch_id(g.current_user),
        data=data,
    )
    return jsonify(produce.to_dict())


@produce_bp.delete("/<int:produce_id>")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def delete_produce_route(produce_id: int):
    produce_service.delete_produce(produce_id, branch_id=visible_branch_id(g.current_user))
    return jsonify({"message": "Produce deleted", "id": produce_id}), 200


@produce_bp.post("/<int:produce_id>/discontinue")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def discontinue_produce_route(produce_id: int):
    produce = produce_service.discontinue_produce(produce_id, branch_id=visible_branch_id(g.current_user))
    return jsonify(produce.to_dict())


@produce_bp.post("/<int:produce_id>/reinstate")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def reinstate_produce_route(produce_id: int):
    produce = produce_service.reinstate_produce(produce_id, branch_id=visible_branch_id(g.current_user))
    return jsonify(produce.to_dict())
