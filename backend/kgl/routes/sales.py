# Overview: Flask API routes for cash sales; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_MANAGER, ROLE_AGENT
from ..services import sales_service
from ..services.tenant_service import resolve_branch_id, visible_branch_id
from ..validation import json_body, clamp_pagination, parse_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query parameters:
    - branch_id: directors only (omit for all branches)
    - status: completed | cancelled | refunded
    - agent_id, produce_id: optional filters
    - limit / offset: pagination (default 100 / 0)
    """
    branch_id = resolve_branch_id(g.current_user, request.args.get("branch_id"), allow_all=True)
    limit, offset = clamp_pagination(request.args.get("limit"), request.args.get("offset"))

    sales, total = sales_service.list_sales(
        branch_id=branch_id,
        status=request.args.get("status"),
        agent_id=parse_int(request.args.get("agent_id"), "agent_id"),
        produce_id=parse_int(request.args.get("produce_id"), "produce_id"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [s.to_dict() for s in sales],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@sales_bp.post("")
@require_auth
@require_role(ROLE_MANAGER, ROLE_AGENT)
def record_sale_route():
    """
    Record a cash sale. Stock is decremented in the same transaction.

    Request body:
    {
        "produce_id": 1,               // or produce_name
        "quantity": 10,
        "unit_price": 1500,            // defaults to the produce sale price
        "discount": 10,                // percent
        "buyer": {"name": "...", "phone": "...", "type": "walk-in"},
        "payment": {"method": "cash", "amount_paid": 13500},
        "notes": "..."
    }

    total_price and payment status are always derived server-side.
    """
    data = json_body()
    branch_id = resolve_branch_id(g.current_user, data.get("branch_id"))

    sale = sales_service.record_sale(
        branch_id=branch_id,
        agent_id=g.current_user.id,
        quantity=data.get("quantity"),
        produce_id=data.get("produce_id"),
        produce_name=data.get("produce_name"),
        unit=data.get("unit"),
        unit_price=data.get("unit_price"),
        discount=data.get("discount"),
        buyer=data.get("buyer"),
        payment=data.get("payment"),
        notes=data.get("notes"),
        sale_date=data.get("sale_date"),
    )
    return jsonify(sale.to_dict()), 201


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    sale = sales_service.get_sale(sale_id, branch_id=visible_branch_id(g.current_user))
    return jsonify(sale.to_dict())


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
@require_role(ROLE_MANAGER)
def cancel_sale_route(sale_id: int):
    data = json_body()
    sale = sales_service.cancel_sale(
        sale_id,
        user_id=g.current_user.id,
        reason=data.get("reason"),
        branch_id=visible_branch_id(g.current_user),
    )
    return jsonify(sale.to_dict())


@sales_bp.post("/<int:sale_id>/refund")
@require_auth
@require_role(ROLE_MANAGER)
def refund_sale_route(sale_id: int):
    data = json_body()
    sale = sales_service.refund_sale(
        sale_id,
        user_id=g.current_user.id,
        reason=data.get("reason"),
        branch_id=visible_branch_id(g.current_user),
    )
    return jsonify(sale.to_dict())
