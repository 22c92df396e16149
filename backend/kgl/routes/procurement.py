# Overview: Flask API routes for procurement orders (stock-in).

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_DIRECTOR, ROLE_MANAGER
from ..services import procurement_service
from ..services.tenant_service import resolve_branch_id, visible_branch_id
from ..validation import json_body, clamp_pagination


procurement_bp = Blueprint("procurement", __name__, url_prefix="/api/procurement")


@procurement_bp.get("")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def list_orders_route():
    """
    Query parameters:
    - branch_id: directors only (omit for all branches)
    - status: pending | received | cancelled
    - limit / offset: pagination (default 100 / 0)
    """
    branch_id = resolve_branch_id(g.current_user, request.args.get("branch_id"), allow_all=True)
    limit, offset = clamp_pagination(request.args.get("limit"), request.args.get("offset"))

    orders, total = procurement_service.list_orders(
        branch_id=branch_id,
        status=request.args.get("status"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [o.to_dict(include_lines=False) for o in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@procurement_bp.post("")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def record_procurement_route():
    """
    Record a procurement order.

    Request body:
    {
        "branch_id": 1,                 // directors only
        "supplier_id": 3,               // or dealer_name (+ dealer_phone for a new dealer)
        "dealer_name": "Kasese Farmers",
        "dealer_phone": "+256700000000",
        "status": "pending",            // pending | received | completed
        "expected_date": "2026-11-01",
        "notes": "...",
        "lines": [
            {"produce_name": "Maize", "quantity": 20, "unit": "ton",
             "unit_cost": 1200, "category": "grains", "sale_price": 1500}
        ]
    }
    """
    data = json_body()
    branch_id = resolve_branch_id(g.current_user, data.get("branch_id"))

    order = procurement_service.record_procurement(
        branch_id=branch_id,
        user_id=g.current_user.id,
        lines=data.get("lines"),
        supplier_id=data.get("supplier_id"),
        dealer_name=data.get("dealer_name"),
        dealer_phone=data.get("dealer_phone"),
        dealer_email=data.get("dealer_email"),
        status=data.get("status"),
        order_date=data.get("order_date"),
        expected_date=data.get("expected_date"),
        notes=data.get("notes"),
    )
    return jsonify(order.to_dict()), 201


@procurement_bp.get("/<int:order_id>")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def get_order_route(order_id: int):
    order = procurement_service.get_order(order_id, branch_id=visible_branch_id(g.current_user))
    return jsonify(order.to_dict())


@procurement_bp.post("/<int:order_id>/receive")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def receive_order_route(order_id: int):
    """Receive a pending order; every line's stock is increased once."""
    order = procurement_service.receive_order(
        order_id,
        user_id=g.current_user.id,
        branch_id=visible_branch_id(g.current_user),
    )
    return jsonify(order.to_dict())


@procurement_bp.post("/<int:order_id>/cancel")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def cancel_order_route(order_id: int):
    data = json_body()
    order = procurement_service.cancel_order(
        order_id,
        user_id=g.current_user.id,
        reason=data.get("reason"),
        branch_id=visible_branch_id(g.current_user),
    )
    return jsonify(order.to_dict())
