# Overview: Flask API routes for credit sales and their payment trail.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_DIRECTOR, ROLE_MANAGER, ROLE_AGENT
from ..services import credit_service
from ..services.tenant_service import resolve_branch_id, visible_branch_id
from ..validation import json_body, clamp_pagination
from kgl.derived import as_float


credit_sales_bp = Blueprint("credit_sales", __name__, url_prefix="/api/credit-sales")


@credit_sales_bp.get("")
@require_auth
def list_credit_sales_route():
    """
    Query parameters:
    - branch_id: directors only (omit for all branches)
    - status: active | partial | paid | overdue | defaulted | cancelled
    - national_id: buyer national ID
    - limit / offset: pagination (default 100 / 0)
    """
    branch_id = resolve_branch_id(g.current_user, request.args.get("branch_id"), allow_all=True)
    limit, offset = clamp_pagination(request.args.get("limit"), request.args.get("offset"))

    items, total = credit_service.list_credit_sales(
        branch_id=branch_id,
        status=request.args.get("status"),
        buyer_national_id=request.args.get("national_id"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [c.to_dict(include_payments=False) for c in items],
        "count": total,
        "limit": limit,
        "offset": offset,
        "outstanding_total": as_float(credit_service.outstanding_total(branch_id)),
    })


@credit_sales_bp.post("")
@require_auth
@require_role(ROLE_MANAGER, ROLE_AGENT)
def record_credit_sale_route():
    """
    Record a credit sale. Stock is decremented in the same transaction.

    Request body:
    {
        "produce_id": 1,               // or produce_name
        "quantity": 5,
        "unit_price": 1500,            // defaults to the produce sale price
        "buyer": {"name": "...", "national_id": "...", "phone": "...",
                  "email": "...", "address": "...", "location": "...",
                  "trust_score": 50},
        "credit_terms": {"due_date": "2026-12-01", "interest_rate": 0,
                         "grace_period_days": 0},
        "notes": "..."
    }
    """
    data = json_body()
    branch_id = resolve_branch_id(g.current_user, data.get("branch_id"))

    credit = credit_service.record_credit_sale(
        branch_id=branch_id,
        agent_id=g.current_user.id,
        quantity=data.get("quantity"),
        buyer=data.get("buyer"),
        credit_terms=data.get("credit_terms"),
        produce_id=data.get("produce_id"),
        produce_name=data.get("produce_name"),
        unit=data.get("unit"),
        unit_price=data.get("unit_price"),
        notes=data.get("notes"),
        sale_date=data.get("sale_date"),
    )
    return jsonify(credit.to_dict()), 201


@credit_sales_bp.get("/<int:credit_sale_id>")
@require_auth
def get_credit_sale_route(credit_sale_id: int):
    credit = credit_service.get_credit_sale(credit_sale_id, branch_id=visible_branch_id(g.current_user))
    return jsonify(credit.to_dict())


@credit_sales_bp.post("/<int:credit_sale_id>/payments")
@require_auth
@require_role(ROLE_MANAGER, ROLE_AGENT)
def record_payment_route(credit_sale_id: int):
    """
    Append a payment.

    Request body:
    {"amount": 2500, "method": "cash", "notes": "..."}
    """
    data = json_body()
    credit = credit_service.record_payment(
        credit_sale_id,
        amount=data.get("amount"),
        recorded_by=g.current_user.id,
        method=data.get("method"),
        notes=data.get("notes"),
        paid_at=data.get("paid_at"),
        branch_id=visible_branch_id(g.current_user),
    )
    return jsonify(credit.to_dict()), 201


@credit_sales_bp.post("/<int:credit_sale_id>/default")
@require_auth
@require_role(ROLE_MANAGER)
def mark_defaulted_route(credit_sale_id: int):
    data = json_body()
    credit = credit_service.mark_defaulted(
        credit_sale_id,
        user_id=g.current_user.id,
        reason=data.get("reason"),
        branch_id=visible_branch_id(g.current_user),
    )
    return jsonify(credit.to_dict())


@credit_sales_bp.post("/<int:credit_sale_id>/cancel")
@require_auth
@require_role(ROLE_MANAGER)
def cancel_credit_sale_route(credit_sale_id: int):
    data = json_body()
    credit = credit_service.cancel_credit_sale(
        credit_sale_id,
        user_id=g.current_user.id,
        reason=data.get("reason"),
        branch_id=visible_branch_id(g.current_user),
    )
    return jsonify(credit.to_dict())


@credit_sales_bp.post("/refresh-overdue")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def refresh_overdue_route():
    """Persist overdue status for past-due open credit sales."""
    data = json_body()
    branch_id = resolve_branch_id(
        g.current_user,
        data.get("branch_id", request.args.get("branch_id")),
        allow_all=True,
    )
    changed = credit_service.refresh_overdue(branch_id)
    return jsonify({"updated": changed, "branch_id": branch_id})
