# Overview: Flask API routes for supplier operations.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_DIRECTOR, ROLE_MANAGER
from ..services import supplier_service
from ..validation import json_body


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    """
    Query parameters:
    - include_inactive: Include inactive suppliers (default: false)
    - search: Substring of the supplier name
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    suppliers = supplier_service.list_suppliers(
        include_inactive=include_inactive,
        search=request.args.get("search"),
    )
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)})


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    return jsonify(supplier_service.get_supplier(supplier_id).to_dict())


@suppliers_bp.post("")
@require_auth
@require_role(ROLE_DIRECTOR, ROLE_MANAGER)
def create_supplier_route():
    data = json_body()
    supplier = supplier_service.create_supplier(
        name=data.get("name"),
        phone=data.get("phone"),
        contact_person=data.get("contact_person"),
        email=data.get("email"),
        address=data.get("address"),
        specialization=data.get("specialization"),
        rating=data.get("rating"),
        status=data.get("status") or "active",
    )
    return jsonify(supplier.to_dict()), 201
