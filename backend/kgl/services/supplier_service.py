# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers (dealers) are shared across branches. Every procurement order
references exactly one supplier; recording an order by dealer name finds
the supplier case-insensitively or creates it on the fly.
"""

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Supplier
from kgl import derived

SUPPLIER_STATUSES = ("active", "inactive")


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found", {"supplier_id": supplier_id})
    return supplier


def find_by_name(name: str) -> Supplier | None:
    return (
        db.session.query(Supplier)
        .filter(func.lower(Supplier.name) == name.strip().lower())
        .first()
    )


def _validate(name, phone, rating, status) -> None:
    if not name or not name.strip():
        raise ValidationError("Supplier name is required")
    if not phone or not str(phone).strip():
        raise ValidationError("Supplier phone is required")
    if rating is not None:
        try:
            value = derived.to_decimal(rating, field="rating")
        except ValueError as e:
            raise ValidationError(str(e))
        if value < 0 or value > 5:
            raise ValidationError("rating must be between 0 and 5")
    if status not in SUPPLIER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SUPPLIER_STATUSES)}")


def build_supplier(
    *,
    name: str,
    phone: str,
    contact_person: str | None = None,
    email: str | None = None,
    address: str | None = None,
    specialization: str | None = None,
    rating=None,
    status: str = "active",
) -> Supplier:
    """Validate and add a supplier to the session without committing."""
    _validate(name, phone, rating, status)
    if find_by_name(name):
        raise ValidationError(f"Supplier '{name.strip()}' already exists")

    supplier = Supplier(
        name=name.strip(),
        contact_person=contact_person,
        phone=str(phone).strip(),
        email=email.strip().lower() if email else None,
        address=address,
        specialization=specialization,
        rating=derived.to_decimal(rating) if rating is not None else 0,
        status=status,
    )
    db.session.add(supplier)
    db.session.flush()
    return supplier


def create_supplier(**kwargs) -> Supplier:
    supplier = build_supplier(**kwargs)
    db.session.commit()
    return supplier


def find_or_create(*, name: str, phone: str | None = None, email: str | None = None) -> Supplier:
    """
    Resolve a dealer by name inside the caller's transaction.

    New suppliers created this way need a contact phone.
    """
    if not name or not name.strip():
        raise ValidationError("Dealer name is required")
    supplier = find_by_name(name)
    if supplier is not None:
        return supplier
    if not phone:
        raise ValidationError(
            f"Supplier '{name.strip()}' does not exist; dealer_phone is required to create it"
        )
    return build_supplier(name=name, phone=phone, email=email)


def list_suppliers(*, include_inactive: bool = False, search: str | None = None) -> list[Supplier]:
    query = db.session.query(Supplier)
    if not include_inactive:
        query = query.filter(Supplier.status == "active")
    if search:
        query = query.filter(Supplier.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Supplier.name.asc()).all()
