from __future__ import annotations

from ..extensions import db
from kgl import derived
from kgl.derived import as_float
from kgl.time_utils import to_utc_z

PRODUCE_CATEGORIES = ("fruits", "vegetables", "grains", "dairy", "meat", "other")
STOCK_UNITS = ("kg", "ton", "bag", "crate", "pieces", "boxes", "bunch", "liter")


class Produce(db.Model):
    """
    Stock-keeping unit scoped to a branch.

    STOCK INVARIANTS:
    - current_stock is never negative in committed state (CHECK constraint
      plus the conditional UPDATE in stock_service.adjust_stock).
    - current_stock is written ONLY by stock_service.adjust_stock.
    - status is derived from (current_stock, minimum_stock) by recompute();
      'discontinued' is administrative and survives recomputation.
    """
    __tablename__ = "produce"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_produce_stock_non_negative"),
        db.Index("ix_produce_branch_name", "branch_id", "name"),
        db.Index("ix_produce_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(16), nullable=False, default="other")

    current_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    unit = db.Column(db.String(16), nullable=False, default="kg")

    cost_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    minimum_price = db.Column(db.Numeric(14, 2), nullable=True)

    minimum_stock = db.Column(db.Numeric(12, 3), nullable=False, default=10)
    maximum_stock = db.Column(db.Numeric(12, 3), nullable=True)

    # Supplier contact snapshot as captured at creation
    supplier_name = db.Column(db.String(100), nullable=True)
    supplier_phone = db.Column(db.String(32), nullable=True)
    supplier_email = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=derived.STOCK_OUT, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    last_restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("produce", lazy=True))

    def __repr__(self) -> str:
        return f"<Produce id={self.id} name={self.name!r} stock={self.current_stock} branch_id={self.branch_id}>"

    def recompute(self) -> None:
        """Re-derive status from stock and threshold."""
        if self.status == derived.STOCK_DISCONTINUED:
            return
        self.status = derived.derive_stock_status(
            self.current_stock if self.current_stock is not None else 0,
            self.minimum_stock if self.minimum_stock is not None else 0,
        )

    @property
    def is_discontinued(self) -> bool:
        return self.status == derived.STOCK_DISCONTINUED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "name": self.name,
            "category": self.category,
            "current_stock": as_float(self.current_stock),
            "unit": self.unit,
            "cost_price": as_float(self.cost_price),
            "sale_price": as_float(self.sale_price),
            "minimum_price": as_float(self.minimum_price),
            "minimum_stock": as_float(self.minimum_stock),
            "maximum_stock": as_float(self.maximum_stock),
            "supplier": {
                "name": self.supplier_name,
                "phone": self.supplier_phone,
                "email": self.supplier_email,
            },
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "last_restocked_at": to_utc_z(self.last_restocked_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Supplier / dealer that procurement orders are placed with."""
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True, index=True)
    contact_person = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    specialization = db.Column(db.String(100), nullable=True)
    rating = db.Column(db.Numeric(3, 1), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "specialization": self.specialization,
            "rating": as_float(self.rating),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
