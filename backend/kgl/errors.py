# Overview: Error taxonomy shared by services and the HTTP layer.

"""
KGL error taxonomy.

Services raise these; routes never translate them by hand. The app-level
error handler (see kgl/__init__.py) maps each one to its HTTP status and
a body of the form:

    {"error": "<message>", "kind": "<kind>", "details": {...}}
"""

from __future__ import annotations

from decimal import Decimal


class KGLError(Exception):
    """Base class for every business failure surfaced to callers."""

    kind = "error"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "details": self.details,
        }


class NotFoundError(KGLError):
    """Referenced produce, order, sale or credit sale does not exist."""

    kind = "not_found"
    http_status = 404


class ValidationError(KGLError, ValueError):
    """400-level input problem. Raised before storage is touched."""

    kind = "validation_error"
    http_status = 400


class InsufficientStockError(KGLError):
    """Stock check failed. Always carries the quantity currently available."""

    kind = "insufficient_stock"
    http_status = 400

    def __init__(self, available, requested=None, produce_name: str | None = None):
        self.available = Decimal(available)
        self.requested = Decimal(requested) if requested is not None else None
        label = f" for {produce_name}" if produce_name else ""
        details = {"available": float(self.available)}
        if self.requested is not None:
            details["requested"] = float(self.requested)
        if produce_name:
            details["produce"] = produce_name
        super().__init__(f"Insufficient stock{label}. Available: {self.available.normalize():f}", details)


class InvalidStateError(KGLError):
    """Operation not valid for the entity's current lifecycle state."""

    kind = "invalid_state"
    http_status = 409


class BranchAccessError(KGLError):
    """Acting user tried to operate on a branch they are not assigned to."""

    kind = "forbidden"
    http_status = 403


class StorageError(KGLError):
    """Unexpected database failure, wrapped at the service boundary."""

    kind = "storage_error"
    http_status = 500
