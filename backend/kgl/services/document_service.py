# Overview: Atomic per-branch document numbering.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence

PROCUREMENT_SEQUENCE = "PROCUREMENT"


def ensure_sequence(branch_id: int, document_type: str) -> DocumentSequence:
    """Create the sequence row for a branch/type if missing (flush only)."""
    seq = db.session.query(DocumentSequence).filter_by(
        branch_id=branch_id, document_type=document_type
    ).first()
    if seq is None:
        seq = DocumentSequence(branch_id=branch_id, document_type=document_type, next_number=1)
        db.session.add(seq)
        db.session.flush()
    return seq


def next_document_number(
    *,
    branch_id: int,
    document_type: str,
    prefix: str,
    year: int | None = None,
    pad: int = 3,
) -> str:
    """
    Allocate the next document number for a branch/type inside the
    caller's transaction, e.g. PO-2026-001.

    The increment is a single UPDATE so two writers never receive the
    same number. Sequence rows are created with the branch.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.branch_id == branch_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        ensure_sequence(branch_id, document_type)
        db.session.execute(stmt)

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(branch_id=branch_id, document_type=document_type)
        .scalar()
    )
    number = current - 1

    parts = [prefix]
    if year:
        parts.append(str(year))
    parts.append(str(number).zfill(pad))
    return "-".join(parts)
