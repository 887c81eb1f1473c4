# Overview: Human-readable document numbers for sales and receipts.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from .errors import ValidationError


def next_document_number(
    *,
    branch_id: int,
    sequence_key: str,
    prefix: str,
    pad: int = 4,
) -> str:
    """
    Allocate the next number for a (branch, key) sequence inside the caller's unit.

    Uses an UPDATE ... SET next_number = next_number + 1 so concurrent callers
    serialize on the sequence row. The caller owns the commit; a rollback
    returns the number to the pool.
    """
    if not branch_id:
        raise ValidationError("branch_id is required")
    if not sequence_key:
        raise ValidationError("sequence_key is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.branch_id == branch_id,
            DocumentSequence.sequence_key == sequence_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(branch_id, sequence_key) - 1
    else:
        seq = DocumentSequence(branch_id=branch_id, sequence_key=sequence_key, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another writer created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(branch_id, sequence_key) - 1

    return f"{prefix}-{next_num:0{pad}d}"


def _current_number(branch_id: int, sequence_key: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(branch_id=branch_id, sequence_key=sequence_key)
        .scalar()
    )


def next_sale_number(branch_id: int, now: datetime) -> str:
    """POS-YYYYMM-NNNN, restarting every month."""
    period = now.strftime("%Y%m")
    return next_document_number(
        branch_id=branch_id,
        sequence_key=f"SALE:{period}",
        prefix=f"POS-{period}",
        pad=4,
    )


def next_receipt_number(branch_id: int, now: datetime) -> str:
    """RCP-YYYYMMDD-NNN, restarting every day."""
    period = now.strftime("%Y%m%d")
    return next_document_number(
        branch_id=branch_id,
        sequence_key=f"RECEIPT:{period}",
        prefix=f"RCP-{period}",
        pad=3,
    )
