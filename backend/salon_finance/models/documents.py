from __future__ import annotations

from ..extensions import db
from salon_finance.time_utils import to_utc_z

class DocumentSequence(db.Model):
    """
    Atomic per-branch document sequences.

    WHY: Prevent race conditions when generating sale and receipt numbers.
    sequence_key carries the period, e.g. "SALE:202610" or "RECEIPT:20261019",
    so numbering restarts each month/day.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "sequence_key", name="uq_doc_sequences_branch_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    sequence_key = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "sequence_key": self.sequence_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
