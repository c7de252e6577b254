from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-kind, per-period document sequences.

    WHY: Prevent race conditions when generating order numbers. The counter
    lives in the database so every worker process shares it.

    period_key is the calendar day (YYYYMMDD) for date-based numbering.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period_key", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period_key = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "period_key": self.period_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
