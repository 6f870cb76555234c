"""
GradTrack
Document ledger model.

One row per document submission event. Rows are written by the upload
service; the milestone engine reads them to judge milestone completion.
"""

from datetime import datetime, timezone

from gradtrack.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STATUS_PENDING = "Pending"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUS_COMPLETED = "Completed"
STATUS_RESUBMIT = "Resubmit"

DOCUMENT_STATUSES = {
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_REJECTED,
    STATUS_COMPLETED,
    STATUS_RESUBMIT,
}


def _utcnow():
    return datetime.now(timezone.utc)


class DocumentRecord(db.Model):
    """A single document submission for a student."""

    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(
        db.String(20), db.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    document_name = db.Column(db.String(255), nullable=False)
    document_type = db.Column(db.String(255), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('Pending','Approved','Rejected','Completed','Resubmit')",
            name="ck_documents_status",
        ),
        db.Index("ix_documents_student_type", "student_id", "document_type"),
    )

    @property
    def ledger_key(self):
        """Grouping key used when matching documents to milestones."""
        return self.document_type or self.document_name

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "document_name": self.document_name,
            "document_type": self.document_type,
            "status": self.status,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    def __repr__(self):
        return f"<DocumentRecord {self.id}: {self.document_type} {self.status}>"
