"""
Document ledger reader.

The upload service owns the ``documents`` table; the milestone engine only
reads it. Keeping the read behind one function gives derivation a single
seam to the external ledger.
"""

from sqlalchemy import select

from gradtrack.models import db
from gradtrack.models.document import DocumentRecord


def list_documents_for_student(student_id: str) -> list[DocumentRecord]:
    """Return every document record for a student, most recent first."""
    stmt = (
        select(DocumentRecord)
        .where(DocumentRecord.student_id == student_id)
        .order_by(DocumentRecord.uploaded_at.desc(), DocumentRecord.id.desc())
    )
    return list(db.session.execute(stmt).scalars().all())
