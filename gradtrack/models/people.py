"""
GradTrack
Directory models — students and staff.

Models:
    - Student: postgraduate student record (enrolment date, programme scope)
    - StaffMember: staff member referenced by override audit fields

Both tables are owned by the student-information system; the milestone
engine only reads them for display names and the enrolment reference date.
"""

from datetime import datetime, timezone

from gradtrack.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Student(db.Model):
    """Postgraduate student as seen by the milestone engine."""

    __tablename__ = "students"

    id = db.Column(db.String(20), primary_key=True, comment="Student number, e.g. PG2024001")
    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name = db.Column(db.String(100), nullable=False, default="")
    email = db.Column(db.String(200), nullable=True)
    program_id = db.Column(db.String(20), nullable=True, index=True)
    department_id = db.Column(db.String(20), nullable=True, index=True)
    enrolled_at = db.Column(db.Date, nullable=True, comment="Reference date for template default_due_days")

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    @property
    def display_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.id

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "email": self.email,
            "program_id": self.program_id,
            "department_id": self.department_id,
            "enrolled_at": self.enrolled_at.isoformat() if self.enrolled_at else None,
        }

    def __repr__(self):
        return f"<Student {self.id}>"


class StaffMember(db.Model):
    """Graduate-school staff member (CGS admin, staff, supervisor, examiner)."""

    __tablename__ = "staff_members"

    id = db.Column(db.String(20), primary_key=True)
    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name = db.Column(db.String(100), nullable=False, default="")
    email = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    @property
    def display_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.id

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "email": self.email,
        }

    def __repr__(self):
        return f"<StaffMember {self.id}>"
