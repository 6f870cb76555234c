"""
GradTrack
Milestone domain models.

Models:
    - MilestoneTemplate: canonical, ordered definition of a milestone stage
    - MilestoneOverride: per-student deadline / reminder deviation from a template

Templates are never hard-deleted: ``is_active=False`` hides them from listing
and derivation while keeping historical overrides referentially valid.
"""

from datetime import datetime, timezone

from gradtrack.models import db


# ── Constants ────────────────────────────────────────────────────────────────

DEFAULT_ALERT_LEAD_DAYS = 7
DEFAULT_TEMPLATE_TYPE = "Document"
FINAL_THESIS_DOCUMENT_TYPE = "Final Thesis"


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ── MilestoneTemplate ────────────────────────────────────────────────────────


class MilestoneTemplate(db.Model):
    """One stage in the postgraduate progression (e.g. Research Proposal)."""

    __tablename__ = "milestone_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(50), nullable=False, default=DEFAULT_TEMPLATE_TYPE)
    document_type = db.Column(db.String(255), nullable=True, comment="Ledger key; falls back to name")
    sort_order = db.Column(db.Integer, nullable=False, default=1, index=True)
    default_due_days = db.Column(db.Integer, nullable=True, comment="Days from enrolment")
    alert_lead_days = db.Column(
        db.Integer, nullable=True, default=DEFAULT_ALERT_LEAD_DAYS,
        comment="Days before deadline a reminder is due",
    )
    program_id = db.Column(db.String(20), nullable=True, index=True)
    department_id = db.Column(db.String(20), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by = db.Column(db.String(20), nullable=True)
    updated_by = db.Column(db.String(20), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    overrides = db.relationship("MilestoneOverride", back_populates="template", lazy="dynamic")

    @property
    def ledger_key(self):
        """Document type this template is satisfied by."""
        return self.document_type or self.name

    @property
    def is_final_thesis(self):
        return self.ledger_key == FINAL_THESIS_DOCUMENT_TYPE

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "document_type": self.ledger_key,
            "sort_order": self.sort_order,
            "default_due_days": self.default_due_days,
            "alert_lead_days": self.alert_lead_days,
            "program_id": self.program_id,
            "department_id": self.department_id,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<MilestoneTemplate {self.id}: {self.name} #{self.sort_order}>"


# ── MilestoneOverride ────────────────────────────────────────────────────────


class MilestoneOverride(db.Model):
    """
    Per-student deadline override for a milestone template.

    At most one row per (student, template) — enforced by the unique
    constraint below; the override service upserts against it.
    """

    __tablename__ = "milestone_overrides"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(
        db.String(20), db.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    template_id = db.Column(
        db.Integer, db.ForeignKey("milestone_templates.id"), nullable=False, index=True,
    )
    deadline_date = db.Column(db.DateTime, nullable=False)
    reason = db.Column(db.Text, nullable=True)
    updated_by = db.Column(
        db.String(20), db.ForeignKey("staff_members.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    alert_lead_days = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    template = db.relationship("MilestoneTemplate", back_populates="overrides")
    student = db.relationship("Student", lazy="joined")
    staff = db.relationship("StaffMember", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("student_id", "template_id", name="uq_milestone_override_student_template"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "template_id": self.template_id,
            "deadline_date": _iso(self.deadline_date),
            "reason": self.reason,
            "updated_by": self.updated_by,
            "alert_lead_days": self.alert_lead_days,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_deadline_dict(self):
        """Compact shape embedded in the student milestone feed."""
        return {
            "deadline_date": _iso(self.deadline_date),
            "reason": self.reason,
            "updated_by": self.updated_by,
            "alert_lead_days": self.alert_lead_days,
        }

    def __repr__(self):
        return f"<MilestoneOverride {self.id}: {self.student_id}/{self.template_id}>"
