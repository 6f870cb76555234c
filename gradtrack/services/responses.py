"""
Typed response models for the milestone endpoints.

Each caller-facing shape is its own dataclass tagged with ``kind`` instead of
one dict whose fields appear or disappear depending on the caller's role:

    StudentFeedResponse     — per-student milestone feed (students, supervisors, staff)
    StudentReminderResponse — reminders currently due for one student
    StaffOverrideResponse   — enriched override audit listing (staff only)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class DerivedMilestoneStatus:
    """Computed verdict for one (student, template) pair. Never persisted."""

    id: int
    name: str
    description: str | None
    type: str
    sort_order: int
    default_due_days: int | None
    document_type: str
    status: str
    document_status: str | None = None
    last_submission: datetime | None = None
    custom_deadline: dict | None = None
    effective_deadline: datetime | None = None
    deadline_source: str = "none"
    effective_alert_lead_days: int = 7
    reminder_due_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "sort_order": self.sort_order,
            "default_due_days": self.default_due_days,
            "document_type": self.document_type,
            "status": self.status,
            "document_status": self.document_status,
            "last_submission": _iso(self.last_submission),
            "custom_deadline": self.custom_deadline,
            "effective_deadline": _iso(self.effective_deadline),
            "deadline_source": self.deadline_source,
            "effective_alert_lead_days": self.effective_alert_lead_days,
            "reminder_due_at": _iso(self.reminder_due_at),
        }


@dataclass
class DueReminder:
    """A milestone whose reminder window has opened."""

    milestone: DerivedMilestoneStatus
    is_overdue: bool

    def to_dict(self) -> dict:
        data = self.milestone.to_dict()
        data["is_overdue"] = self.is_overdue
        return data


@dataclass
class StudentFeedResponse:
    student_id: str
    milestones: list[DerivedMilestoneStatus] = field(default_factory=list)
    kind: str = "student_feed"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "student_id": self.student_id,
            "milestones": [m.to_dict() for m in self.milestones],
        }


@dataclass
class StudentReminderResponse:
    student_id: str
    as_of: datetime
    reminders: list[DueReminder] = field(default_factory=list)
    kind: str = "student_reminders"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "student_id": self.student_id,
            "as_of": _iso(self.as_of),
            "reminders": [r.to_dict() for r in self.reminders],
        }


@dataclass
class StaffOverrideResponse:
    overrides: list[dict] = field(default_factory=list)
    student_id: str | None = None
    kind: str = "override_list"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "student_id": self.student_id,
            "total": len(self.overrides),
            "overrides": self.overrides,
        }
