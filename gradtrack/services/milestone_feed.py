"""
Student Milestone Feed — status derivation.

Business context:
    A student's progress is a mostly-linear walk through the template
    catalogue. The student is "working on" the first template whose
    completion test fails; everything before it is completed. Activity on a
    later stage (a document awaiting review) is still surfaced as
    in-progress instead of silently pending.

Completion test (per template, against documents whose type matches the
template's document_type, falling back to its name):
    - "Final Thesis": at least one document with status Completed.
      Approved alone is not enough; the thesis is only done once examined.
    - any other template: at least one Approved or Completed document.

Status:
    completed    — before the next-active template (so its completion test
                   passes); a satisfied template after a gap stays open
    in-progress  — first incomplete template (next-active), or has a Pending
                   document, or Final Thesis with an Approved document
    pending      — everything else

``derive_milestone_feed`` is pure (no DB access) so the rules can be tested
with plain objects; ``get_student_milestone_feed`` loads the inputs.

Deadlines and reminders are computed on read, never pushed:
    effective_deadline = override.deadline_date
                         else enrolled_at + template.default_due_days
                         else None
    reminder_due_at    = effective_deadline - effective_alert_lead_days
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone

from gradtrack.core.exceptions import ValidationError
from gradtrack.models import db
from gradtrack.models.document import STATUS_APPROVED, STATUS_COMPLETED, STATUS_PENDING
from gradtrack.models.people import Student
from gradtrack.services import override_service, template_service
from gradtrack.services.document_reader import list_documents_for_student
from gradtrack.services.responses import (
    DerivedMilestoneStatus,
    DueReminder,
    StudentFeedResponse,
    StudentReminderResponse,
)

logger = logging.getLogger(__name__)

STATUS_COMPLETED_STAGE = "completed"
STATUS_IN_PROGRESS_STAGE = "in-progress"
STATUS_PENDING_STAGE = "pending"

_COMPLETING_STATUSES = frozenset({STATUS_APPROVED, STATUS_COMPLETED})

DEADLINE_FROM_OVERRIDE = "override"
DEADLINE_FROM_TEMPLATE = "template"
DEADLINE_NONE = "none"


# ── Pure derivation ───────────────────────────────────────────────────────────


def is_template_complete(template, documents) -> bool:
    """Apply the completion test for one template to its matched documents."""
    if template.is_final_thesis:
        return any(doc.status == STATUS_COMPLETED for doc in documents)
    return any(doc.status in _COMPLETING_STATUSES for doc in documents)


def group_documents(documents) -> dict[str, list]:
    """Group documents by ledger key, each group most-recent first."""
    groups: dict[str, list] = defaultdict(list)
    for doc in documents:
        groups[doc.ledger_key].append(doc)
    for records in groups.values():
        records.sort(key=_recency_key, reverse=True)
    return groups


def find_next_active_index(templates, groups: dict[str, list]) -> int:
    """Index of the first template failing its completion test.

    Returns ``len(templates)`` when every template is complete.
    """
    for index, template in enumerate(templates):
        if not is_template_complete(template, groups.get(template.ledger_key, [])):
            return index
    return len(templates)


def derive_milestone_feed(templates, documents, overrides, enrolled_at=None) -> list[DerivedMilestoneStatus]:
    """Combine catalogue, ledger and overrides into the ordered feed.

    Args:
        templates: Active templates. Re-sorted by (sort_order, id) here so the
                   output order never depends on the caller.
        documents: The student's document records (any order).
        overrides: The student's overrides; those pointing at templates not
                   in ``templates`` (e.g. soft-deleted) are ignored.
        enrolled_at: Student enrolment date, reference for default_due_days.

    Returns:
        One DerivedMilestoneStatus per template, in catalogue order.
    """
    ordered = sorted(templates, key=lambda t: (t.sort_order, t.id))
    groups = group_documents(documents)
    overrides_by_template = {o.template_id: o for o in overrides}
    next_active = find_next_active_index(ordered, groups)

    feed = []
    for index, template in enumerate(ordered):
        records = groups.get(template.ledger_key, [])
        override = overrides_by_template.get(template.id)

        has_pending = any(doc.status == STATUS_PENDING for doc in records)
        approved_final = template.is_final_thesis and any(doc.status == STATUS_APPROVED for doc in records)

        if index < next_active:
            status = STATUS_COMPLETED_STAGE
        elif index == next_active or has_pending or approved_final:
            status = STATUS_IN_PROGRESS_STAGE
        else:
            status = STATUS_PENDING_STAGE

        latest = records[0] if records else None
        deadline, source = _effective_deadline(template, override, enrolled_at)
        lead_days = override_service.effective_alert_lead_days(
            override.alert_lead_days if override else None, template,
        )

        feed.append(DerivedMilestoneStatus(
            id=template.id,
            name=template.name,
            description=template.description,
            type=template.type,
            sort_order=template.sort_order,
            default_due_days=template.default_due_days,
            document_type=template.ledger_key,
            status=status,
            document_status=latest.status if latest else None,
            last_submission=latest.uploaded_at if latest else None,
            custom_deadline=override.to_deadline_dict() if override else None,
            effective_deadline=deadline,
            deadline_source=source,
            effective_alert_lead_days=lead_days,
            reminder_due_at=deadline - timedelta(days=lead_days) if deadline else None,
        ))
    return feed


def select_due_reminders(feed: list[DerivedMilestoneStatus], as_of: datetime) -> list[DueReminder]:
    """Milestones not yet completed whose reminder window has opened by ``as_of``."""
    due = []
    for item in feed:
        if item.status == STATUS_COMPLETED_STAGE or item.reminder_due_at is None:
            continue
        if item.reminder_due_at <= as_of:
            due.append(DueReminder(milestone=item, is_overdue=item.effective_deadline < as_of))
    return due


# ── Loading entry points ──────────────────────────────────────────────────────


def get_student_milestone_feed(student_id: str) -> StudentFeedResponse:
    """Build the milestone feed for one student.

    Templates are narrowed to the student's programme/department scope when
    the student record carries one (global templates always apply).

    Raises:
        ValidationError: ``student_id`` is empty.
    """
    if not student_id:
        raise ValidationError("Student ID is required", details={"student_id": "required"})

    student = db.session.get(Student, student_id)
    templates = template_service.list_templates(
        program_id=student.program_id if student else None,
        department_id=student.department_id if student else None,
    )
    documents = list_documents_for_student(student_id)
    overrides = override_service.list_overrides_for_student(student_id)

    feed = derive_milestone_feed(
        templates,
        documents,
        overrides,
        enrolled_at=student.enrolled_at if student else None,
    )
    logger.debug(
        "Milestone feed derived",
        extra={"student_id": student_id, "templates": len(templates), "documents": len(documents)},
    )
    return StudentFeedResponse(student_id=student_id, milestones=feed)


def list_due_reminders(student_id: str, as_of=None) -> StudentReminderResponse:
    """Reminders due for a student at ``as_of`` (default: now, UTC).

    Raises:
        ValidationError: ``student_id`` is empty.
    """
    if as_of is None:
        as_of = datetime.now(timezone.utc).replace(tzinfo=None)
    response = get_student_milestone_feed(student_id)
    return StudentReminderResponse(
        student_id=student_id,
        as_of=as_of,
        reminders=select_due_reminders(response.milestones, as_of),
    )


# ── Private helpers ───────────────────────────────────────────────────────────


def _effective_deadline(template, override, enrolled_at):
    if override is not None and override.deadline_date is not None:
        return override.deadline_date, DEADLINE_FROM_OVERRIDE
    if enrolled_at is not None and template.default_due_days is not None:
        start = enrolled_at if isinstance(enrolled_at, datetime) else datetime.combine(enrolled_at, time.min)
        return start + timedelta(days=template.default_due_days), DEADLINE_FROM_TEMPLATE
    return None, DEADLINE_NONE


def _recency_key(doc):
    uploaded = doc.uploaded_at
    if uploaded is None:
        uploaded = datetime.min
    elif isinstance(uploaded, datetime) and uploaded.tzinfo is not None:
        uploaded = uploaded.astimezone(timezone.utc).replace(tzinfo=None)
    elif not isinstance(uploaded, datetime) and isinstance(uploaded, date):
        uploaded = datetime.combine(uploaded, time.min)
    return uploaded, doc.id or 0
