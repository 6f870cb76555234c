"""
Milestone Override Store Service.

Business context:
    Templates describe the standard programme timeline; overrides exist
    because individual students routinely need extensions. An override
    replaces the nominal deadline (and optionally the reminder lead time)
    of one template for one student.

    Invariant: at most one override per (student, template). The database
    unique constraint ``uq_milestone_override_student_template`` is the
    authoritative guard; ``upsert_student_deadline`` finds-or-creates in one
    transaction and falls back to updating the winner's row when a concurrent
    insert trips the constraint.

    Reminder lead precedence is explicit in ``effective_alert_lead_days``:
    override value → template value → DEFAULT_ALERT_LEAD_DAYS.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from gradtrack.core.exceptions import NotFoundError, StorageError, ValidationError
from gradtrack.models import db
from gradtrack.models.milestone import DEFAULT_ALERT_LEAD_DAYS, MilestoneOverride, MilestoneTemplate
from gradtrack.models.people import StaffMember, Student
from gradtrack.services import template_service
from gradtrack.utils.helpers import db_commit_or_raise, parse_datetime_input, parse_lead_days

logger = logging.getLogger(__name__)


# ── Public service functions ──────────────────────────────────────────────────


def effective_alert_lead_days(override_lead_days: int | None, template: MilestoneTemplate | None) -> int:
    """Resolve the reminder lead time for a (possibly absent) override.

    Args:
        override_lead_days: Lead days set on the override, or None.
        template: Owning template, or None.

    Returns:
        The override's value if set, else the template's, else 7.
    """
    if override_lead_days is not None:
        return override_lead_days
    if template is not None and template.alert_lead_days is not None:
        return template.alert_lead_days
    return DEFAULT_ALERT_LEAD_DAYS


def upsert_student_deadline(
    milestone_name: str,
    student_id: str,
    deadline_date,
    reason: str | None = None,
    updated_by: str | None = None,
    alert_lead_days=None,
) -> MilestoneOverride:
    """Create or update the override for (student, template named milestone_name).

    Validation happens before any lookup or write, so a rejected call leaves
    the store untouched.

    Args:
        milestone_name: Name of an active template.
        student_id: Student the override applies to.
        deadline_date: New deadline (datetime, date or ISO string). Required.
        reason: Free-text justification.
        updated_by: Staff id for the audit trail.
        alert_lead_days: Optional non-negative int; inherits from the
                         template when omitted.

    Returns:
        The single MilestoneOverride row for the pair.

    Raises:
        ValidationError: Missing/invalid deadline, student or lead days.
        NotFoundError: No active template named ``milestone_name``.
        StorageError: Commit failed.
    """
    deadline, lead_days = _validate_override_input(
        student_id=student_id,
        deadline_date=deadline_date,
        alert_lead_days=alert_lead_days,
    )

    template = template_service.find_template_by_name(milestone_name)
    if template is None:
        raise NotFoundError("Milestone template", milestone_name)
    if db.session.get(Student, student_id) is None:
        raise NotFoundError("Student", student_id)
    if updated_by and db.session.get(StaffMember, updated_by) is None:
        raise ValidationError(
            f"Unknown staff member {updated_by!r}",
            details={"updated_by": "Must reference an existing staff member."},
        )

    stored_lead = effective_alert_lead_days(lead_days, template)
    values = {
        "deadline_date": deadline,
        "reason": reason,
        "updated_by": updated_by,
        "alert_lead_days": stored_lead,
    }

    override, created = _find_or_create_locked(student_id, template.id, values)
    if not created:
        for key, value in values.items():
            setattr(override, key, value)
    db_commit_or_raise("override upsert")

    logger.info(
        "Milestone override %s",
        "created" if created else "updated",
        extra={
            "student_id": student_id,
            "template_id": template.id,
            "override_id": override.id,
            "updated_by": updated_by,
        },
    )
    return override


def get_override(override_id: int) -> MilestoneOverride:
    """Return an override by id.

    Raises:
        NotFoundError: No row with that id.
    """
    override = db.session.get(MilestoneOverride, override_id)
    if override is None:
        raise NotFoundError("MilestoneOverride", override_id)
    return override


def update_override(override_id: int, data: dict, updated_by: str | None = None) -> MilestoneOverride:
    """Partially update an existing override by id.

    Accepts ``deadline_date``, ``reason`` and ``alert_lead_days``. An explicit
    ``alert_lead_days: null`` re-inherits the template value.

    Raises:
        NotFoundError: No row with that id.
        ValidationError: Invalid field values.
        StorageError: Commit failed.
    """
    override = get_override(override_id)
    errors: dict[str, str] = {}
    changes: dict = {}

    if "deadline_date" in data:
        try:
            deadline = parse_datetime_input(data["deadline_date"])
        except ValueError as exc:
            errors["deadline_date"] = str(exc)
        else:
            if deadline is None:
                errors["deadline_date"] = "deadline_date is required."
            else:
                changes["deadline_date"] = deadline

    if "alert_lead_days" in data:
        try:
            lead_days = parse_lead_days(data["alert_lead_days"])
        except ValueError as exc:
            errors["alert_lead_days"] = f"alert_lead_days {exc}."
        else:
            changes["alert_lead_days"] = effective_alert_lead_days(lead_days, override.template)

    if "reason" in data:
        changes["reason"] = data["reason"]

    if errors:
        raise ValidationError("Invalid milestone override", details=errors)

    for key, value in changes.items():
        setattr(override, key, value)
    if updated_by is not None:
        override.updated_by = updated_by
    db_commit_or_raise("override update")

    logger.info(
        "Milestone override updated",
        extra={"override_id": override.id, "fields": sorted(changes)},
    )
    return override


def list_overrides(student_id: str | None = None) -> list[dict]:
    """Return overrides enriched for staff audit tables, soonest deadline first.

    Args:
        student_id: Optional; restrict to one student.

    Returns:
        List of dicts: override fields plus ``template`` {id, name, type,
        is_active}, ``student`` {id, display_name, email} and ``staff``
        {id, display_name} (None when the staff member is unknown).
    """
    stmt = select(MilestoneOverride).options(
        joinedload(MilestoneOverride.template),
        joinedload(MilestoneOverride.student),
        joinedload(MilestoneOverride.staff),
    )
    if student_id:
        stmt = stmt.where(MilestoneOverride.student_id == student_id)
    stmt = stmt.order_by(MilestoneOverride.deadline_date.asc(), MilestoneOverride.id.asc())
    overrides = db.session.execute(stmt).unique().scalars().all()
    return [_serialize_enriched(o) for o in overrides]


def list_overrides_for_student(student_id: str) -> list[MilestoneOverride]:
    """Raw override rows for one student (used by the feed derivation)."""
    stmt = select(MilestoneOverride).where(MilestoneOverride.student_id == student_id)
    return list(db.session.execute(stmt).scalars().all())


def known_staff_id(candidate: str | None) -> str | None:
    """Return ``candidate`` if it names a staff member, else None.

    Lets callers attribute a write to the authenticated identity without
    failing when that identity is not in the staff directory.
    """
    if candidate and db.session.get(StaffMember, candidate) is not None:
        return candidate
    return None


# ── Private helpers ───────────────────────────────────────────────────────────


def _validate_override_input(student_id, deadline_date, alert_lead_days):
    """Return (deadline, lead_days) or raise ValidationError with field details."""
    errors: dict[str, str] = {}

    if not student_id:
        errors["student_id"] = "student_id is required."

    deadline = None
    try:
        deadline = parse_datetime_input(deadline_date)
    except ValueError as exc:
        errors["deadline_date"] = str(exc)
    else:
        if deadline is None:
            errors["deadline_date"] = "deadline_date is required."

    lead_days = None
    try:
        lead_days = parse_lead_days(alert_lead_days)
    except ValueError as exc:
        errors["alert_lead_days"] = f"alert_lead_days {exc}."

    if errors:
        first_field = next(iter(errors))
        raise ValidationError(errors[first_field], details=errors)
    return deadline, lead_days


def _locked_lookup(student_id: str, template_id: int) -> MilestoneOverride | None:
    """SELECT ... FOR UPDATE the override for (student, template), if any."""
    stmt = (
        select(MilestoneOverride)
        .where(
            MilestoneOverride.student_id == student_id,
            MilestoneOverride.template_id == template_id,
        )
        .with_for_update()
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _find_or_create_locked(student_id: str, template_id: int, values: dict) -> tuple[MilestoneOverride, bool]:
    """Atomically find the (student, template) row or insert it.

    The existing row is selected FOR UPDATE (no-op on SQLite). A missing row
    is inserted inside a SAVEPOINT; if a concurrent transaction inserted the
    same key first, the unique constraint fires, the savepoint is rolled back
    and the winner's row is returned for update instead.

    Returns:
        (override, created)
    """
    existing = _locked_lookup(student_id, template_id)
    if existing is not None:
        return existing, False

    override = MilestoneOverride(student_id=student_id, template_id=template_id, **values)
    try:
        with db.session.begin_nested():
            db.session.add(override)
    except IntegrityError as exc:
        winner = _locked_lookup(student_id, template_id)
        if winner is None:
            db.session.rollback()
            logger.warning("Override insert rejected by constraint: %s", exc.orig)
            raise StorageError("Constraint violation during override upsert") from exc
        logger.info(
            "Concurrent override insert detected; updating existing row",
            extra={"student_id": student_id, "template_id": template_id},
        )
        return winner, False
    return override, True


def _serialize_enriched(override: MilestoneOverride) -> dict:
    data = override.to_dict()
    template = override.template
    data["template"] = {
        "id": template.id,
        "name": template.name,
        "type": template.type,
        "is_active": template.is_active,
    } if template else None
    data["template_active"] = bool(template and template.is_active)
    student = override.student
    data["student"] = {
        "id": student.id,
        "display_name": student.display_name,
        "email": student.email,
    } if student else {"id": override.student_id, "display_name": override.student_id, "email": None}
    staff = override.staff
    data["staff"] = {
        "id": staff.id,
        "display_name": staff.display_name,
    } if staff else None
    return data
