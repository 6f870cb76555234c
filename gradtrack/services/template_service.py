"""
Milestone Template Catalogue Service.

Business context:
    Templates describe the standard postgraduate timeline: which milestones
    exist, in which order, which document type satisfies each one, and the
    default deadline/reminder timing. Every student sees the same catalogue,
    optionally narrowed to templates scoped to their programme or department.

    Ordering invariant: active templates are totally ordered by
    (sort_order, id). Soft-deleted templates (is_active=False) are excluded
    from listing, lookup and derivation but never removed, so existing
    overrides keep a valid template reference.
"""

import logging

from sqlalchemy import func, or_, select

from gradtrack.core.exceptions import NotFoundError, ValidationError
from gradtrack.models import db
from gradtrack.models.milestone import (
    DEFAULT_ALERT_LEAD_DAYS,
    DEFAULT_TEMPLATE_TYPE,
    MilestoneTemplate,
)
from gradtrack.utils.helpers import db_commit_or_raise, parse_lead_days

logger = logging.getLogger(__name__)

# ── Standard postgraduate milestone set ───────────────────────────────────────
# Document types match the upload service's document_type enumeration.

DEFAULT_MILESTONE_TEMPLATES: list[dict] = [
    {"name": "Research Proposal", "order": 1, "due_days": 180,
     "description": "Approved research proposal and supervisory plan."},
    {"name": "Literature Review", "order": 2, "due_days": 365,
     "description": "Critical review of the literature underpinning the research."},
    {"name": "Methodology", "order": 3, "due_days": 450,
     "description": "Research design, instruments and ethics clearance."},
    {"name": "Data Analysis", "order": 4, "due_days": 730,
     "description": "Analysis of collected data and preliminary findings."},
    {"name": "Progress Report", "order": 5, "due_days": 820,
     "description": "Formal progress report reviewed by the supervisory panel."},
    {"name": "Thesis Chapter", "order": 6, "due_days": 900,
     "description": "Draft thesis chapters submitted for supervisor feedback."},
    {"name": "Final Thesis", "order": 7, "due_days": 1095,
     "description": "Final thesis submitted for examination."},
]

_EDITABLE_FIELDS = (
    "name",
    "description",
    "type",
    "document_type",
    "sort_order",
    "default_due_days",
    "alert_lead_days",
    "program_id",
    "department_id",
    "is_active",
    "updated_by",
)
_INT_FIELDS = ("sort_order", "default_due_days", "alert_lead_days")
_NULLABLE_INT_FIELDS = ("default_due_days", "alert_lead_days")


# ── Public service functions ──────────────────────────────────────────────────


def list_templates(program_id: str | None = None, department_id: str | None = None) -> list[MilestoneTemplate]:
    """Return active templates ordered by (sort_order, id).

    A scope filter keeps templates scoped to that programme/department plus
    global templates (scope column NULL); global templates are always
    visible. Both filters combine with AND.

    Args:
        program_id: Optional programme scope.
        department_id: Optional department scope.

    Returns:
        List of MilestoneTemplate rows.
    """
    stmt = select(MilestoneTemplate).where(MilestoneTemplate.is_active.is_(True))
    if program_id:
        stmt = stmt.where(
            or_(MilestoneTemplate.program_id == program_id, MilestoneTemplate.program_id.is_(None))
        )
    if department_id:
        stmt = stmt.where(
            or_(MilestoneTemplate.department_id == department_id, MilestoneTemplate.department_id.is_(None))
        )
    stmt = stmt.order_by(MilestoneTemplate.sort_order, MilestoneTemplate.id)
    return list(db.session.execute(stmt).scalars().all())


def create_template(data: dict, created_by: str | None = None) -> MilestoneTemplate:
    """Create a template, appending it to the end of the catalogue by default.

    Args:
        data: Template fields. ``name`` is required; ``sort_order`` defaults
              to max(sort_order) + 1; ``document_type`` defaults to ``name``.
        created_by: Staff id recorded for audit.

    Returns:
        The persisted MilestoneTemplate.

    Raises:
        ValidationError: Missing name, malformed numbers, or duplicate name.
        StorageError: Commit failed.
    """
    fields = _clean_fields(data, creating=True)

    if fields.get("sort_order") is None:
        current_max = db.session.execute(select(func.max(MilestoneTemplate.sort_order))).scalar()
        fields["sort_order"] = (current_max or 0) + 1
    if not fields.get("document_type"):
        fields["document_type"] = fields["name"]
    fields.setdefault("type", DEFAULT_TEMPLATE_TYPE)
    if "alert_lead_days" not in fields:
        fields["alert_lead_days"] = DEFAULT_ALERT_LEAD_DAYS

    _assert_name_available(fields["name"])

    template = MilestoneTemplate(created_by=created_by, **fields)
    db.session.add(template)
    db_commit_or_raise("template create")

    logger.info(
        "Milestone template created",
        extra={"template_id": template.id, "sort_order": template.sort_order},
    )
    return template


def get_template(template_id: int) -> MilestoneTemplate:
    """Return a template by id regardless of is_active.

    Raises:
        NotFoundError: No row with that id.
    """
    template = db.session.get(MilestoneTemplate, template_id)
    if template is None:
        raise NotFoundError("MilestoneTemplate", template_id)
    return template


def update_template(template_id: int, data: dict, updated_by: str | None = None) -> MilestoneTemplate:
    """Partially update a template (active or inactive).

    Only keys present in ``data`` are touched. Setting ``is_active`` to true
    re-activates a soft-deleted template.

    Raises:
        NotFoundError: No row with that id.
        ValidationError: Malformed field values or duplicate name.
        StorageError: Commit failed.
    """
    template = get_template(template_id)
    fields = _clean_fields(data, creating=False)

    if "name" in fields and fields["name"] != template.name:
        _assert_name_available(fields["name"], exclude_id=template.id)

    for key, value in fields.items():
        setattr(template, key, value)
    if updated_by is not None:
        template.updated_by = updated_by
    db_commit_or_raise("template update")

    logger.info(
        "Milestone template updated",
        extra={"template_id": template.id, "fields": sorted(fields)},
    )
    return template


def delete_template(template_id: int, updated_by: str | None = None) -> MilestoneTemplate:
    """Soft-delete a template (is_active=False).

    Overrides referencing the template are left in place; derivation stops
    considering the template from now on.

    Raises:
        NotFoundError: No row with that id.
        StorageError: Commit failed.
    """
    template = get_template(template_id)
    template.is_active = False
    if updated_by is not None:
        template.updated_by = updated_by
    db_commit_or_raise("template delete")

    logger.info("Milestone template soft-deleted", extra={"template_id": template.id})
    return template


def find_template_by_name(name: str) -> MilestoneTemplate | None:
    """Exact-name lookup among active templates."""
    if not name:
        return None
    stmt = select(MilestoneTemplate).where(
        MilestoneTemplate.name == name,
        MilestoneTemplate.is_active.is_(True),
    )
    return db.session.execute(stmt).scalar_one_or_none()


def find_template_by_id(template_id: int) -> MilestoneTemplate | None:
    """Primary-key lookup among active templates."""
    stmt = select(MilestoneTemplate).where(
        MilestoneTemplate.id == template_id,
        MilestoneTemplate.is_active.is_(True),
    )
    return db.session.execute(stmt).scalar_one_or_none()


def seed_default_templates() -> int:
    """Insert the standard milestone set.

    Idempotent: names that already exist (active or not) are skipped.

    Returns:
        Number of templates actually created.
    """
    existing_names = set(db.session.execute(select(MilestoneTemplate.name)).scalars().all())

    new_templates = [
        MilestoneTemplate(
            name=item["name"],
            description=item["description"],
            type=DEFAULT_TEMPLATE_TYPE,
            document_type=item["name"],
            sort_order=item["order"],
            default_due_days=item["due_days"],
            alert_lead_days=DEFAULT_ALERT_LEAD_DAYS,
        )
        for item in DEFAULT_MILESTONE_TEMPLATES
        if item["name"] not in existing_names
    ]
    if new_templates:
        db.session.add_all(new_templates)
        db_commit_or_raise("template seed")

    count = len(new_templates)
    logger.info("Milestone template seed completed", extra={"created_count": count})
    return count


# ── Private helpers ───────────────────────────────────────────────────────────


def _clean_fields(data: dict, creating: bool) -> dict:
    """Validate and normalise editable template fields.

    Returns a dict holding only the editable keys present in ``data``.
    """
    errors: dict[str, str] = {}
    fields: dict = {}

    for key in _EDITABLE_FIELDS:
        if key in data:
            fields[key] = data[key]

    if creating or "name" in fields:
        name = (fields.get("name") or "").strip() if isinstance(fields.get("name"), str) else ""
        if not name:
            errors["name"] = "Name is required."
        elif len(name) > 255:
            errors["name"] = "Name must be at most 255 characters."
        fields["name"] = name

    if "type" in fields and not fields["type"]:
        fields["type"] = DEFAULT_TEMPLATE_TYPE

    for key in _INT_FIELDS:
        if key not in fields:
            continue
        if fields[key] is None:
            if key not in _NULLABLE_INT_FIELDS:
                fields.pop(key)
            continue
        try:
            fields[key] = parse_lead_days(fields[key])
        except ValueError as exc:
            errors[key] = f"{key} {exc}."

    if "is_active" in fields and not isinstance(fields["is_active"], bool):
        errors["is_active"] = "is_active must be a boolean."

    if errors:
        raise ValidationError("Invalid milestone template", details=errors)
    return fields


def _assert_name_available(name: str, exclude_id: int | None = None) -> None:
    """Raise ValidationError if another template already uses ``name``."""
    stmt = select(MilestoneTemplate.id).where(MilestoneTemplate.name == name)
    if exclude_id is not None:
        stmt = stmt.where(MilestoneTemplate.id != exclude_id)
    if db.session.execute(stmt).first() is not None:
        raise ValidationError(
            f"Milestone template {name!r} already exists",
            details={"name": "A template with this name already exists (possibly inactive)."},
        )
