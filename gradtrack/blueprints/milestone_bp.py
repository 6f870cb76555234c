"""Milestone engine blueprint.

REST API for the milestone template catalogue, per-student deadline
overrides and the derived student milestone feed.

Endpoint groups:
  Template catalogue      GET/POST        /api/v1/milestones
                          GET/PUT/DELETE  /api/v1/milestones/<id>
  Deadline overrides      GET/POST        /api/v1/milestones/overrides
                          PUT             /api/v1/milestones/overrides/<id>
  Student feed            GET             /api/v1/milestones/student
                          GET             /api/v1/milestones/student/reminders

Caller identity (g.current_user_role / g.current_student_id) is set by the
auth middleware. Students always see their own feed; every other role names
the student with ?student_id=. Service layer owns all business logic and
commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from gradtrack.auth import FEED_ROLES, READER_ROLES, ROLE_STUDENT, STAFF_ROLES, require_role
from gradtrack.core.exceptions import NotFoundError, StorageError, ValidationError
from gradtrack.services import milestone_feed, override_service, template_service
from gradtrack.services.responses import StaffOverrideResponse
from gradtrack.utils.errors import E, api_error
from gradtrack.utils.helpers import parse_datetime_input

logger = logging.getLogger(__name__)

milestone_bp = Blueprint("milestones", __name__, url_prefix="/api/v1/milestones")


# ── Caller helpers ────────────────────────────────────────────────────────────


def _caller_id() -> str | None:
    return getattr(g, "current_user_id", None)


def _feed_student_id() -> str | None:
    """Students read their own feed; other roles pass ?student_id=."""
    if getattr(g, "current_user_role", None) == ROLE_STUDENT:
        own = getattr(g, "current_student_id", None)
        requested = request.args.get("student_id")
        if requested and own and requested != own:
            logger.warning(
                "Student attempted to read another student's feed",
                extra={"student_id": own, "role": ROLE_STUDENT},
            )
        return own
    return (request.args.get("student_id") or "").strip() or None


# ── Error handlers ────────────────────────────────────────────────────────────


@milestone_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@milestone_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    code = E.VALIDATION_REQUIRED if "required" in str(error).lower() else E.VALIDATION_INVALID
    return api_error(code, str(error), details=error.details)


@milestone_bp.errorhandler(StorageError)
def _handle_storage(error: StorageError):
    logger.error("Storage failure in milestones endpoint=%s: %s", request.endpoint, error)
    return api_error(E.DATABASE, "Database error")


@milestone_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    logger.exception("Unexpected error in milestones endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ═════════════════════════════════════════════════════════════════════════
# Template catalogue  (/api/v1/milestones)
# ═════════════════════════════════════════════════════════════════════════


@milestone_bp.route("", methods=["GET"])
@milestone_bp.route("/", methods=["GET"])
@require_role(*READER_ROLES)
def list_templates():
    """List active templates in catalogue order.

    Query params: program_id?, department_id?
    Returns: { "templates": list, "total": int }
    """
    templates = template_service.list_templates(
        program_id=request.args.get("program_id") or None,
        department_id=request.args.get("department_id") or None,
    )
    items = [t.to_dict() for t in templates]
    return jsonify({"templates": items, "total": len(items)}), 200


@milestone_bp.route("", methods=["POST"])
@milestone_bp.route("/", methods=["POST"])
@require_role(*STAFF_ROLES)
def create_template():
    """Create a template.

    Body: { name, description?, type?, document_type?, sort_order?,
            default_due_days?, alert_lead_days?, program_id?, department_id? }
    Returns: created template dict (201).
    """
    data = request.get_json(silent=True) or {}
    template = template_service.create_template(data, created_by=_caller_id())
    return jsonify(template.to_dict()), 201


@milestone_bp.route("/<int:template_id>", methods=["GET"])
@require_role(*READER_ROLES)
def get_template(template_id: int):
    template = template_service.get_template(template_id)
    return jsonify(template.to_dict()), 200


@milestone_bp.route("/<int:template_id>", methods=["PUT"])
@require_role(*STAFF_ROLES)
def update_template(template_id: int):
    """Partially update a template. ``is_active: true`` re-activates it."""
    data = request.get_json(silent=True) or {}
    template = template_service.update_template(template_id, data, updated_by=_caller_id())
    return jsonify(template.to_dict()), 200


@milestone_bp.route("/<int:template_id>", methods=["DELETE"])
@require_role(*STAFF_ROLES)
def delete_template(template_id: int):
    """Soft-delete a template. Its overrides are kept."""
    template = template_service.delete_template(template_id, updated_by=_caller_id())
    return jsonify({"message": "Milestone template deactivated", "template": template.to_dict()}), 200


# ═════════════════════════════════════════════════════════════════════════
# Deadline overrides  (/api/v1/milestones/overrides)
# ═════════════════════════════════════════════════════════════════════════


@milestone_bp.route("/overrides", methods=["GET"])
@require_role(*STAFF_ROLES)
def list_overrides():
    """Enriched override audit listing, soonest deadline first.

    Query params: student_id?
    """
    student_id = request.args.get("student_id") or None
    response = StaffOverrideResponse(
        overrides=override_service.list_overrides(student_id=student_id),
        student_id=student_id,
    )
    return jsonify(response.to_dict()), 200


@milestone_bp.route("/overrides", methods=["POST"])
@require_role(*STAFF_ROLES)
def upsert_override():
    """Create or update the override for (student, milestone).

    Body: { milestone_name, student_id, deadline_date, reason?,
            alert_lead_days?, updated_by? }
    Returns: override dict (200). Repeating the call updates the same row.
    """
    data = request.get_json(silent=True) or {}
    updated_by = data.get("updated_by") or override_service.known_staff_id(_caller_id())
    override = override_service.upsert_student_deadline(
        milestone_name=data.get("milestone_name"),
        student_id=data.get("student_id"),
        deadline_date=data.get("deadline_date"),
        reason=data.get("reason"),
        updated_by=updated_by,
        alert_lead_days=data.get("alert_lead_days"),
    )
    return jsonify(override.to_dict()), 200


@milestone_bp.route("/overrides/<int:override_id>", methods=["PUT"])
@require_role(*STAFF_ROLES)
def update_override(override_id: int):
    """Partially update an override (deadline_date, reason, alert_lead_days)."""
    data = request.get_json(silent=True) or {}
    override = override_service.update_override(
        override_id, data, updated_by=override_service.known_staff_id(_caller_id()),
    )
    return jsonify(override.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Student feed  (/api/v1/milestones/student)
# ═════════════════════════════════════════════════════════════════════════


@milestone_bp.route("/student", methods=["GET"])
@require_role(*FEED_ROLES)
def student_feed():
    """Derived milestone feed for one student.

    Query params: student_id (ignored for STU callers)
    Returns: StudentFeedResponse
    """
    response = milestone_feed.get_student_milestone_feed(_feed_student_id())
    return jsonify(response.to_dict()), 200


@milestone_bp.route("/student/reminders", methods=["GET"])
@require_role(*FEED_ROLES)
def student_reminders():
    """Reminders due for one student.

    Query params: student_id (ignored for STU callers), as_of? (ISO datetime)
    Returns: StudentReminderResponse
    """
    as_of_raw = request.args.get("as_of")
    try:
        as_of = parse_datetime_input(as_of_raw)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"as_of": str(exc)}) from exc
    response = milestone_feed.list_due_reminders(_feed_student_id(), as_of=as_of)
    return jsonify(response.to_dict()), 200
