"""
Tests for the milestone template catalogue service.

Covers:
  - list_templates: ordering by (sort_order, id), inactive rows hidden
  - list_templates: programme / department scope keeps global templates
  - create_template: defaults (sort_order append, document_type, lead days)
  - create_template: validation (missing name, negative numbers, duplicates)
  - update_template / delete_template: partial update, soft delete, reactivation
  - find_template_by_name / find_template_by_id: active rows only
  - seed_default_templates: standard set, idempotent
"""

import pytest

from gradtrack.core.exceptions import NotFoundError, ValidationError
from gradtrack.models import db
from gradtrack.models.milestone import MilestoneTemplate
from gradtrack.services import template_service


class TestListTemplates:
    def test_ordered_by_sort_order_then_id(self, make_template):
        third = make_template("Thesis", 3)
        first_b = make_template("Ethics", 1)
        first_a = make_template("Proposal", 1)

        result = template_service.list_templates()

        # Equal sort_order ties break on id (insertion order)
        assert [t.id for t in result] == [first_b.id, first_a.id, third.id]

    def test_inactive_templates_excluded(self, make_template):
        make_template("Proposal", 1)
        make_template("Retired", 2, is_active=False)

        names = [t.name for t in template_service.list_templates()]
        assert names == ["Proposal"]

    def test_program_scope_keeps_global_templates(self, make_template):
        make_template("Global", 1)
        make_template("CS only", 2, program_id="PHD-CS")
        make_template("Bio only", 3, program_id="MSC-BIO")

        names = [t.name for t in template_service.list_templates(program_id="PHD-CS")]
        assert names == ["Global", "CS only"]

    def test_program_and_department_filters_combine(self, make_template):
        make_template("Global", 1)
        make_template("CS dept", 2, department_id="CS")
        make_template("CS prog, Bio dept", 3, program_id="PHD-CS", department_id="BIO")

        names = [
            t.name for t in template_service.list_templates(program_id="PHD-CS", department_id="CS")
        ]
        assert names == ["Global", "CS dept"]


class TestCreateTemplate:
    def test_defaults_applied(self, make_template):
        make_template("Proposal", 4)

        template = template_service.create_template({"name": "Literature Review"}, created_by="STF01")

        assert template.id is not None
        assert template.sort_order == 5
        assert template.document_type == "Literature Review"
        assert template.type == "Document"
        assert template.alert_lead_days == 7
        assert template.is_active is True
        assert template.created_by == "STF01"

    def test_first_template_gets_sort_order_one(self):
        template = template_service.create_template({"name": "Proposal"})
        assert template.sort_order == 1

    def test_explicit_fields_kept(self):
        template = template_service.create_template({
            "name": "Viva",
            "type": "Meeting",
            "document_type": "Viva Report",
            "sort_order": 9,
            "default_due_days": 1200,
            "alert_lead_days": 21,
            "program_id": "PHD-CS",
        })

        assert template.type == "Meeting"
        assert template.document_type == "Viva Report"
        assert template.sort_order == 9
        assert template.default_due_days == 1200
        assert template.alert_lead_days == 21
        assert template.program_id == "PHD-CS"

    def test_missing_name_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            template_service.create_template({"description": "no name"})
        assert "name" in exc_info.value.details

    def test_negative_due_days_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            template_service.create_template({"name": "Proposal", "default_due_days": -1})
        assert "default_due_days" in exc_info.value.details
        assert db.session.query(MilestoneTemplate).count() == 0

    def test_duplicate_name_raises_even_if_inactive(self, make_template):
        make_template("Proposal", 1, is_active=False)

        with pytest.raises(ValidationError, match="already exists"):
            template_service.create_template({"name": "Proposal"})


class TestGetUpdateDelete:
    def test_get_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            template_service.get_template(999)

    def test_update_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            template_service.update_template(999, {"description": "new"})

    def test_delete_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            template_service.delete_template(999)

    def test_update_is_partial(self, make_template):
        template = make_template("Proposal", 1, description="old", default_due_days=180)

        updated = template_service.update_template(
            template.id, {"description": "new"}, updated_by="STF01",
        )

        assert updated.description == "new"
        assert updated.default_due_days == 180
        assert updated.updated_by == "STF01"

    def test_update_rename_to_taken_name_raises(self, make_template):
        make_template("Proposal", 1)
        review = make_template("Review", 2)

        with pytest.raises(ValidationError):
            template_service.update_template(review.id, {"name": "Proposal"})

    def test_update_can_clear_lead_days(self, make_template):
        template = make_template("Proposal", 1, alert_lead_days=10)

        updated = template_service.update_template(template.id, {"alert_lead_days": None})
        assert updated.alert_lead_days is None

    def test_delete_is_soft(self, make_template):
        template = make_template("Proposal", 1)

        template_service.delete_template(template.id)

        row = db.session.get(MilestoneTemplate, template.id)
        assert row is not None
        assert row.is_active is False
        assert template_service.list_templates() == []

    def test_reactivate_via_update(self, make_template):
        template = make_template("Proposal", 1, is_active=False)

        template_service.update_template(template.id, {"is_active": True})

        assert [t.id for t in template_service.list_templates()] == [template.id]

    def test_non_boolean_is_active_rejected(self, make_template):
        template = make_template("Proposal", 1)
        with pytest.raises(ValidationError):
            template_service.update_template(template.id, {"is_active": "yes"})


class TestLookups:
    def test_find_by_name_active_only(self, make_template):
        make_template("Proposal", 1)
        make_template("Retired", 2, is_active=False)

        assert template_service.find_template_by_name("Proposal").name == "Proposal"
        assert template_service.find_template_by_name("Retired") is None
        assert template_service.find_template_by_name("Nonexistent") is None
        assert template_service.find_template_by_name("") is None

    def test_find_by_id_active_only(self, make_template):
        active = make_template("Proposal", 1)
        retired = make_template("Retired", 2, is_active=False)

        assert template_service.find_template_by_id(active.id).id == active.id
        assert template_service.find_template_by_id(retired.id) is None


class TestSeedDefaults:
    def test_seeds_standard_set_in_order(self):
        created = template_service.seed_default_templates()

        templates = template_service.list_templates()
        assert created == len(template_service.DEFAULT_MILESTONE_TEMPLATES)
        assert [t.name for t in templates][0] == "Research Proposal"
        assert templates[-1].name == "Final Thesis"
        assert templates[-1].is_final_thesis is True
        assert all(t.alert_lead_days == 7 for t in templates)

    def test_idempotent(self):
        template_service.seed_default_templates()
        assert template_service.seed_default_templates() == 0
        assert db.session.query(MilestoneTemplate).count() == len(
            template_service.DEFAULT_MILESTONE_TEMPLATES
        )
