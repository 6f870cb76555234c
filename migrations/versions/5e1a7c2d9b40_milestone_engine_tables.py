"""milestone_engine_tables

Creates the milestone engine schema:
  - students             — student directory (id, scope, enrolment date)
  - staff_members        — staff directory used for override audit
  - milestone_templates  — ordered milestone catalogue (soft-deletable)
  - milestone_overrides  — per-student deadline overrides, one per (student, template)
  - documents            — document ledger read by the status derivation

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 5e1a7c2d9b40
Revises:
Create Date: 2026-10-19 09:12:41.518230
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5e1a7c2d9b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Student ───────────────────────────────────────────────────────────
    if "students" not in existing:
        op.create_table(
            "students",
            sa.Column("id", sa.String(length=20), nullable=False, comment="Student number, e.g. PG2024001"),
            sa.Column("first_name", sa.String(length=100), nullable=False, server_default=""),
            sa.Column("last_name", sa.String(length=100), nullable=False, server_default=""),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("program_id", sa.String(length=20), nullable=True),
            sa.Column("department_id", sa.String(length=20), nullable=True),
            sa.Column(
                "enrolled_at", sa.Date(), nullable=True,
                comment="Reference date for template default_due_days",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_students_program_id", "students", ["program_id"])
        op.create_index("ix_students_department_id", "students", ["department_id"])

    # ── StaffMember ───────────────────────────────────────────────────────
    if "staff_members" not in existing:
        op.create_table(
            "staff_members",
            sa.Column("id", sa.String(length=20), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False, server_default=""),
            sa.Column("last_name", sa.String(length=100), nullable=False, server_default=""),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    # ── MilestoneTemplate ─────────────────────────────────────────────────
    if "milestone_templates" not in existing:
        op.create_table(
            "milestone_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=50), nullable=False, server_default="Document"),
            sa.Column(
                "document_type", sa.String(length=255), nullable=True,
                comment="Ledger key; falls back to name",
            ),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("default_due_days", sa.Integer(), nullable=True, comment="Days from enrolment"),
            sa.Column(
                "alert_lead_days", sa.Integer(), nullable=True, server_default="7",
                comment="Days before deadline a reminder is due",
            ),
            sa.Column("program_id", sa.String(length=20), nullable=True),
            sa.Column("department_id", sa.String(length=20), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(length=20), nullable=True),
            sa.Column("updated_by", sa.String(length=20), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )
        op.create_index("ix_milestone_templates_sort_order", "milestone_templates", ["sort_order"])
        op.create_index("ix_milestone_templates_program_id", "milestone_templates", ["program_id"])
        op.create_index("ix_milestone_templates_department_id", "milestone_templates", ["department_id"])
        op.create_index("ix_milestone_templates_is_active", "milestone_templates", ["is_active"])

    # ── MilestoneOverride ─────────────────────────────────────────────────
    if "milestone_overrides" not in existing:
        op.create_table(
            "milestone_overrides",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("student_id", sa.String(length=20), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=False),
            sa.Column("deadline_date", sa.DateTime(), nullable=False),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("updated_by", sa.String(length=20), nullable=True),
            sa.Column("alert_lead_days", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_id"], ["milestone_templates.id"]),
            sa.ForeignKeyConstraint(["updated_by"], ["staff_members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("student_id", "template_id", name="uq_milestone_override_student_template"),
        )
        op.create_index("ix_milestone_overrides_student_id", "milestone_overrides", ["student_id"])
        op.create_index("ix_milestone_overrides_template_id", "milestone_overrides", ["template_id"])
        op.create_index("ix_milestone_overrides_updated_by", "milestone_overrides", ["updated_by"])

    # ── DocumentRecord ────────────────────────────────────────────────────
    if "documents" not in existing:
        op.create_table(
            "documents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("student_id", sa.String(length=20), nullable=False),
            sa.Column("document_name", sa.String(length=255), nullable=False),
            sa.Column("document_type", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Pending"),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "status IN ('Pending','Approved','Rejected','Completed','Resubmit')",
                name="ck_documents_status",
            ),
        )
        op.create_index("ix_documents_student_id", "documents", ["student_id"])
        op.create_index("ix_documents_document_type", "documents", ["document_type"])
        op.create_index("ix_documents_student_type", "documents", ["student_id", "document_type"])


def downgrade():
    op.drop_table("documents")
    op.drop_table("milestone_overrides")
    op.drop_table("milestone_templates")
    op.drop_table("staff_members")
    op.drop_table("students")
