"""initial billing and payroll schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-12 09:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "billing_frequency",
            sa.Enum("per_session", "weekly", "monthly", "bi_monthly", "annual", "one_time", name="billing_frequency"),
            nullable=False,
        ),
        sa.Column("default_customer_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("default_teacher_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_services_id", "services", ["id"], unique=False)
    op.create_index("ix_services_code", "services", ["code"], unique=True)

    op.create_table(
        "families",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="active"),
        sa.Column("primary_email", sa.String(length=255), nullable=True),
        sa.Column("primary_contact_name", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_families_id", "families", ["id"], unique=False)

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="CASCADE"), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_students_id", "students", ["id"], unique=False)
    op.create_index("ix_students_family_id", "students", ["family_id"], unique=False)

    op.create_table(
        "teachers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="active"),
        sa.Column("default_hourly_rate", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_teachers_id", "teachers", ["id"], unique=False)

    op.create_table(
        "enrollments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="SET NULL"), nullable=True),
        sa.Column("service_id", sa.Integer(), sa.ForeignKey("services.id"), nullable=False),
        sa.Column(
            "status",
            sa.Enum("trial", "active", "paused", "ended", name="enrollment_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("monthly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("weekly_tuition", sa.Numeric(10, 2), nullable=True),
        sa.Column("hourly_rate_customer", sa.Numeric(10, 2), nullable=True),
        sa.Column("hours_per_week", sa.Numeric(6, 2), nullable=True),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("class_title", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_enrollments_id", "enrollments", ["id"], unique=False)
    op.create_index("ix_enrollments_family_id", "enrollments", ["family_id"], unique=False)
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"], unique=False)
    op.create_index("ix_enrollments_service_id", "enrollments", ["service_id"], unique=False)
    op.create_index("ix_enrollments_status", "enrollments", ["status"], unique=False)

    op.create_table(
        "teacher_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "enrollment_id", sa.Integer(), sa.ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("service_id", sa.Integer(), sa.ForeignKey("services.id"), nullable=True),
        sa.Column("hourly_rate_teacher", sa.Numeric(10, 2), nullable=True),
        sa.Column("hours_per_week", sa.Numeric(6, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(enrollment_id IS NULL) <> (service_id IS NULL)",
            name="ck_teacher_assignments_single_target",
        ),
    )
    op.create_index("ix_teacher_assignments_id", "teacher_assignments", ["id"], unique=False)
    op.create_index("ix_teacher_assignments_teacher_id", "teacher_assignments", ["teacher_id"], unique=False)
    op.create_index("ix_teacher_assignments_enrollment_id", "teacher_assignments", ["enrollment_id"], unique=False)
    op.create_index("ix_teacher_assignments_service_id", "teacher_assignments", ["service_id"], unique=False)
    op.create_index("ix_teacher_assignments_is_active", "teacher_assignments", ["is_active"], unique=False)

    op.create_table(
        "payroll_runs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("draft", "review", "approved", "paid", name="payroll_run_status"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("total_calculated", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_adjusted", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_hours", sa.Numeric(8, 2), nullable=False, server_default="0"),
        sa.Column("teacher_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payroll_runs_id", "payroll_runs", ["id"], unique=False)
    op.create_index("ix_payroll_runs_period_start", "payroll_runs", ["period_start"], unique=False)
    op.create_index("ix_payroll_runs_period_end", "payroll_runs", ["period_end"], unique=False)
    op.create_index("ix_payroll_runs_status", "payroll_runs", ["status"], unique=False)

    op.create_table(
        "payroll_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "payroll_run_id", sa.Integer(), sa.ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id"), nullable=False),
        sa.Column(
            "teacher_assignment_id",
            sa.Integer(),
            sa.ForeignKey("teacher_assignments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("service_id", sa.Integer(), sa.ForeignKey("services.id"), nullable=True),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("calculated_hours", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("actual_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("rate_source", sa.Enum("assignment", "service", "teacher", name="rate_source"), nullable=False),
        sa.Column("calculated_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("adjustment_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("adjustment_note", sa.Text(), nullable=True),
        sa.Column("final_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_payroll_line_items_id", "payroll_line_items", ["id"], unique=False)
    op.create_index("ix_payroll_line_items_payroll_run_id", "payroll_line_items", ["payroll_run_id"], unique=False)
    op.create_index("ix_payroll_line_items_teacher_id", "payroll_line_items", ["teacher_id"], unique=False)
    op.create_index(
        "ix_payroll_line_items_teacher_assignment_id", "payroll_line_items", ["teacher_assignment_id"], unique=False
    )

    op.create_table(
        "payroll_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "source_payroll_run_id",
            sa.Integer(),
            sa.ForeignKey("payroll_runs.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "target_payroll_run_id",
            sa.Integer(),
            sa.ForeignKey("payroll_runs.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_payroll_adjustments_id", "payroll_adjustments", ["id"], unique=False)
    op.create_index("ix_payroll_adjustments_teacher_id", "payroll_adjustments", ["teacher_id"], unique=False)
    op.create_index(
        "ix_payroll_adjustments_target_payroll_run_id", "payroll_adjustments", ["target_payroll_run_id"], unique=False
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invoice_number", sa.String(length=50), nullable=True, unique=True),
        sa.Column("public_id", sa.String(length=20), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("draft", "sent", "paid", "partial", "overdue", "void", name="invoice_status"),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_to", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_invoices_id", "invoices", ["id"], unique=False)
    op.create_index("ix_invoices_family_id", "invoices", ["family_id"], unique=False)
    op.create_index("ix_invoices_public_id", "invoices", ["public_id"], unique=True)
    op.create_index("ix_invoices_status", "invoices", ["status"], unique=False)

    op.create_table(
        "invoice_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("quantity", sa.Numeric(8, 2), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_invoice_line_items_id", "invoice_line_items", ["id"], unique=False)
    op.create_index("ix_invoice_line_items_invoice_id", "invoice_line_items", ["invoice_id"], unique=False)
    op.create_index("ix_invoice_line_items_enrollment_id", "invoice_line_items", ["enrollment_id"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payments_id", "payments", ["id"], unique=False)
    op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"], unique=False)

    op.create_table(
        "event_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id", ondelete="SET NULL"), nullable=True),
        sa.Column("event_title", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=20), nullable=False, server_default="event"),
        sa.Column("event_date", sa.Date(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=True),
        sa.Column("payment_status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_event_orders_id", "event_orders", ["id"], unique=False)
    op.create_index("ix_event_orders_family_id", "event_orders", ["family_id"], unique=False)
    op.create_index("ix_event_orders_payment_status", "event_orders", ["payment_status"], unique=False)
    op.create_index("ix_event_orders_invoice_id", "event_orders", ["invoice_id"], unique=False)

    op.create_table(
        "invoice_emails",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email_type", sa.String(length=30), nullable=False),
        sa.Column("sent_to", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_invoice_emails_id", "invoice_emails", ["id"], unique=False)
    op.create_index("ix_invoice_emails_invoice_id", "invoice_emails", ["invoice_id"], unique=False)


def downgrade() -> None:
    for table in (
        "invoice_emails",
        "event_orders",
        "payments",
        "invoice_line_items",
        "invoices",
        "payroll_adjustments",
        "payroll_line_items",
        "payroll_runs",
        "teacher_assignments",
        "enrollments",
        "teachers",
        "students",
        "families",
        "services",
    ):
        op.drop_table(table)
    for enum_name in (
        "invoice_status",
        "rate_source",
        "payroll_run_status",
        "enrollment_status",
        "billing_frequency",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
