"""Initial schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


expected_hours_frequency = sa.Enum("YEARLY", "MONTHLY", "WEEKLY", "DAILY", name="expected_hours_frequency")
leave_request_status = sa.Enum("REQUESTED", "APPROVED", "REJECTED", "CANCELLED", name="leave_request_status")
day_status = sa.Enum("OPEN", "FINALIZED", "UNDER_REVIEW", "APPROVED", name="day_status")
clock_event_type = sa.Enum("ENTRADA", "PAUSA_INICIO", "PAUSA_FIN", "SALIDA", name="clock_event_type")
clock_event_source = sa.Enum("WEB", "MOBILE", "KIOSK", "API", "AUTO", name="clock_event_source")


def upgrade() -> None:
    op.create_table(
        "employees",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_employees_name", "employees", ["name"], unique=False)

    op.create_table(
        "shifts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("expected_hours", sa.Numeric(8, 2), nullable=False, server_default=sa.text("8.00")),
        sa.Column("expected_hours_frequency", expected_hours_frequency, nullable=False, server_default="DAILY"),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("break_start_time", sa.Time(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "employee_shift_assignments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("shift_id", sa.Uuid(), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_to", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("effective_to IS NULL OR effective_to >= effective_from", name="ck_employee_shift_assignment_dates"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "effective_from", name="uq_employee_shift_assignments_employee_from"),
    )
    op.create_index(
        "ix_employee_shift_assignments_employee_from",
        "employee_shift_assignments",
        ["employee_id", "effective_from"],
        unique=False,
    )

    op.create_table(
        "leave_types",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("paid_bool", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("type_id", sa.Uuid(), nullable=False),
        sa.Column("date_from", sa.Date(), nullable=False),
        sa.Column("date_to", sa.Date(), nullable=False),
        sa.Column("status", leave_request_status, nullable=False, server_default="REQUESTED"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("date_to >= date_from", name="ck_leave_requests_dates"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["type_id"], ["leave_types.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leave_requests_employee_status", "leave_requests", ["employee_id", "status"], unique=False)

    op.create_table(
        "day_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", day_status, nullable=False, server_default="OPEN"),
        sa.Column("worked_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("paused_hours", sa.Numeric(8, 2), nullable=True),
        sa.Column("mass_corrected", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "date", name="uq_day_records_employee_date"),
    )
    op.create_index("ix_day_records_status_date", "day_records", ["status", "date"], unique=False)

    op.create_table(
        "clock_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("day_record_id", sa.Uuid(), nullable=False),
        sa.Column("type", clock_event_type, nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("original_ts", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edited_by", sa.String(length=255), nullable=True),
        sa.Column("edit_reason", sa.Text(), nullable=True),
        sa.Column("source", clock_event_source, nullable=False, server_default="WEB"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["day_record_id"], ["day_records.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clock_events_day_record_ts", "clock_events", ["day_record_id", "ts"], unique=False)

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=True),
        sa.Column("actor", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=True),
        sa.Column("payload_json", sa.JSON(), nullable=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_employee_ts", "audit_log", ["employee_id", "ts"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_log_employee_ts", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_clock_events_day_record_ts", table_name="clock_events")
    op.drop_table("clock_events")
    op.drop_index("ix_day_records_status_date", table_name="day_records")
    op.drop_table("day_records")
    op.drop_index("ix_leave_requests_employee_status", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_table("leave_types")
    op.drop_index("ix_employee_shift_assignments_employee_from", table_name="employee_shift_assignments")
    op.drop_table("employee_shift_assignments")
    op.drop_table("shifts")
    op.drop_index("ix_employees_name", table_name="employees")
    op.drop_table("employees")

    bind = op.get_bind()
    clock_event_source.drop(bind, checkfirst=True)
    clock_event_type.drop(bind, checkfirst=True)
    day_status.drop(bind, checkfirst=True)
    leave_request_status.drop(bind, checkfirst=True)
    expected_hours_frequency.drop(bind, checkfirst=True)
