"""Add correction requests, per-weekday shift days and clock limits.

Revision ID: 0002_correction_requests_and_shift_days
Revises: 0001_initial
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "0002_correction_requests_and_shift_days"
down_revision: str | None = "0001_initial"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


clock_event_type = postgresql.ENUM(
    "ENTRADA",
    "PAUSA_INICIO",
    "PAUSA_FIN",
    "SALIDA",
    name="clock_event_type",
    create_type=False,
)
punch_correction_status = postgresql.ENUM(
    "REQUESTED",
    "APPROVED",
    "REJECTED",
    "CANCELLED",
    name="punch_correction_status",
)


def upgrade() -> None:
    with op.get_context().autocommit_block():
        op.execute("ALTER TYPE clock_event_source ADD VALUE IF NOT EXISTS 'MANUAL'")

    bind = op.get_bind()
    punch_correction_status.create(bind, checkfirst=True)

    op.add_column("shifts", sa.Column("earliest_clock_in", sa.Time(), nullable=True))
    op.add_column("shifts", sa.Column("latest_clock_out", sa.Time(), nullable=True))

    op.create_table(
        "shift_days",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("shift_id", sa.Uuid(), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("break_start_time", sa.Time(), nullable=True),
        sa.Column("break_end_time", sa.Time(), nullable=True),
        sa.CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_shift_days_weekday"),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shift_id", "weekday", name="uq_shift_days_shift_weekday"),
    )

    op.create_table(
        "punch_correction_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=True),
        sa.Column("requested_type", clock_event_type, nullable=True),
        sa.Column("requested_ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("requested_by", sa.String(length=255), nullable=False),
        sa.Column(
            "status",
            punch_correction_status,
            nullable=False,
            server_default=sa.text("'REQUESTED'"),
        ),
        sa.Column("decided_by", sa.String(length=255), nullable=True),
        sa.Column("decision_comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "event_id IS NOT NULL OR requested_type IS NOT NULL",
            name="ck_punch_correction_requests_target",
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["clock_events.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_punch_correction_requests_employee_status",
        "punch_correction_requests",
        ["employee_id", "status"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_punch_correction_requests_employee_status", table_name="punch_correction_requests")
    op.drop_table("punch_correction_requests")
    op.drop_table("shift_days")
    op.drop_column("shifts", "latest_clock_out")
    op.drop_column("shifts", "earliest_clock_in")

    bind = op.get_bind()
    punch_correction_status.drop(bind, checkfirst=True)
    # PostgreSQL cannot drop a value from an enum; MANUAL stays on clock_event_source.
