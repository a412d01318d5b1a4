"""Database models."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    Uuid,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fichajes.domain import ClockEventType, DayStatus, EventSource, PunchCorrectionStatus
from fichajes.extensions import db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class LeaveRequestStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ExpectedHoursFrequency(str, enum.Enum):
    YEARLY = "YEARLY"
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    DAILY = "DAILY"


class Employee(db.Model):
    __tablename__ = "employees"
    __table_args__ = (Index("ix_employees_name", "name"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)


class Shift(db.Model):
    """Contracted schedule.

    ``start_time``/``end_time`` (and the optional break window) describe a
    fixed daily schedule; when set they are used to propose the events of an
    incomplete day. ``days`` overrides them per weekday. ``earliest_clock_in``
    and ``latest_clock_out`` bound the local times an employee may clock.
    """

    __tablename__ = "shifts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    expected_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=Decimal("8.00"))
    expected_hours_frequency: Mapped[ExpectedHoursFrequency] = mapped_column(
        Enum(ExpectedHoursFrequency, name="expected_hours_frequency"),
        nullable=False,
        default=ExpectedHoursFrequency.DAILY,
    )
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    earliest_clock_in: Mapped[time | None] = mapped_column(Time, nullable=True)
    latest_clock_out: Mapped[time | None] = mapped_column(Time, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)

    days: Mapped[list["ShiftDay"]] = relationship(
        back_populates="shift",
        order_by="ShiftDay.weekday",
        cascade="all, delete-orphan",
    )


class ShiftDay(db.Model):
    """One weekday of a shift (0 is Monday).

    An inactive day expects no hours. An active day with ``start_time`` and
    ``end_time`` is a fixed day; without them it shares the shift's hours
    with the other active days.
    """

    __tablename__ = "shift_days"
    __table_args__ = (
        UniqueConstraint("shift_id", "weekday", name="uq_shift_days_shift_weekday"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_shift_days_weekday"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shift_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False)
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_end_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    shift: Mapped[Shift] = relationship(back_populates="days")


class EmployeeShiftAssignment(db.Model):
    __tablename__ = "employee_shift_assignments"
    __table_args__ = (
        Index("ix_employee_shift_assignments_employee_from", "employee_id", "effective_from"),
        UniqueConstraint("employee_id", "effective_from", name="uq_employee_shift_assignments_employee_from"),
        CheckConstraint("effective_to IS NULL OR effective_to >= effective_from", name="ck_employee_shift_assignment_dates"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    shift_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("shifts.id", ondelete="RESTRICT"), nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)


class LeaveType(db.Model):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    paid_bool: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"
    __table_args__ = (
        Index("ix_leave_requests_employee_status", "employee_id", "status"),
        CheckConstraint("date_to >= date_from", name="ck_leave_requests_dates"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    type_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("leave_types.id", ondelete="CASCADE"), nullable=False)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[LeaveRequestStatus] = mapped_column(
        Enum(LeaveRequestStatus, name="leave_request_status"),
        nullable=False,
        default=LeaveRequestStatus.REQUESTED,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class DayRecordRow(db.Model):
    __tablename__ = "day_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_day_records_employee_date"),
        Index("ix_day_records_status_date", "status", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    status: Mapped[DayStatus] = mapped_column(
        Enum(DayStatus, name="day_status"),
        nullable=False,
        default=DayStatus.OPEN,
    )
    worked_hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    paused_hours: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    mass_corrected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc, onupdate=now_utc
    )

    events: Mapped[list["ClockEventRow"]] = relationship(
        back_populates="day_record",
        order_by="ClockEventRow.ts",
    )


class ClockEventRow(db.Model):
    __tablename__ = "clock_events"
    __table_args__ = (Index("ix_clock_events_day_record_ts", "day_record_id", "ts"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    day_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("day_records.id", ondelete="RESTRICT"), nullable=False
    )
    type: Mapped[ClockEventType] = mapped_column(Enum(ClockEventType, name="clock_event_type"), nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    original_ts: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, active_history=True)
    edited_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    edit_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[EventSource] = mapped_column(
        Enum(EventSource, name="clock_event_source"),
        nullable=False,
        default=EventSource.WEB,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)

    day_record: Mapped[DayRecordRow] = relationship(back_populates="events")


@event.listens_for(ClockEventRow, "before_update")
def guard_clock_event_update(_mapper: object, _connection: object, target: ClockEventRow) -> None:
    state = inspect(target)
    if state.attrs.type.history.has_changes():
        raise ValueError("clock_events type cannot change")
    original_history = state.attrs.original_ts.history
    if original_history.has_changes() and any(value is not None for value in original_history.deleted):
        raise ValueError("clock_events original_ts is already set")


@event.listens_for(ClockEventRow, "before_delete")
def prevent_clock_event_delete(_mapper: object, _connection: object, _target: object) -> None:
    raise ValueError("clock_events cannot be deleted")


class AuditLog(db.Model):
    __tablename__ = "audit_log"
    __table_args__ = (Index("ix_audit_log_employee_ts", "employee_id", "ts"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    actor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    payload_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)


class PunchCorrectionRequest(db.Model):
    __tablename__ = "punch_correction_requests"
    __table_args__ = (
        Index("ix_punch_correction_requests_employee_status", "employee_id", "status"),
        CheckConstraint(
            "event_id IS NOT NULL OR requested_type IS NOT NULL",
            name="ck_punch_correction_requests_target",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    event_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clock_events.id", ondelete="RESTRICT"), nullable=True
    )
    requested_type: Mapped[ClockEventType | None] = mapped_column(
        Enum(ClockEventType, name="clock_event_type"), nullable=True
    )
    requested_ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    requested_by: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[PunchCorrectionStatus] = mapped_column(
        Enum(PunchCorrectionStatus, name="punch_correction_status"),
        nullable=False,
        default=PunchCorrectionStatus.REQUESTED,
    )
    decided_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    decision_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=now_utc)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
