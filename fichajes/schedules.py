"""Expected contracted hours and proposed events from shift assignments."""

from __future__ import annotations

import logging
import uuid
from calendar import monthrange
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import select

from fichajes.aggregation import round_hours
from fichajes.domain import ClockEvent, ClockEventType, EventSource
from fichajes.extensions import db
from fichajes.models import EmployeeShiftAssignment, ExpectedHoursFrequency, Shift, ShiftDay
from fichajes.normalizer import UTC


logger = logging.getLogger(__name__)

DEFAULT_EXPECTED_MINUTES = 450
DEFAULT_WORKING_WEEKDAYS = frozenset(range(5))
FLEXIBLE_START = time(9, 0)


def shift_day_for(shift: Shift | None, current_day: date) -> ShiftDay | None:
    if shift is None:
        return None
    for shift_day in shift.days:
        if shift_day.weekday == current_day.weekday():
            return shift_day
    return None


def working_weekdays(shift: Shift | None) -> frozenset[int]:
    """Weekdays the shift works; a weekday without its own row keeps the Monday-Friday default."""
    weekdays = set(DEFAULT_WORKING_WEEKDAYS)
    if shift is not None:
        for shift_day in shift.days:
            if shift_day.active:
                weekdays.add(shift_day.weekday)
            else:
                weekdays.discard(shift_day.weekday)
    return frozenset(weekdays)


def business_days_in_month(year: int, month: int, weekdays: frozenset[int] = DEFAULT_WORKING_WEEKDAYS) -> int:
    return sum(1 for day in range(1, monthrange(year, month)[1] + 1) if date(year, month, day).weekday() in weekdays)


def business_days_in_year(year: int, weekdays: frozenset[int] = DEFAULT_WORKING_WEEKDAYS) -> int:
    total = 0
    for month in range(1, 13):
        total += business_days_in_month(year, month, weekdays)
    return total


def _minutes_of(clock_time: time) -> int:
    return clock_time.hour * 60 + clock_time.minute


def _break_minutes(shift: Shift, shift_day: ShiftDay) -> int:
    if shift_day.break_start_time is not None and shift_day.break_end_time is not None:
        return max(0, _minutes_of(shift_day.break_end_time) - _minutes_of(shift_day.break_start_time))
    return max(0, int(shift.break_minutes))


def expected_work_minutes_for_day(
    shift: Shift | None,
    current_day: date,
    default_minutes: int = DEFAULT_EXPECTED_MINUTES,
) -> int:
    weekdays = working_weekdays(shift)
    if current_day.weekday() not in weekdays:
        return 0

    if shift is None:
        return default_minutes

    shift_day = shift_day_for(shift, current_day)
    if shift_day is not None and shift_day.start_time is not None and shift_day.end_time is not None:
        span = _minutes_of(shift_day.end_time) - _minutes_of(shift_day.start_time)
        return max(0, span - _break_minutes(shift, shift_day))

    total_minutes = max(0.0, float(shift.expected_hours) * 60.0)
    if shift.expected_hours_frequency == ExpectedHoursFrequency.DAILY:
        return int(round(total_minutes))
    if shift.expected_hours_frequency == ExpectedHoursFrequency.WEEKLY:
        return int(round(total_minutes / max(1, len(weekdays))))
    if shift.expected_hours_frequency == ExpectedHoursFrequency.MONTHLY:
        return int(round(total_minutes / max(1, business_days_in_month(current_day.year, current_day.month, weekdays))))
    return int(round(total_minutes / max(1, business_days_in_year(current_day.year, weekdays))))


def clock_limits(shift: Shift | None) -> tuple[time | None, time | None]:
    if shift is None:
        return None, None
    return shift.earliest_clock_in, shift.latest_clock_out


def _at(day: date, clock_time: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, clock_time, tzinfo=tz).astimezone(timezone.utc)


def _proposed(event_type: ClockEventType, timestamp: datetime) -> ClockEvent:
    return ClockEvent(type=event_type, timestamp=timestamp, source=EventSource.AUTO)


def _fixed_events(
    current_day: date,
    start_time: time,
    end_time: time,
    break_start_time: time | None,
    break_minutes: int,
    tz: ZoneInfo,
) -> list[ClockEvent]:
    events = [_proposed(ClockEventType.ENTRADA, _at(current_day, start_time, tz))]
    if break_start_time is not None and break_minutes > 0:
        pause_start = _at(current_day, break_start_time, tz)
        events.append(_proposed(ClockEventType.PAUSA_INICIO, pause_start))
        events.append(_proposed(ClockEventType.PAUSA_FIN, pause_start + timedelta(minutes=break_minutes)))
    events.append(_proposed(ClockEventType.SALIDA, _at(current_day, end_time, tz)))
    return events


def propose_events(
    shift: Shift | None,
    current_day: date,
    expected_minutes: int,
    tz: ZoneInfo = UTC,
) -> list[ClockEvent]:
    """Events a complete day of ``shift`` would contain.

    The weekday's own fixed times win, then the shift's fixed start and end
    times, each with its break window when one is configured. Otherwise the
    day starts at 09:00 and lasts the expected minutes, with the break in the
    middle.
    """
    if expected_minutes <= 0:
        return []

    shift_day = shift_day_for(shift, current_day)
    if shift_day is not None and shift_day.start_time is not None and shift_day.end_time is not None:
        return _fixed_events(
            current_day,
            shift_day.start_time,
            shift_day.end_time,
            shift_day.break_start_time,
            _break_minutes(shift, shift_day),
            tz,
        )

    if shift is not None and shift.start_time is not None and shift.end_time is not None:
        return _fixed_events(current_day, shift.start_time, shift.end_time, shift.break_start_time, shift.break_minutes, tz)

    break_minutes = max(0, int(shift.break_minutes)) if shift is not None else 0
    start = _at(current_day, FLEXIBLE_START, tz)
    events = [_proposed(ClockEventType.ENTRADA, start)]
    if break_minutes:
        pause_start = start + timedelta(minutes=expected_minutes / 2)
        events.append(_proposed(ClockEventType.PAUSA_INICIO, pause_start))
        events.append(_proposed(ClockEventType.PAUSA_FIN, pause_start + timedelta(minutes=break_minutes)))
    events.append(_proposed(ClockEventType.SALIDA, start + timedelta(minutes=expected_minutes + break_minutes)))
    return events


def shift_for_day(
    assignment_rows: list[tuple[EmployeeShiftAssignment, Shift | None]],
    current_day: date,
) -> Shift | None:
    for assignment, shift in reversed(assignment_rows):
        if assignment.effective_from <= current_day and (assignment.effective_to is None or assignment.effective_to >= current_day):
            return shift
    return None


class ShiftScheduleProvider:
    """Schedule provider backed by ``employee_shift_assignments``.

    Assignments are loaded once per employee and reused for every day asked
    afterwards, so one provider instance should not outlive a request.
    """

    def __init__(self, default_minutes: int = DEFAULT_EXPECTED_MINUTES, tz: ZoneInfo = UTC) -> None:
        self.default_minutes = default_minutes
        self.tz = tz
        self._assignments: dict[uuid.UUID, list[tuple[EmployeeShiftAssignment, Shift | None]]] = {}

    def _assignment_rows(self, employee_id: uuid.UUID) -> list[tuple[EmployeeShiftAssignment, Shift | None]]:
        if employee_id not in self._assignments:
            stmt = (
                select(EmployeeShiftAssignment, Shift)
                .outerjoin(Shift, Shift.id == EmployeeShiftAssignment.shift_id)
                .where(EmployeeShiftAssignment.employee_id == employee_id)
                .order_by(EmployeeShiftAssignment.effective_from.asc(), EmployeeShiftAssignment.created_at.asc())
            )
            rows = [(assignment, shift) for assignment, shift in db.session.execute(stmt).all()]
            if not rows:
                logger.warning(
                    "Employee %s has no shift assignment. Using %d expected minutes per business day.",
                    employee_id,
                    self.default_minutes,
                )
            self._assignments[employee_id] = rows
        return self._assignments[employee_id]

    def shift_for(self, employee_id: uuid.UUID, current_day: date) -> Shift | None:
        return shift_for_day(self._assignment_rows(employee_id), current_day)

    def expected_minutes(self, employee_id: uuid.UUID, current_day: date) -> int:
        shift = self.shift_for(employee_id, current_day)
        return expected_work_minutes_for_day(shift, current_day, self.default_minutes)

    def expected_hours(self, employee_id: uuid.UUID, day: date) -> Decimal:
        return round_hours(Decimal(self.expected_minutes(employee_id, day)) / Decimal(60))

    def proposed_events(self, employee_id: uuid.UUID, day: date) -> list[ClockEvent]:
        shift = self.shift_for(employee_id, day)
        return propose_events(shift, day, self.expected_minutes(employee_id, day), self.tz)

    def clock_limits(self, employee_id: uuid.UUID, day: date) -> tuple[time | None, time | None]:
        return clock_limits(self.shift_for(employee_id, day))
