"""Period roll-up of day records against contracted hours."""

from __future__ import annotations

import calendar
import uuid
from datetime import date, timedelta
from decimal import Decimal

from fichajes.aggregation import ZERO_HOURS, compute_worked_hours, round_hours
from fichajes.collaborators import AbsenceProvider, DayRecordStore, ScheduleProvider
from fichajes.domain import DayStatus, PeriodDay, PeriodSummary
from fichajes.normalizer import iter_days


def week_range(anchor: date) -> tuple[date, date]:
    week_start = anchor - timedelta(days=anchor.weekday())
    return week_start, week_start + timedelta(days=6)


def month_range(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def year_to_date_range(until: date) -> tuple[date, date]:
    """January 1st of ``until``'s year through ``until``, the accumulated balance window."""
    return date(until.year, 1, 1), until


def summarize_period(
    employee_id: uuid.UUID,
    range_start: date,
    range_end: date,
    store: DayRecordStore,
    schedule: ScheduleProvider,
    absences: AbsenceProvider | None = None,
) -> PeriodSummary:
    """Fold every day of ``[range_start, range_end]`` into a summary.

    Days without a record count as days without clocking, with zero hours.
    Records that exist but are still open are counted in ``days_open``.
    Records are read only.
    """
    if range_end < range_start:
        range_start, range_end = range_end, range_start

    records = {
        record.date: record
        for record in store.list_day_records(employee_id, range_start, range_end)
    }

    total_worked = Decimal("0")
    total_expected = Decimal("0")
    days_without_clocking = 0
    days_open = 0
    days_justified = 0
    days_unjustified = 0
    breakdown: list[PeriodDay] = []

    for current_day in iter_days(range_start, range_end):
        expected = round_hours(Decimal(schedule.expected_hours(employee_id, current_day)))
        record = records.get(current_day)
        justified: bool | None = None

        if record is None:
            worked = ZERO_HOURS
            is_open = False
            days_without_clocking += 1
            if absences is not None:
                justified = bool(absences.is_justified(employee_id, current_day))
                if justified:
                    days_justified += 1
                else:
                    days_unjustified += 1
        else:
            worked = compute_worked_hours(record)
            is_open = record.status == DayStatus.OPEN
            if is_open:
                days_open += 1

        total_worked += worked
        total_expected += expected
        breakdown.append(
            PeriodDay(
                date=current_day,
                worked_hours=worked,
                expected_hours=expected,
                balance_hours=worked - expected,
                has_record=record is not None,
                status=record.status if record is not None else None,
                is_open=is_open,
                justified=justified,
            )
        )

    total_worked = round_hours(total_worked)
    total_expected = round_hours(total_expected)
    return PeriodSummary(
        employee_id=employee_id,
        range_start=range_start,
        range_end=range_end,
        total_worked_hours=total_worked,
        total_expected_hours=total_expected,
        balance_hours=total_worked - total_expected,
        days_without_clocking=days_without_clocking,
        days_open=days_open,
        days_justified=days_justified,
        days_unjustified=days_unjustified,
        days=breakdown,
    )
