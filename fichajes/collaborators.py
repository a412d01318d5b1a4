"""Interfaces the engine consumes from its host."""

from __future__ import annotations

import uuid
from datetime import date, time
from decimal import Decimal
from typing import Protocol, Sequence

from fichajes.domain import AuditEntry, ClockEvent, DayRecord


class DayRecordStore(Protocol):
    def get_day_record(self, employee_id: uuid.UUID, day: date) -> DayRecord | None: ...

    def save_day_record(self, record: DayRecord) -> DayRecord: ...

    def list_day_records(self, employee_id: uuid.UUID, range_start: date, range_end: date) -> Sequence[DayRecord]:
        """Records of the inclusive range, ordered by date."""
        ...


class ScheduleProvider(Protocol):
    def expected_hours(self, employee_id: uuid.UUID, day: date) -> Decimal: ...

    def proposed_events(self, employee_id: uuid.UUID, day: date) -> Sequence[ClockEvent]: ...

    def clock_limits(self, employee_id: uuid.UUID, day: date) -> tuple[time | None, time | None]:
        """Earliest and latest local clock time allowed on ``day``; ``None`` is unbounded."""
        ...


class AbsenceProvider(Protocol):
    def is_justified(self, employee_id: uuid.UUID, day: date) -> bool: ...


class AuditSink(Protocol):
    def emit(self, entry: AuditEntry) -> None: ...
