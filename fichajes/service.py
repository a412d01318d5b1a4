"""Time-tracking operations run inside one database transaction each.

Every public method loads what it needs from the store, runs the pure
engine functions, saves the result and emits audit entries. The session is
committed on success and rolled back on any failure, so a rejected batch
leaves the database untouched.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterator, Mapping, Sequence
from zoneinfo import ZoneInfo

from flask import Flask, current_app
from sqlalchemy.exc import SQLAlchemyError

from fichajes import corrections, punch_requests
from fichajes.absences import LeaveAbsenceProvider
from fichajes.aggregation import aggregate_events, validate_clock_limits, validate_new_event
from fichajes.audit import SqlAuditSink
from fichajes.collaborators import AbsenceProvider, AuditSink, ScheduleProvider
from fichajes.domain import (
    AuditEntry,
    ClockEvent,
    ClockEventType,
    CorrectionRequest,
    DayRecord,
    DayStatus,
    EventInsertion,
    EventSource,
    PeriodSummary,
    PunchCorrection,
    PunchCorrectionStatus,
)
from fichajes.errors import ConcurrentWrite, FichajeError, InvalidTransition, NotFound
from fichajes.extensions import db
from fichajes.models import Employee
from fichajes.normalizer import day_key, ensure_utc, resolve_timezone
from fichajes.periods import summarize_period, year_to_date_range
from fichajes.schedules import ShiftScheduleProvider
from fichajes.store import SqlDayRecordStore, SqlPunchCorrectionStore


logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


@dataclass
class RolloverResult:
    closed_before: date
    finalized: list[DayRecord] = field(default_factory=list)
    incomplete: list[DayRecord] = field(default_factory=list)


@contextmanager
def transaction(operation: str) -> Iterator[None]:
    try:
        yield
        db.session.commit()
    except FichajeError as exc:
        db.session.rollback()
        logger.warning("%s rejected: %s", operation, exc.message)
        raise
    except (SQLAlchemyError, ValueError):
        logger.error("%s failed. Rolling back.", operation, exc_info=True)
        db.session.rollback()
        raise


class TimeTrackingService:
    def __init__(
        self,
        store: SqlDayRecordStore,
        schedule: ScheduleProvider,
        absences: AbsenceProvider,
        audit: AuditSink,
        tz: ZoneInfo,
        max_batch_days: int = corrections.DEFAULT_MAX_BATCH_DAYS,
        correction_requests: SqlPunchCorrectionStore | None = None,
    ) -> None:
        self.store = store
        self.schedule = schedule
        self.absences = absences
        self.audit = audit
        self.tz = tz
        self.max_batch_days = max_batch_days
        self.correction_requests = correction_requests or SqlPunchCorrectionStore()

    def _require_employee(self, employee_id: uuid.UUID) -> None:
        if db.session.get(Employee, employee_id) is None:
            raise NotFound(f"Employee {employee_id} not found.")

    def _require_day(self, employee_id: uuid.UUID, day: date) -> DayRecord:
        self._require_employee(employee_id)
        record = self.store.get_day_record(employee_id, day)
        if record is None:
            raise NotFound(f"No day record for {day.isoformat()}.")
        return record

    def _emit(
        self,
        action: str,
        record: DayRecord,
        actor: str | None,
        event_id: uuid.UUID | None = None,
        old_timestamp: datetime | None = None,
        new_timestamp: datetime | None = None,
        reason: str | None = None,
        request_id: uuid.UUID | None = None,
    ) -> None:
        self.audit.emit(
            AuditEntry(
                action=action,
                employee_id=record.employee_id,
                date=record.date,
                actor=actor,
                timestamp=datetime.now(timezone.utc),
                event_id=event_id,
                old_timestamp=old_timestamp,
                new_timestamp=new_timestamp,
                reason=reason,
                request_id=request_id,
            )
        )

    def _emit_corrections(
        self,
        action: str,
        before: Mapping[uuid.UUID, datetime],
        record: DayRecord,
        requests: Sequence[CorrectionRequest],
        request_id: uuid.UUID | None = None,
    ) -> None:
        for request in requests:
            self._emit(
                action,
                record,
                request.actor,
                event_id=request.event_id,
                old_timestamp=before.get(request.event_id),
                new_timestamp=ensure_utc(request.new_timestamp),
                reason=request.reason,
                request_id=request_id,
            )

    def _emit_insertions(
        self,
        record: DayRecord,
        insertions: Sequence[EventInsertion],
        request_id: uuid.UUID | None = None,
    ) -> None:
        for insertion in insertions:
            self._emit(
                "clock_event.inserted",
                record,
                insertion.actor,
                event_id=insertion.event_id,
                new_timestamp=ensure_utc(insertion.timestamp),
                reason=insertion.reason,
                request_id=request_id,
            )

    def _emit_request(self, action: str, punch: PunchCorrection, actor: str | None, reason: str | None) -> None:
        self.audit.emit(
            AuditEntry(
                action=action,
                employee_id=punch.employee_id,
                date=punch.date,
                actor=actor,
                timestamp=datetime.now(timezone.utc),
                new_timestamp=punch.requested_timestamp,
                reason=reason,
                request_id=punch.id,
            )
        )

    def get_day(self, employee_id: uuid.UUID, day: date) -> DayRecord:
        return self._require_day(employee_id, day)

    def record_event(
        self,
        employee_id: uuid.UUID,
        event_type: ClockEventType,
        timestamp: datetime,
        source: EventSource = EventSource.WEB,
    ) -> DayRecord:
        """Append a clock event, opening the day record on its first entrada.

        Two first events of the same day race on the unique day row. The
        loser is retried once, against the row the winner created.
        """
        instant = ensure_utc(timestamp)
        try:
            return self._record_event(employee_id, event_type, instant, source)
        except ConcurrentWrite:
            logger.info("Day record of %s was created concurrently. Retrying once.", employee_id)
            return self._record_event(employee_id, event_type, instant, source)

    def _record_event(
        self,
        employee_id: uuid.UUID,
        event_type: ClockEventType,
        instant: datetime,
        source: EventSource,
    ) -> DayRecord:
        with transaction("record_event"):
            self._require_employee(employee_id)
            current_day = day_key(instant, self.tz)
            earliest, latest = self.schedule.clock_limits(employee_id, current_day)
            validate_clock_limits(instant, earliest, latest, self.tz)

            record = self.store.get_day_record(employee_id, current_day)
            if record is None:
                record = DayRecord(employee_id=employee_id, date=current_day)
            elif record.status != DayStatus.OPEN:
                raise InvalidTransition(f"Day {current_day.isoformat()} is already {record.status.value}.")

            validate_new_event(record.events, event_type, instant)
            event = ClockEvent(type=event_type, timestamp=instant, source=source)
            record.events = [*record.events, event]
            corrections.invalidate_totals(record)
            self.store.save_day_record(record)
            logger.info("Recorded %s for %s on %s", event_type.value, employee_id, current_day)
        return record

    def finalize_day(self, employee_id: uuid.UUID, day: date, actor: str | None = None) -> DayRecord:
        with transaction("finalize_day"):
            record = corrections.finalize(self._require_day(employee_id, day))
            self.store.save_day_record(record)
            self._emit("day.finalized", record, actor)
        return record

    def request_review(self, employee_id: uuid.UUID, day: date, actor: str | None = None, reason: str | None = None) -> DayRecord:
        with transaction("request_review"):
            record = corrections.request_review(self._require_day(employee_id, day))
            self.store.save_day_record(record)
            self._emit("day.review_requested", record, actor, reason=reason)
        return record

    def approve_day(self, employee_id: uuid.UUID, day: date, actor: str | None = None) -> DayRecord:
        with transaction("approve_day"):
            record = corrections.approve(self._require_day(employee_id, day))
            self.store.save_day_record(record)
            self._emit("day.approved", record, actor)
        return record

    def correct_events(
        self,
        employee_id: uuid.UUID,
        day: date,
        requests: Sequence[CorrectionRequest],
        mass: bool = False,
        insertions: Sequence[EventInsertion] = (),
    ) -> DayRecord:
        with transaction("correct_events"):
            record = self._require_day(employee_id, day)
            before = {event.id: event.timestamp for event in record.events}
            corrections.correct_events(record, requests, mass=mass, insertions=insertions)
            self.store.save_day_record(record)
            action = "clock_event.mass_corrected" if mass else "clock_event.corrected"
            self._emit_corrections(action, before, record, requests)
            self._emit_insertions(record, insertions)
        return record

    def insert_event(
        self,
        employee_id: uuid.UUID,
        day: date,
        insertion: EventInsertion,
        mass: bool = False,
    ) -> DayRecord:
        return self.correct_events(employee_id, day, [], mass=mass, insertions=[insertion])

    def correct_batch(
        self,
        employee_id: uuid.UUID,
        requests: Mapping[date, Sequence[CorrectionRequest]],
        mass: bool = False,
        insertions: Mapping[date, Sequence[EventInsertion]] | None = None,
    ) -> corrections.BatchOutcome:
        insertions = insertions or {}
        with transaction("correct_batch"):
            self._require_employee(employee_id)
            targets = set(requests) | set(insertions)
            days = {target_day: self.store.get_day_record(employee_id, target_day) for target_day in targets}
            before = {
                target_day: {event.id: event.timestamp for event in record.events}
                for target_day, record in days.items()
                if record is not None
            }
            outcome = corrections.correct_batch(
                days,
                requests,
                mass=mass,
                max_days=self.max_batch_days,
                insertions=insertions,
            )
            outcome.raise_for_failures()

            action = "clock_event.mass_corrected" if mass else "clock_event.corrected"
            for record in outcome.corrected:
                self.store.save_day_record(record)
                self._emit_corrections(action, before[record.date], record, requests.get(record.date, ()))
                self._emit_insertions(record, insertions.get(record.date, ()))
        return outcome

    def auto_complete_day(self, employee_id: uuid.UUID, day: date, actor: str | None = None) -> DayRecord:
        with transaction("auto_complete_day"):
            record = self._require_day(employee_id, day)
            known_ids = {event.id for event in record.events}
            corrections.auto_complete(record, self.schedule.proposed_events(employee_id, day))
            self.store.save_day_record(record)
            for event in record.events:
                if event.id not in known_ids:
                    self._emit(
                        "clock_event.auto_completed",
                        record,
                        actor or SYSTEM_ACTOR,
                        event_id=event.id,
                        new_timestamp=event.timestamp,
                    )
        return record

    def summarize(self, employee_id: uuid.UUID, range_start: date, range_end: date) -> PeriodSummary:
        self._require_employee(employee_id)
        return summarize_period(employee_id, range_start, range_end, self.store, self.schedule, self.absences)

    def summarize_year_to_date(self, employee_id: uuid.UUID, until: date) -> PeriodSummary:
        range_start, range_end = year_to_date_range(until)
        return self.summarize(employee_id, range_start, range_end)

    def _require_request(self, request_id: uuid.UUID, employee_id: uuid.UUID | None = None) -> PunchCorrection:
        punch = self.correction_requests.get(request_id)
        if punch is None or (employee_id is not None and punch.employee_id != employee_id):
            raise NotFound(f"Correction request {request_id} not found.")
        return punch

    def submit_correction_request(
        self,
        employee_id: uuid.UUID,
        day: date,
        requested_timestamp: datetime,
        reason: str,
        requested_by: str,
        event_id: uuid.UUID | None = None,
        requested_type: ClockEventType | None = None,
    ) -> PunchCorrection:
        with transaction("submit_correction_request"):
            record = self._require_day(employee_id, day)
            punch = PunchCorrection(
                employee_id=employee_id,
                date=day,
                requested_timestamp=requested_timestamp,
                reason=reason,
                requested_by=requested_by,
                event_id=event_id,
                requested_type=requested_type,
            )
            pending = self.correction_requests.list_for_employee(employee_id, PunchCorrectionStatus.REQUESTED)
            punch_requests.submit_request(record, punch, pending)
            self.correction_requests.save(punch)
            self._emit_request("correction_request.submitted", punch, requested_by, reason)
        return punch

    def list_correction_requests(
        self,
        employee_id: uuid.UUID,
        status: PunchCorrectionStatus | None = None,
    ) -> list[PunchCorrection]:
        self._require_employee(employee_id)
        return self.correction_requests.list_for_employee(employee_id, status)

    def approve_correction_request(
        self,
        request_id: uuid.UUID,
        decided_by: str,
        comment: str | None = None,
    ) -> tuple[PunchCorrection, DayRecord]:
        with transaction("approve_correction_request"):
            punch = self._require_request(request_id)
            record = self._require_day(punch.employee_id, punch.date)
            before = {event.id: event.timestamp for event in record.events}
            requests, insertions = punch_requests.approve_request(record, punch, decided_by, comment)
            self.store.save_day_record(record)
            self.correction_requests.save(punch)
            self._emit_corrections("clock_event.corrected", before, record, requests, request_id=punch.id)
            self._emit_insertions(record, insertions, request_id=punch.id)
            self._emit_request("correction_request.approved", punch, decided_by, comment)
        return punch, record

    def reject_correction_request(
        self,
        request_id: uuid.UUID,
        decided_by: str,
        comment: str | None = None,
    ) -> PunchCorrection:
        with transaction("reject_correction_request"):
            punch = punch_requests.reject_request(self._require_request(request_id), decided_by, comment)
            self.correction_requests.save(punch)
            self._emit_request("correction_request.rejected", punch, decided_by, comment)
        return punch

    def cancel_correction_request(self, employee_id: uuid.UUID, request_id: uuid.UUID) -> PunchCorrection:
        with transaction("cancel_correction_request"):
            punch = punch_requests.cancel_request(self._require_request(request_id, employee_id))
            self.correction_requests.save(punch)
            self._emit_request("correction_request.cancelled", punch, punch.requested_by, None)
        return punch

    def close_stale_days(self, today: date) -> RolloverResult:
        """Finalize every open day dated before ``today``."""
        result = RolloverResult(closed_before=today)
        with transaction("close_stale_days"):
            for record in self.store.list_stale_open_days(today):
                if aggregate_events(record.events).is_open or not record.events:
                    result.incomplete.append(record)
                corrections.finalize(record)
                self.store.save_day_record(record)
                self._emit("day.finalized", record, SYSTEM_ACTOR)
                result.finalized.append(record)
        logger.info(
            "Closed %d open days before %s (%d incomplete)",
            len(result.finalized),
            today.isoformat(),
            len(result.incomplete),
        )
        return result


def build_service(app: Flask | None = None, lock_rows: bool = True) -> TimeTrackingService:
    app = app or current_app
    tz = resolve_timezone(app.config.get("APP_TIMEZONE"))
    return TimeTrackingService(
        store=SqlDayRecordStore(lock_rows=lock_rows),
        schedule=ShiftScheduleProvider(
            default_minutes=int(app.config.get("FICHAJES_DEFAULT_EXPECTED_MINUTES", 450)),
            tz=tz,
        ),
        absences=LeaveAbsenceProvider(),
        audit=SqlAuditSink(),
        tz=tz,
        max_batch_days=int(app.config.get("FICHAJES_MAX_BATCH_DAYS", corrections.DEFAULT_MAX_BATCH_DAYS)),
        correction_requests=SqlPunchCorrectionStore(lock_rows=lock_rows),
    )


def today_local(tz: ZoneInfo) -> date:
    return datetime.now(timezone.utc).astimezone(tz).date()

