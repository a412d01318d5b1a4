"""SQLAlchemy persistence for day records and their clock events."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import Select

from fichajes.domain import ClockEvent, DayRecord, DayStatus, PunchCorrection, PunchCorrectionStatus
from fichajes.errors import ConcurrentWrite
from fichajes.extensions import db
from fichajes.models import ClockEventRow, DayRecordRow, PunchCorrectionRequest
from fichajes.normalizer import ensure_utc


def _optional_hours(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(value).quantize(Decimal("0.01"))


def _event_from_row(row: ClockEventRow) -> ClockEvent:
    return ClockEvent(
        id=row.id,
        type=row.type,
        timestamp=ensure_utc(row.ts),
        original_timestamp=ensure_utc(row.original_ts) if row.original_ts is not None else None,
        edited_by=row.edited_by,
        edit_reason=row.edit_reason,
        source=row.source,
    )


def record_from_row(row: DayRecordRow) -> DayRecord:
    events = sorted((_event_from_row(event_row) for event_row in row.events), key=lambda event: event.timestamp)
    return DayRecord(
        id=row.id,
        employee_id=row.employee_id,
        date=row.day,
        status=row.status,
        events=events,
        worked_hours=_optional_hours(row.worked_hours),
        paused_hours=_optional_hours(row.paused_hours),
        mass_corrected=row.mass_corrected,
        auto_completed=row.auto_completed,
    )


def day_records_between_stmt(employee_id: uuid.UUID, range_start: date, range_end: date) -> Select:
    return (
        select(DayRecordRow)
        .options(selectinload(DayRecordRow.events))
        .where(
            DayRecordRow.employee_id == employee_id,
            DayRecordRow.day >= range_start,
            DayRecordRow.day <= range_end,
        )
        .order_by(DayRecordRow.day.asc())
    )


def stale_open_days_stmt(before_day: date) -> Select:
    return (
        select(DayRecordRow)
        .options(selectinload(DayRecordRow.events))
        .where(DayRecordRow.status == DayStatus.OPEN, DayRecordRow.day < before_day)
        .order_by(DayRecordRow.day.asc(), DayRecordRow.employee_id.asc())
    )


class SqlDayRecordStore:
    """Day record store over the Flask-SQLAlchemy session.

    ``lock_rows`` loads existing day rows with ``SELECT ... FOR UPDATE`` so
    concurrent writers to the same (employee, date) are serialized by the
    database. A row that does not exist yet cannot be locked: two first
    writers race on ``uq_day_records_employee_date`` and the loser gets
    ``ConcurrentWrite`` from ``save_day_record``.
    Commit and rollback belong to the caller.
    """

    def __init__(self, lock_rows: bool = False) -> None:
        self.lock_rows = lock_rows

    def _row_for(self, employee_id: uuid.UUID, day: date) -> DayRecordRow | None:
        stmt = (
            select(DayRecordRow)
            .options(selectinload(DayRecordRow.events))
            .where(DayRecordRow.employee_id == employee_id, DayRecordRow.day == day)
        )
        if self.lock_rows:
            stmt = stmt.with_for_update()
        return db.session.execute(stmt).scalar_one_or_none()

    def get_day_record(self, employee_id: uuid.UUID, day: date) -> DayRecord | None:
        row = self._row_for(employee_id, day)
        if row is None:
            return None
        return record_from_row(row)

    def list_day_records(self, employee_id: uuid.UUID, range_start: date, range_end: date) -> list[DayRecord]:
        stmt = day_records_between_stmt(employee_id, range_start, range_end)
        return [record_from_row(row) for row in db.session.execute(stmt).scalars().all()]

    def list_stale_open_days(self, before_day: date) -> list[DayRecord]:
        stmt = stale_open_days_stmt(before_day)
        if self.lock_rows:
            stmt = stmt.with_for_update()
        return [record_from_row(row) for row in db.session.execute(stmt).scalars().all()]

    def save_day_record(self, record: DayRecord) -> DayRecord:
        row = db.session.get(DayRecordRow, record.id)
        if row is None:
            row = DayRecordRow(id=record.id, employee_id=record.employee_id, day=record.date)
            db.session.add(row)

        row.status = record.status
        row.worked_hours = record.worked_hours
        row.paused_hours = record.paused_hours
        row.mass_corrected = record.mass_corrected
        row.auto_completed = record.auto_completed

        existing = {event_row.id: event_row for event_row in row.events}
        for event in record.events:
            event_row = existing.get(event.id)
            if event_row is None:
                row.events.append(
                    ClockEventRow(
                        id=event.id,
                        type=event.type,
                        ts=event.timestamp,
                        original_ts=event.original_timestamp,
                        edited_by=event.edited_by,
                        edit_reason=event.edit_reason,
                        source=event.source,
                    )
                )
                continue

            if ensure_utc(event_row.ts) != event.timestamp:
                event_row.ts = event.timestamp
            if event_row.original_ts is None and event.original_timestamp is not None:
                event_row.original_ts = event.original_timestamp
            if event_row.edited_by != event.edited_by:
                event_row.edited_by = event.edited_by
            if event_row.edit_reason != event.edit_reason:
                event_row.edit_reason = event.edit_reason

        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConcurrentWrite(
                f"Day {record.date.isoformat()} of employee {record.employee_id} was written concurrently."
            ) from exc
        return record


def punch_from_row(row: PunchCorrectionRequest) -> PunchCorrection:
    return PunchCorrection(
        id=row.id,
        employee_id=row.employee_id,
        date=row.day,
        requested_timestamp=ensure_utc(row.requested_ts),
        reason=row.reason,
        requested_by=row.requested_by,
        event_id=row.event_id,
        requested_type=row.requested_type,
        status=row.status,
        decided_by=row.decided_by,
        decision_comment=row.decision_comment,
        created_at=ensure_utc(row.created_at) if row.created_at is not None else None,
        decided_at=ensure_utc(row.decided_at) if row.decided_at is not None else None,
    )


class SqlPunchCorrectionStore:
    """Correction requests over the Flask-SQLAlchemy session."""

    def __init__(self, lock_rows: bool = False) -> None:
        self.lock_rows = lock_rows

    def get(self, request_id: uuid.UUID) -> PunchCorrection | None:
        stmt = select(PunchCorrectionRequest).where(PunchCorrectionRequest.id == request_id)
        if self.lock_rows:
            stmt = stmt.with_for_update()
        row = db.session.execute(stmt).scalar_one_or_none()
        if row is None:
            return None
        return punch_from_row(row)

    def list_for_employee(
        self,
        employee_id: uuid.UUID,
        status: PunchCorrectionStatus | None = None,
    ) -> list[PunchCorrection]:
        stmt = select(PunchCorrectionRequest).where(PunchCorrectionRequest.employee_id == employee_id)
        if status is not None:
            stmt = stmt.where(PunchCorrectionRequest.status == status)
        stmt = stmt.order_by(PunchCorrectionRequest.day.asc(), PunchCorrectionRequest.created_at.asc())
        return [punch_from_row(row) for row in db.session.execute(stmt).scalars().all()]

    def save(self, punch: PunchCorrection) -> PunchCorrection:
        row = db.session.get(PunchCorrectionRequest, punch.id)
        if row is None:
            row = PunchCorrectionRequest(
                id=punch.id,
                employee_id=punch.employee_id,
                day=punch.date,
                event_id=punch.event_id,
                requested_type=punch.requested_type,
                requested_ts=punch.requested_timestamp,
                reason=punch.reason,
                requested_by=punch.requested_by,
            )
            if punch.created_at is not None:
                row.created_at = punch.created_at
            db.session.add(row)

        row.status = punch.status
        row.decided_by = punch.decided_by
        row.decision_comment = punch.decision_comment
        row.decided_at = punch.decided_at
        db.session.flush()
        return punch
