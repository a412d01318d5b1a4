"""Correction and approval state machine for day records.

Day lifecycle::

    open -> finalized -> under_review | approved
    under_review -> finalized | approved

Finalizing caches the day totals. Every other transition clears the cache so
the next read folds the (possibly edited) events again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable, Mapping, Sequence

from fichajes.aggregation import aggregate_events, sort_events, validate_sequence
from fichajes.domain import ClockEvent, CorrectionRequest, DayRecord, DayStatus, EventInsertion, EventSource
from fichajes.errors import (
    FichajeError,
    InvalidFormat,
    InvalidSequence,
    InvalidTransition,
    NotFound,
    PartialBatchFailure,
)
from fichajes.normalizer import ensure_utc


logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_DAYS = 50

_FINALIZABLE = (DayStatus.OPEN, DayStatus.UNDER_REVIEW)
_APPROVABLE = (DayStatus.FINALIZED, DayStatus.UNDER_REVIEW)
_REOPENED_BY_CORRECTION = (DayStatus.FINALIZED, DayStatus.APPROVED)


def invalidate_totals(day: DayRecord) -> None:
    day.worked_hours = None
    day.paused_hours = None


def finalize(day: DayRecord) -> DayRecord:
    if day.status not in _FINALIZABLE:
        raise InvalidTransition(f"Cannot finalize a day in status {day.status.value}.")

    totals = aggregate_events(day.events)
    previous = day.status
    day.status = DayStatus.FINALIZED
    day.worked_hours = totals.worked_hours
    day.paused_hours = totals.paused_hours
    logger.info("Day %s of %s: %s -> finalized", day.date, day.employee_id, previous.value)
    return day


def request_review(day: DayRecord) -> DayRecord:
    if day.status != DayStatus.FINALIZED:
        raise InvalidTransition(f"Cannot review a day in status {day.status.value}.")
    day.status = DayStatus.UNDER_REVIEW
    invalidate_totals(day)
    logger.info("Day %s of %s: finalized -> under_review", day.date, day.employee_id)
    return day


def approve(day: DayRecord) -> DayRecord:
    if day.status not in _APPROVABLE:
        raise InvalidTransition(f"Cannot approve a day in status {day.status.value}.")
    previous = day.status
    day.status = DayStatus.APPROVED
    invalidate_totals(day)
    logger.info("Day %s of %s: %s -> approved", day.date, day.employee_id, previous.value)
    return day


def _status_after_correction(status: DayStatus, mass: bool) -> DayStatus:
    if mass:
        return status
    if status in _REOPENED_BY_CORRECTION:
        return DayStatus.UNDER_REVIEW
    return status


def corrected_event(event: ClockEvent, request: CorrectionRequest) -> ClockEvent:
    """Return ``event`` moved to the requested instant.

    The first pre-correction timestamp is kept in ``original_timestamp``;
    later corrections only move ``timestamp``.
    """
    original = event.original_timestamp if event.original_timestamp is not None else event.timestamp
    return replace(
        event,
        timestamp=ensure_utc(request.new_timestamp),
        original_timestamp=original,
        edited_by=request.actor,
        edit_reason=request.reason,
    )


def inserted_event(insertion: EventInsertion) -> ClockEvent:
    return ClockEvent(
        id=insertion.event_id,
        type=insertion.type,
        timestamp=ensure_utc(insertion.timestamp),
        edited_by=insertion.actor,
        edit_reason=insertion.reason,
        source=EventSource.MANUAL,
    )


def _validate_request(request: CorrectionRequest | EventInsertion) -> None:
    if not (request.reason or "").strip():
        raise InvalidFormat("A correction requires a reason.")
    if not (request.actor or "").strip():
        raise InvalidFormat("A correction requires an actor.")


def _corrected_events(
    day: DayRecord,
    requests: Sequence[CorrectionRequest],
    insertions: Sequence[EventInsertion] = (),
) -> list[ClockEvent]:
    events = list(day.events)
    for request in requests:
        _validate_request(request)
        for index, event in enumerate(events):
            if event.id == request.event_id:
                events[index] = corrected_event(event, request)
                break
        else:
            raise NotFound(f"Event {request.event_id} does not belong to day {day.date.isoformat()}.")

    known_ids = {event.id for event in events}
    for insertion in insertions:
        _validate_request(insertion)
        if insertion.event_id in known_ids:
            raise InvalidFormat(f"Event {insertion.event_id} already exists.")
        known_ids.add(insertion.event_id)
        events.append(inserted_event(insertion))

    ordered = sort_events(events)
    validate_sequence(ordered)
    return ordered


def _apply(day: DayRecord, events: list[ClockEvent], mass: bool) -> DayRecord:
    previous = day.status
    day.events = events
    day.status = _status_after_correction(day.status, mass)
    if mass:
        day.mass_corrected = True
    invalidate_totals(day)
    if previous != day.status:
        logger.info("Day %s of %s: %s -> %s", day.date, day.employee_id, previous.value, day.status.value)
    return day


def correct_events(
    day: DayRecord | None,
    requests: Sequence[CorrectionRequest],
    mass: bool = False,
    insertions: Sequence[EventInsertion] = (),
) -> DayRecord:
    """Apply every request and insertion to ``day`` or none of them."""
    if day is None:
        raise NotFound("Day record not found.")
    events = _corrected_events(day, requests, insertions)
    return _apply(day, events, mass)


def correct_event(day: DayRecord | None, request: CorrectionRequest, mass: bool = False) -> DayRecord:
    return correct_events(day, [request], mass=mass)


def insert_event(day: DayRecord | None, insertion: EventInsertion, mass: bool = False) -> DayRecord:
    """Add a forgotten clock event at its real time, as a correction."""
    return correct_events(day, [], mass=mass, insertions=[insertion])


def auto_complete(day: DayRecord | None, proposed_events: Iterable[ClockEvent]) -> DayRecord:
    """Add the proposed events whose type is missing from the day."""
    if day is None:
        raise NotFound("Day record not found.")

    present_types = {event.type for event in day.events}
    additions = [event for event in proposed_events if event.type not in present_types]
    if not additions:
        raise InvalidSequence("No missing events to complete for this day.")

    events = sort_events([*day.events, *additions])
    validate_sequence(events)

    _apply(day, events, mass=False)
    day.auto_completed = True
    return day


@dataclass
class BatchOutcome:
    corrected: list[DayRecord] = field(default_factory=list)
    failed: dict[date, FichajeError] = field(default_factory=dict)
    would_succeed: list[date] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        if self.failed:
            raise PartialBatchFailure(self)


def correct_batch(
    days: Mapping[date, DayRecord | None],
    requests: Mapping[date, Sequence[CorrectionRequest]],
    mass: bool = False,
    max_days: int = DEFAULT_MAX_BATCH_DAYS,
    insertions: Mapping[date, Sequence[EventInsertion]] | None = None,
) -> BatchOutcome:
    """Correct several days together.

    Every targeted day is validated before any is touched. When one fails,
    no day is modified and the outcome lists the failures next to the days
    that would have succeeded.
    """
    insertions = insertions or {}
    targets = sorted(set(requests) | set(insertions))
    if len(targets) > max_days:
        raise InvalidFormat(f"A batch may target at most {max_days} days.")

    outcome = BatchOutcome()
    planned: list[tuple[DayRecord, list[ClockEvent]]] = []

    for day_key in targets:
        day = days.get(day_key)
        try:
            if day is None:
                raise NotFound(f"No day record for {day_key.isoformat()}.")
            planned.append((day, _corrected_events(day, requests.get(day_key, ()), insertions.get(day_key, ()))))
            outcome.would_succeed.append(day_key)
        except FichajeError as exc:
            outcome.failed[day_key] = exc

    if outcome.failed:
        logger.warning(
            "Batch correction rejected: %d of %d days failed",
            len(outcome.failed),
            len(targets),
        )
        return outcome

    for day, events in planned:
        outcome.corrected.append(_apply(day, events, mass))
    return outcome
