"""Employee-submitted correction requests and their decision.

A request either moves one existing event of a day to the instant the
employee says it happened, or asks for a missing event to be inserted.
Nothing on the day changes until a manager approves it; approval then runs
the ordinary correction path with the manager as actor.

Request lifecycle::

    REQUESTED -> APPROVED | REJECTED | CANCELLED
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from fichajes import corrections
from fichajes.domain import (
    CorrectionRequest,
    DayRecord,
    EventInsertion,
    PunchCorrection,
    PunchCorrectionStatus,
)
from fichajes.errors import InvalidFormat, InvalidTransition, NotFound
from fichajes.normalizer import ensure_utc


logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return ensure_utc(now) if now is not None else datetime.now(timezone.utc)


def submit_request(
    day: DayRecord | None,
    punch: PunchCorrection,
    pending: Iterable[PunchCorrection] = (),
    now: datetime | None = None,
) -> PunchCorrection:
    if day is None:
        raise NotFound("Day record not found.")
    if not (punch.reason or "").strip():
        raise InvalidFormat("A correction request requires a reason.")
    if not (punch.requested_by or "").strip():
        raise InvalidFormat("A correction request requires the requesting employee.")
    if (punch.event_id is None) == (punch.requested_type is None):
        raise InvalidFormat("Name either the event to move or the type of the missing event.")

    if punch.event_id is not None:
        if not any(event.id == punch.event_id for event in day.events):
            raise NotFound(f"Event {punch.event_id} does not belong to day {day.date.isoformat()}.")
        if any(other.pending and other.event_id == punch.event_id for other in pending):
            raise InvalidTransition("A pending request already exists for that event.")

    punch.status = PunchCorrectionStatus.REQUESTED
    punch.requested_timestamp = ensure_utc(punch.requested_timestamp)
    punch.created_at = _now(now)
    logger.info("Correction request %s submitted for %s on %s", punch.id, punch.employee_id, punch.date)
    return punch


def changes_for(punch: PunchCorrection, actor: str) -> tuple[list[CorrectionRequest], list[EventInsertion]]:
    """The corrections an approved ``punch`` applies, authored by ``actor``."""
    if punch.event_id is not None:
        request = CorrectionRequest(
            event_id=punch.event_id,
            new_timestamp=punch.requested_timestamp,
            reason=punch.reason,
            actor=actor,
        )
        return [request], []
    insertion = EventInsertion(
        type=punch.requested_type,
        timestamp=punch.requested_timestamp,
        reason=punch.reason,
        actor=actor,
    )
    return [], [insertion]


def _decide(
    punch: PunchCorrection,
    status: PunchCorrectionStatus,
    decided_by: str | None,
    comment: str | None,
    now: datetime | None,
) -> PunchCorrection:
    if not punch.pending:
        raise InvalidTransition(f"The request was already {punch.status.value.lower()}.")
    punch.status = status
    punch.decided_by = decided_by
    punch.decision_comment = comment
    punch.decided_at = _now(now)
    logger.info("Correction request %s -> %s", punch.id, status.value)
    return punch


def approve_request(
    day: DayRecord | None,
    punch: PunchCorrection,
    decided_by: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> tuple[list[CorrectionRequest], list[EventInsertion]]:
    """Apply ``punch`` to ``day`` and mark it approved.

    Returns the corrections that were applied. When they do not fit the
    day's sequence the request stays pending and the error propagates.
    """
    if not punch.pending:
        raise InvalidTransition(f"The request was already {punch.status.value.lower()}.")
    if not (decided_by or "").strip():
        raise InvalidFormat("Approving a request requires an actor.")

    requests, insertions = changes_for(punch, decided_by)
    corrections.correct_events(day, requests, insertions=insertions)
    _decide(punch, PunchCorrectionStatus.APPROVED, decided_by, comment, now)
    return requests, insertions


def reject_request(
    punch: PunchCorrection,
    decided_by: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> PunchCorrection:
    if not (decided_by or "").strip():
        raise InvalidFormat("Rejecting a request requires an actor.")
    return _decide(punch, PunchCorrectionStatus.REJECTED, decided_by, comment, now)


def cancel_request(punch: PunchCorrection, now: datetime | None = None) -> PunchCorrection:
    return _decide(punch, PunchCorrectionStatus.CANCELLED, punch.requested_by, None, now)
