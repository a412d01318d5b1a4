"""Typed errors raised by the time-tracking engine.

Every failure is scoped to one operation. Route handlers map ``code`` to a
status code and a user-facing message.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fichajes.corrections import BatchOutcome


class FichajeError(Exception):
    code = "fichaje_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidFormat(FichajeError):
    """Malformed date/time string or request payload."""

    code = "invalid_format"


class InvalidSequence(FichajeError):
    """The resulting event sequence would break clocking order."""

    code = "invalid_sequence"


class NotFound(FichajeError):
    code = "not_found"


class InvalidTransition(FichajeError):
    """The day status does not allow the requested transition."""

    code = "invalid_transition"


class PartialBatchFailure(FichajeError):
    code = "partial_batch_failure"

    def __init__(self, outcome: "BatchOutcome") -> None:
        failed_days = ", ".join(day.isoformat() for day in sorted(outcome.failed))
        super().__init__(f"Batch correction failed for: {failed_days}")
        self.outcome = outcome

    @property
    def failed(self) -> dict[date, FichajeError]:
        return self.outcome.failed

    @property
    def would_succeed(self) -> list[date]:
        return self.outcome.would_succeed


class ConcurrentWrite(FichajeError):
    """Another writer created or changed the same day record first."""

    code = "conflict"


class OutsideClockLimits(FichajeError):
    """The clock time falls outside the window the employee's schedule allows."""

    code = "outside_clock_limits"
