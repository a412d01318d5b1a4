"""Daily aggregation of clock events into worked and paused hours.

Events are folded in timestamp order. An ``entrada``/``salida`` pair is a
work span; ``pausa_inicio``/``pausa_fin`` pairs inside it are subtracted.
Durations stay in milliseconds until the single final rounding to hundredths
of an hour.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable
from zoneinfo import ZoneInfo

from fichajes.domain import ClockEvent, ClockEventType, DayRecord, DayTotals, PresenceState
from fichajes.errors import InvalidSequence, OutsideClockLimits
from fichajes.normalizer import UTC, ensure_utc


ZERO_HOURS = Decimal("0.00")
_MS_PER_HOUR = Decimal(3_600_000)
_HUNDREDTHS = Decimal("0.01")
_ONE_MS = timedelta(milliseconds=1)


def _span_ms(start: datetime, end: datetime) -> int:
    delta = ensure_utc(end) - ensure_utc(start)
    return max(0, delta // _ONE_MS)


def round_hours(value: Decimal) -> Decimal:
    return value.quantize(_HUNDREDTHS, rounding=ROUND_HALF_UP)


def ms_to_hours(milliseconds: int) -> Decimal:
    return round_hours(Decimal(milliseconds) / _MS_PER_HOUR)


def sort_events(events: Iterable[ClockEvent]) -> list[ClockEvent]:
    return sorted(events, key=lambda event: ensure_utc(event.timestamp))


def _fold(events: list[ClockEvent]) -> tuple[int, int, bool]:
    worked_ms = 0
    paused_ms = 0
    span_start: datetime | None = None
    pause_start: datetime | None = None
    span_paused_ms = 0

    for event in sort_events(events):
        if event.type == ClockEventType.ENTRADA:
            if span_start is not None:
                # A second entrada without salida restarts the open span.
                span_paused_ms = 0
                pause_start = None
            span_start = event.timestamp
            continue

        if span_start is None:
            continue

        if event.type == ClockEventType.PAUSA_INICIO:
            if pause_start is None:
                pause_start = event.timestamp
            continue

        if event.type == ClockEventType.PAUSA_FIN:
            if pause_start is not None:
                span_paused_ms += _span_ms(pause_start, event.timestamp)
                pause_start = None
            continue

        # salida closes the span, and an open pause with it.
        if pause_start is not None:
            span_paused_ms += _span_ms(pause_start, event.timestamp)
            pause_start = None
        span_ms = _span_ms(span_start, event.timestamp)
        worked_ms += max(0, span_ms - span_paused_ms)
        paused_ms += span_paused_ms
        span_start = None
        span_paused_ms = 0

    return worked_ms, paused_ms, span_start is not None


def aggregate_events(events: Iterable[ClockEvent]) -> DayTotals:
    worked_ms, paused_ms, is_open = _fold(list(events))
    return DayTotals(
        worked_hours=ms_to_hours(worked_ms),
        paused_hours=ms_to_hours(paused_ms),
        is_open=is_open,
    )


def compute_worked_hours(day: DayRecord | None) -> Decimal:
    """Return the worked hours of ``day``.

    A cached ``worked_hours`` value is returned as is. Open spans contribute
    nothing, so a day with only an ``entrada`` yields ``0.00``.
    """
    if day is None:
        return ZERO_HOURS
    if day.worked_hours is not None:
        return day.worked_hours
    return aggregate_events(day.events).worked_hours


def compute_paused_hours(day: DayRecord | None) -> Decimal:
    if day is None:
        return ZERO_HOURS
    if day.paused_hours is not None:
        return day.paused_hours
    return aggregate_events(day.events).paused_hours


def presence_state(events: Iterable[ClockEvent]) -> PresenceState:
    state = PresenceState.SIN_FICHAR
    for event in sort_events(events):
        if event.type == ClockEventType.ENTRADA:
            state = PresenceState.TRABAJANDO
        elif event.type == ClockEventType.PAUSA_INICIO and state == PresenceState.TRABAJANDO:
            state = PresenceState.EN_PAUSA
        elif event.type == ClockEventType.PAUSA_FIN and state == PresenceState.EN_PAUSA:
            state = PresenceState.TRABAJANDO
        elif event.type == ClockEventType.SALIDA and state != PresenceState.SIN_FICHAR:
            state = PresenceState.FINALIZADO
    return state


_ALLOWED_AFTER: dict[PresenceState, tuple[ClockEventType, ...]] = {
    PresenceState.SIN_FICHAR: (ClockEventType.ENTRADA,),
    PresenceState.TRABAJANDO: (ClockEventType.PAUSA_INICIO, ClockEventType.SALIDA),
    PresenceState.EN_PAUSA: (ClockEventType.PAUSA_FIN,),
    PresenceState.FINALIZADO: (ClockEventType.ENTRADA,),
}

_NEXT_STATE: dict[ClockEventType, PresenceState] = {
    ClockEventType.ENTRADA: PresenceState.TRABAJANDO,
    ClockEventType.PAUSA_INICIO: PresenceState.EN_PAUSA,
    ClockEventType.PAUSA_FIN: PresenceState.TRABAJANDO,
    ClockEventType.SALIDA: PresenceState.FINALIZADO,
}


def validate_sequence(events: Iterable[ClockEvent]) -> PresenceState:
    """Check clocking order and return the resulting presence state.

    Events are checked in the order given. Timestamps must not go backwards
    and types must follow entrada, then any number of pausa_inicio/pausa_fin
    pairs, then salida. The cycle may repeat within a day.
    """
    state = PresenceState.SIN_FICHAR
    previous_ts: datetime | None = None

    for event in events:
        current_ts = ensure_utc(event.timestamp)
        if previous_ts is not None and current_ts < previous_ts:
            raise InvalidSequence(
                f"Event {event.type.value} at {current_ts.isoformat()} is earlier than the previous event."
            )
        previous_ts = current_ts

        if event.type not in _ALLOWED_AFTER[state]:
            raise InvalidSequence(f"Event {event.type.value} is not allowed while {state.value}.")
        state = _NEXT_STATE[event.type]

    return state


def validate_new_event(
    events: Iterable[ClockEvent],
    event_type: ClockEventType,
    timestamp: datetime,
) -> PresenceState:
    ordered = sort_events(events)
    state = validate_sequence(ordered)

    if ordered and ensure_utc(timestamp) < ensure_utc(ordered[-1].timestamp):
        raise InvalidSequence("The event must be later than the last recorded event.")
    if event_type not in _ALLOWED_AFTER[state]:
        messages = {
            ClockEventType.ENTRADA: "There is already an active entrada.",
            ClockEventType.PAUSA_INICIO: "A pause can only start while working.",
            ClockEventType.PAUSA_FIN: "There is no pause in progress.",
            ClockEventType.SALIDA: "There is no work span in progress.",
        }
        raise InvalidSequence(messages[event_type])
    return _NEXT_STATE[event_type]


def validate_clock_limits(
    timestamp: datetime,
    earliest: time | None,
    latest: time | None,
    tz: ZoneInfo = UTC,
) -> None:
    """Reject a clock time outside ``[earliest, latest]``.

    The comparison is on the local wall clock to the minute, so 18:00:45 is
    still within a window that ends at 18:00.
    """
    local = ensure_utc(timestamp).astimezone(tz).time().replace(second=0, microsecond=0)
    if earliest is not None and local < earliest:
        raise OutsideClockLimits(f"Cannot clock before {earliest.strftime('%H:%M')}.")
    if latest is not None and local > latest:
        raise OutsideClockLimits(f"Cannot clock after {latest.strftime('%H:%M')}.")
