"""Parsing of raw clock timestamps into day keys and UTC instants."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fichajes.errors import InvalidFormat


logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")
_CLOCK_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def resolve_timezone(tz_name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r. Falling back to UTC.", tz_name)
        return UTC


def _parse_iso_datetime(raw: str) -> datetime | None:
    candidate = raw.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _parse_clock_offset(raw: str) -> timedelta | None:
    match = _CLOCK_TIME_RE.match(raw.strip())
    if match is None:
        return None
    return timedelta(
        hours=int(match.group(1)),
        minutes=int(match.group(2)),
        seconds=int(match.group(3) or 0),
    )


def _to_local(value: datetime, tz: ZoneInfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def normalize_date(raw: str, tz: ZoneInfo = UTC) -> date:
    """Return the local calendar day referenced by ``raw``.

    ``raw`` may be a bare ISO date (``2026-02-10``) or a full ISO date-time.
    Aware date-times are converted into ``tz`` before truncation; naive ones
    are read as local time.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidFormat(f"Invalid date: {raw!r}")

    parsed = _parse_iso_datetime(raw)
    if parsed is None:
        raise InvalidFormat(f"Invalid date: {raw!r}")
    if len(raw.strip()) == 10:
        return parsed.date()
    return _to_local(parsed, tz).date()


def normalize_time(raw: str, reference_date: date, tz: ZoneInfo = UTC) -> datetime:
    """Return the UTC instant of ``raw`` anchored on ``reference_date``.

    ``HH:mm`` (or ``HH:mm:ss``) is combined with the reference day. Values
    past the end of their unit carry over, so ``24:00`` is midnight of the
    next day and ``12:60`` is ``13:00``. For a full ISO date-time the local
    hour and minute are kept and the date part is replaced by the reference
    day.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidFormat(f"Invalid time: {raw!r}")

    offset = _parse_clock_offset(raw)
    if offset is None:
        if "T" not in raw and " " not in raw.strip():
            raise InvalidFormat(f"Invalid time: {raw!r}")
        parsed = _parse_iso_datetime(raw)
        if parsed is None:
            raise InvalidFormat(f"Invalid time: {raw!r}")
        local = _to_local(parsed, tz)
        offset = timedelta(hours=local.hour, minutes=local.minute, seconds=local.second)

    local_ts = datetime.combine(reference_date, time.min, tzinfo=tz) + offset
    return local_ts.astimezone(timezone.utc)


def normalize_instant(raw: str, tz: ZoneInfo = UTC) -> datetime:
    """Parse a full ISO date-time into an aware UTC instant."""
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidFormat(f"Invalid timestamp: {raw!r}")
    parsed = _parse_iso_datetime(raw)
    if parsed is None or len(raw.strip()) == 10:
        raise InvalidFormat(f"Invalid timestamp: {raw!r}")
    return _to_local(parsed, tz).astimezone(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return aware.astimezone(timezone.utc)


def day_key(instant: datetime, tz: ZoneInfo = UTC) -> date:
    return ensure_utc(instant).astimezone(tz).date()


def day_bounds_utc(day: date, tz: ZoneInfo = UTC) -> tuple[datetime, datetime]:
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = datetime.combine(day, time.max, tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def iter_days(start_day: date, end_day: date) -> list[date]:
    total_days = (end_day - start_day).days
    return [start_day + timedelta(days=offset) for offset in range(total_days + 1)]
