"""Audit logging sink."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from fichajes.domain import AuditEntry
from fichajes.extensions import db
from fichajes.models import AuditLog


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str(value: uuid.UUID | None) -> str | None:
    return str(value) if value is not None else None


def audit_payload(entry: AuditEntry) -> dict[str, Any]:
    return {
        "employee_id": str(entry.employee_id),
        "date": entry.date.isoformat(),
        "event_id": _str(entry.event_id),
        "request_id": _str(entry.request_id),
        "old_timestamp": _iso(entry.old_timestamp),
        "new_timestamp": _iso(entry.new_timestamp),
        "actor": entry.actor,
        "reason": entry.reason,
        "timestamp": entry.timestamp.isoformat(),
    }


def _entity(entry: AuditEntry) -> tuple[str, uuid.UUID | None]:
    if entry.event_id is not None:
        return "clock_event", entry.event_id
    if entry.request_id is not None:
        return "punch_correction_request", entry.request_id
    return "day_record", None


class SqlAuditSink:
    """Adds ``audit_log`` rows to the current session; the caller commits."""

    def emit(self, entry: AuditEntry) -> None:
        entity_type, entity_id = _entity(entry)
        db.session.add(
            AuditLog(
                employee_id=entry.employee_id,
                actor=entry.actor,
                action=entry.action,
                entity_type=entity_type,
                entity_id=entity_id,
                payload_json=audit_payload(entry),
                ts=entry.timestamp,
            )
        )
