"""Value types shared by the engine modules.

Day records own their clock events by value. Persistence maps these values
to and from ORM rows (see ``fichajes.store``); the engine never sees a
session.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal


class ClockEventType(str, enum.Enum):
    ENTRADA = "entrada"
    PAUSA_INICIO = "pausa_inicio"
    PAUSA_FIN = "pausa_fin"
    SALIDA = "salida"


class DayStatus(str, enum.Enum):
    OPEN = "open"
    FINALIZED = "finalized"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"


class EventSource(str, enum.Enum):
    WEB = "WEB"
    MOBILE = "MOBILE"
    KIOSK = "KIOSK"
    API = "API"
    AUTO = "AUTO"
    MANUAL = "MANUAL"


class PresenceState(str, enum.Enum):
    SIN_FICHAR = "sin_fichar"
    TRABAJANDO = "trabajando"
    EN_PAUSA = "en_pausa"
    FINALIZADO = "finalizado"


@dataclass(frozen=True)
class ClockEvent:
    type: ClockEventType
    timestamp: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    original_timestamp: datetime | None = None
    edited_by: str | None = None
    edit_reason: str | None = None
    source: EventSource = EventSource.WEB

    @property
    def edited(self) -> bool:
        return self.original_timestamp is not None or self.edited_by is not None


@dataclass
class DayRecord:
    employee_id: uuid.UUID
    date: date
    status: DayStatus = DayStatus.OPEN
    events: list[ClockEvent] = field(default_factory=list)
    worked_hours: Decimal | None = None
    paused_hours: Decimal | None = None
    mass_corrected: bool = False
    auto_completed: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(frozen=True)
class CorrectionRequest:
    """Exactly the fields a correction may change on one clock event."""

    event_id: uuid.UUID
    new_timestamp: datetime
    reason: str
    actor: str


@dataclass(frozen=True)
class EventInsertion:
    """A missing clock event added to a closed day at its real time."""

    type: ClockEventType
    timestamp: datetime
    reason: str
    actor: str
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)


class PunchCorrectionStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


@dataclass
class PunchCorrection:
    """An employee's request to fix one clock event of a day.

    ``event_id`` targets an existing event to move to ``requested_timestamp``.
    Without it, ``requested_type`` names a missing event to insert there.
    """

    employee_id: uuid.UUID
    date: date
    requested_timestamp: datetime
    reason: str
    requested_by: str
    event_id: uuid.UUID | None = None
    requested_type: ClockEventType | None = None
    status: PunchCorrectionStatus = PunchCorrectionStatus.REQUESTED
    decided_by: str | None = None
    decision_comment: str | None = None
    created_at: datetime | None = None
    decided_at: datetime | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def pending(self) -> bool:
        return self.status == PunchCorrectionStatus.REQUESTED


@dataclass(frozen=True)
class DayTotals:
    worked_hours: Decimal
    paused_hours: Decimal
    is_open: bool


@dataclass(frozen=True)
class PeriodDay:
    date: date
    worked_hours: Decimal
    expected_hours: Decimal
    balance_hours: Decimal
    has_record: bool
    status: DayStatus | None
    is_open: bool
    justified: bool | None = None


@dataclass(frozen=True)
class PeriodSummary:
    employee_id: uuid.UUID
    range_start: date
    range_end: date
    total_worked_hours: Decimal
    total_expected_hours: Decimal
    balance_hours: Decimal
    days_without_clocking: int
    days_open: int = 0
    days_justified: int = 0
    days_unjustified: int = 0
    days: list[PeriodDay] = field(default_factory=list)


@dataclass(frozen=True)
class AuditEntry:
    action: str
    employee_id: uuid.UUID
    date: date
    actor: str | None
    timestamp: datetime
    event_id: uuid.UUID | None = None
    old_timestamp: datetime | None = None
    new_timestamp: datetime | None = None
    reason: str | None = None
    request_id: uuid.UUID | None = None
