"""JSON routes over the time-tracking service."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from flask import Blueprint, Response, current_app, request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from fichajes.aggregation import aggregate_events, presence_state
from fichajes.corrections import BatchOutcome
from fichajes.domain import (
    ClockEvent,
    ClockEventType,
    CorrectionRequest,
    DayRecord,
    EventInsertion,
    EventSource,
    PunchCorrection,
    PunchCorrectionStatus,
)
from fichajes.errors import FichajeError, InvalidFormat, PartialBatchFailure
from fichajes.forms import (
    BatchCorrectionItemForm,
    BatchInsertionItemForm,
    BatchOptionsForm,
    ClockEventForm,
    CloseDaysForm,
    CorrectionForm,
    CorrectionRequestQueryForm,
    DayActionForm,
    DecisionForm,
    EventInsertionForm,
    PunchCorrectionForm,
    SummaryQueryForm,
)
from fichajes.normalizer import normalize_date, normalize_instant, normalize_time, resolve_timezone
from fichajes.periods import month_range, week_range, year_to_date_range
from fichajes.report_export import summary_payload, summary_to_csv_bytes, summary_to_json_bytes
from fichajes.service import build_service, today_local


bp = Blueprint("fichajes", __name__, url_prefix="/api")

ERROR_STATUS = {
    "invalid_format": 400,
    "not_found": 404,
    "invalid_transition": 409,
    "partial_batch_failure": 409,
    "invalid_sequence": 422,
    "outside_clock_limits": 422,
    "conflict": 409,
}


def _app_timezone():
    return resolve_timezone(current_app.config.get("APP_TIMEZONE"))


def _form_errors(form: FlaskForm) -> str:
    parts = []
    for field_name, messages in form.errors.items():
        parts.append(f"{field_name}: {'; '.join(str(message) for message in messages)}")
    return ". ".join(parts) or "Invalid request payload."


def _require_valid(form: FlaskForm) -> None:
    if not form.validate():
        raise InvalidFormat(_form_errors(form))


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidFormat("The request body must be a JSON object.")
    return payload


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def _event_payload(event: ClockEvent) -> dict[str, Any]:
    return {
        "id": str(event.id),
        "type": event.type.value,
        "timestamp": event.timestamp.isoformat(),
        "original_timestamp": _iso(event.original_timestamp),
        "edited": event.edited,
        "edited_by": event.edited_by,
        "edit_reason": event.edit_reason,
        "source": event.source.value,
    }


def _day_payload(record: DayRecord) -> dict[str, Any]:
    totals = aggregate_events(record.events)
    return {
        "id": str(record.id),
        "employee_id": str(record.employee_id),
        "date": record.date.isoformat(),
        "status": record.status.value,
        "presence": presence_state(record.events).value,
        "events": [_event_payload(event) for event in record.events],
        "worked_hours": str(record.worked_hours if record.worked_hours is not None else totals.worked_hours),
        "paused_hours": str(record.paused_hours if record.paused_hours is not None else totals.paused_hours),
        "cached": record.worked_hours is not None,
        "is_open": totals.is_open,
        "mass_corrected": record.mass_corrected,
        "auto_completed": record.auto_completed,
    }


def _outcome_payload(outcome: BatchOutcome) -> dict[str, Any]:
    return {
        "corrected": [_day_payload(record) for record in outcome.corrected],
        "failed": {
            day.isoformat(): {"error": error.code, "message": error.message}
            for day, error in sorted(outcome.failed.items())
        },
        "would_succeed": [day.isoformat() for day in outcome.would_succeed],
    }


def _correction_request(form: CorrectionForm, day: date) -> CorrectionRequest:
    return CorrectionRequest(
        event_id=uuid.UUID(form.event_id.data),
        new_timestamp=normalize_time(form.new_time.data, day, _app_timezone()),
        reason=form.reason.data,
        actor=form.actor.data,
    )


def _event_insertion(form: EventInsertionForm, day: date) -> EventInsertion:
    return EventInsertion(
        type=ClockEventType(form.type.data),
        timestamp=normalize_time(form.time.data, day, _app_timezone()),
        reason=form.reason.data,
        actor=form.actor.data,
    )


def _punch_payload(punch: PunchCorrection) -> dict[str, Any]:
    return {
        "id": str(punch.id),
        "employee_id": str(punch.employee_id),
        "date": punch.date.isoformat(),
        "event_id": str(punch.event_id) if punch.event_id is not None else None,
        "requested_type": punch.requested_type.value if punch.requested_type is not None else None,
        "requested_timestamp": punch.requested_timestamp.isoformat(),
        "reason": punch.reason,
        "requested_by": punch.requested_by,
        "status": punch.status.value,
        "decided_by": punch.decided_by,
        "decision_comment": punch.decision_comment,
        "created_at": _iso(punch.created_at),
        "decided_at": _iso(punch.decided_at),
    }


@bp.errorhandler(FichajeError)
def handle_fichaje_error(exc: FichajeError):
    status = ERROR_STATUS.get(exc.code, 400)
    body: dict[str, Any] = {"error": exc.code, "message": exc.message}
    if isinstance(exc, PartialBatchFailure):
        body.update(_outcome_payload(exc.outcome))
    return body, status


@bp.post("/employees/<uuid:employee_id>/events")
def record_event(employee_id: uuid.UUID):
    form = ClockEventForm()
    _require_valid(form)

    tz = _app_timezone()
    if form.timestamp.data:
        instant = normalize_instant(form.timestamp.data, tz)
    else:
        instant = normalize_time(form.time.data, normalize_date(form.date.data, tz), tz)

    record = build_service().record_event(
        employee_id,
        ClockEventType(form.type.data),
        instant,
        source=EventSource(form.source.data),
    )
    return _day_payload(record), 201


@bp.get("/employees/<uuid:employee_id>/days/<string:day>")
def get_day(employee_id: uuid.UUID, day: str):
    record = build_service(lock_rows=False).get_day(employee_id, normalize_date(day, _app_timezone()))
    return _day_payload(record), 200


@bp.post("/employees/<uuid:employee_id>/days/<string:day>/finalize")
def finalize_day(employee_id: uuid.UUID, day: str):
    form = DayActionForm()
    _require_valid(form)
    record = build_service().finalize_day(employee_id, normalize_date(day, _app_timezone()), actor=form.actor.data)
    return _day_payload(record), 200


@bp.post("/employees/<uuid:employee_id>/days/<string:day>/review")
def request_review(employee_id: uuid.UUID, day: str):
    form = DayActionForm()
    _require_valid(form)
    record = build_service().request_review(
        employee_id,
        normalize_date(day, _app_timezone()),
        actor=form.actor.data,
        reason=form.reason.data,
    )
    return _day_payload(record), 200


@bp.post("/employees/<uuid:employee_id>/days/<string:day>/approve")
def approve_day(employee_id: uuid.UUID, day: str):
    form = DayActionForm()
    _require_valid(form)
    record = build_service().approve_day(employee_id, normalize_date(day, _app_timezone()), actor=form.actor.data)
    return _day_payload(record), 200


@bp.post("/employees/<uuid:employee_id>/days/<string:day>/corrections")
def correct_event(employee_id: uuid.UUID, day: str):
    target_day = normalize_date(day, _app_timezone())
    form = CorrectionForm()
    _require_valid(form)
    options = BatchOptionsForm()
    _require_valid(options)

    record = build_service().correct_events(
        employee_id,
        target_day,
        [_correction_request(form, target_day)],
        mass=options.mass.data,
    )
    return _day_payload(record), 200


@bp.post("/employees/<uuid:employee_id>/days/<string:day>/corrections/events")
def insert_event(employee_id: uuid.UUID, day: str):
    target_day = normalize_date(day, _app_timezone())
    form = EventInsertionForm()
    _require_valid(form)
    options = BatchOptionsForm()
    _require_valid(options)

    record = build_service().insert_event(
        employee_id,
        target_day,
        _event_insertion(form, target_day),
        mass=options.mass.data,
    )
    return _day_payload(record), 200


@bp.post("/employees/<uuid:employee_id>/days/<string:day>/auto-complete")
def auto_complete_day(employee_id: uuid.UUID, day: str):
    form = DayActionForm()
    _require_valid(form)
    record = build_service().auto_complete_day(employee_id, normalize_date(day, _app_timezone()), actor=form.actor.data)
    return _day_payload(record), 200


@bp.post("/employees/<uuid:employee_id>/corrections/batch")
def correct_batch(employee_id: uuid.UUID):
    payload = _json_body()
    options = BatchOptionsForm()
    _require_valid(options)

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidFormat("items must be a non-empty list of corrections.")

    tz = _app_timezone()
    requests_by_day: dict[date, list[CorrectionRequest]] = {}
    insertions_by_day: dict[date, list[EventInsertion]] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidFormat(f"items[{index}] must be an object.")
        if "event_id" in item:
            item_form = BatchCorrectionItemForm(formdata=MultiDict(item))
        else:
            item_form = BatchInsertionItemForm(formdata=MultiDict(item))
        if not item_form.validate():
            raise InvalidFormat(f"items[{index}]: {_form_errors(item_form)}")
        target_day = normalize_date(item_form.date.data, tz)
        if isinstance(item_form, BatchCorrectionItemForm):
            requests_by_day.setdefault(target_day, []).append(_correction_request(item_form, target_day))
        else:
            insertions_by_day.setdefault(target_day, []).append(_event_insertion(item_form, target_day))

    outcome = build_service().correct_batch(
        employee_id,
        requests_by_day,
        mass=options.mass.data,
        insertions=insertions_by_day,
    )
    return _outcome_payload(outcome), 200


@bp.post("/employees/<uuid:employee_id>/days/<string:day>/correction-requests")
def submit_correction_request(employee_id: uuid.UUID, day: str):
    target_day = normalize_date(day, _app_timezone())
    form = PunchCorrectionForm()
    _require_valid(form)

    punch = build_service().submit_correction_request(
        employee_id,
        target_day,
        normalize_time(form.new_time.data, target_day, _app_timezone()),
        reason=form.reason.data,
        requested_by=form.requested_by.data,
        event_id=uuid.UUID(form.event_id.data) if form.event_id.data else None,
        requested_type=ClockEventType(form.type.data) if form.type.data else None,
    )
    return _punch_payload(punch), 201


@bp.get("/employees/<uuid:employee_id>/correction-requests")
def list_correction_requests(employee_id: uuid.UUID):
    form = CorrectionRequestQueryForm(formdata=request.args)
    _require_valid(form)
    status = PunchCorrectionStatus(form.status.data) if form.status.data else None
    punches = build_service(lock_rows=False).list_correction_requests(employee_id, status)
    return {"items": [_punch_payload(punch) for punch in punches]}, 200


@bp.post("/correction-requests/<uuid:request_id>/approve")
def approve_correction_request(request_id: uuid.UUID):
    form = DecisionForm()
    _require_valid(form)
    punch, record = build_service().approve_correction_request(request_id, form.actor.data, form.comment.data)
    return {"request": _punch_payload(punch), "day": _day_payload(record)}, 200


@bp.post("/correction-requests/<uuid:request_id>/reject")
def reject_correction_request(request_id: uuid.UUID):
    form = DecisionForm()
    _require_valid(form)
    punch = build_service().reject_correction_request(request_id, form.actor.data, form.comment.data)
    return _punch_payload(punch), 200


@bp.post("/employees/<uuid:employee_id>/correction-requests/<uuid:request_id>/cancel")
def cancel_correction_request(employee_id: uuid.UUID, request_id: uuid.UUID):
    punch = build_service().cancel_correction_request(employee_id, request_id)
    return _punch_payload(punch), 200


def _summary_range(form: SummaryQueryForm) -> tuple[date, date]:
    tz = _app_timezone()
    if form.preset.data:
        anchor = normalize_date(form.anchor.data, tz) if form.anchor.data else today_local(tz)
        if form.preset.data == "week":
            return week_range(anchor)
        if form.preset.data == "year":
            return year_to_date_range(anchor)
        return month_range(anchor.year, anchor.month)
    return normalize_date(form.date_from.data, tz), normalize_date(form.date_to.data, tz)


@bp.get("/employees/<uuid:employee_id>/summary")
def summary(employee_id: uuid.UUID):
    form = SummaryQueryForm(formdata=request.args)
    _require_valid(form)
    range_start, range_end = _summary_range(form)
    period = build_service(lock_rows=False).summarize(employee_id, range_start, range_end)
    return summary_payload(period), 200


@bp.get("/employees/<uuid:employee_id>/summary/export")
def summary_export(employee_id: uuid.UUID):
    form = SummaryQueryForm(formdata=request.args)
    _require_valid(form)
    range_start, range_end = _summary_range(form)
    period = build_service(lock_rows=False).summarize(employee_id, range_start, range_end)

    export_format = form.format.data or "csv"
    filename = f"fichajes_{employee_id}_{period.range_start.isoformat()}_{period.range_end.isoformat()}.{export_format}"
    if export_format == "json":
        body, mimetype = summary_to_json_bytes(period), "application/json"
    else:
        body, mimetype = summary_to_csv_bytes(period), "text/csv"
    return Response(
        body,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@bp.post("/days/close")
def close_days():
    form = CloseDaysForm()
    _require_valid(form)
    tz = _app_timezone()
    before_day = normalize_date(form.date.data, tz) if form.date.data else today_local(tz)

    result = build_service().close_stale_days(before_day)
    current_app.logger.info("Day rollover before %s closed %d days", before_day.isoformat(), len(result.finalized))
    return {
        "closed_before": result.closed_before.isoformat(),
        "finalized": [
            {"employee_id": str(record.employee_id), "date": record.date.isoformat()} for record in result.finalized
        ],
        "incomplete": [
            {"employee_id": str(record.employee_id), "date": record.date.isoformat()} for record in result.incomplete
        ],
    }, 200
