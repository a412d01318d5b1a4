from __future__ import annotations

import csv
import io
import json
from datetime import date, time
from decimal import Decimal
import uuid

from sqlalchemy import func, select

from fichajes.extensions import db
from fichajes.models import AuditLog, ClockEventRow, EmployeeShiftAssignment, Shift


DAY = "2026-02-10"


def _clock(client, employee_id, event_type: str, at: str, day: str = DAY):
    return client.post(
        f"/api/employees/{employee_id}/events",
        json={"type": event_type, "date": day, "time": at},
    )


def _full_day(client, employee_id, day: str = DAY, start: str = "09:00", end: str = "17:00") -> dict:
    assert _clock(client, employee_id, "entrada", start, day).status_code == 201
    response = _clock(client, employee_id, "salida", end, day)
    assert response.status_code == 201
    return response.get_json()


def _event_id(day_payload: dict, event_type: str) -> str:
    return next(event["id"] for event in day_payload["events"] if event["type"] == event_type)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_recording_a_full_day(client, employee_id):
    first = client.post(
        f"/api/employees/{employee_id}/events",
        json={"type": "entrada", "timestamp": "2026-02-10T09:00:00Z"},
    )
    assert first.status_code == 201
    assert first.get_json()["status"] == "open"
    assert first.get_json()["presence"] == "trabajando"
    assert first.get_json()["worked_hours"] == "0.00"

    assert _clock(client, employee_id, "pausa_inicio", "13:00").status_code == 201
    assert _clock(client, employee_id, "pausa_fin", "14:00").status_code == 201
    assert _clock(client, employee_id, "salida", "18:00").status_code == 201

    response = client.get(f"/api/employees/{employee_id}/days/{DAY}")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["worked_hours"] == "8.00"
    assert payload["paused_hours"] == "1.00"
    assert payload["presence"] == "finalizado"
    assert payload["cached"] is False
    assert payload["is_open"] is False
    assert [event["type"] for event in payload["events"]] == ["entrada", "pausa_inicio", "pausa_fin", "salida"]
    assert all(event["source"] == "WEB" for event in payload["events"])


def test_out_of_order_event_is_rejected(client, employee_id):
    assert _clock(client, employee_id, "entrada", "09:00").status_code == 201

    response = _clock(client, employee_id, "pausa_fin", "10:00")
    assert response.status_code == 422
    assert response.get_json()["error"] == "invalid_sequence"

    response = _clock(client, employee_id, "salida", "08:00")
    assert response.status_code == 422


def test_event_payload_is_validated(client, employee_id):
    response = client.post(f"/api/employees/{employee_id}/events", json={"type": "entrada"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_format"

    response = client.post(f"/api/employees/{employee_id}/events", json={"type": "lunch", "time": "09:00", "date": DAY})
    assert response.status_code == 400

    response = _clock(client, employee_id, "entrada", "9h")
    assert response.status_code == 400


def test_unknown_employee_or_day_is_not_found(client, employee_id):
    stranger = uuid.uuid4()
    assert _clock(client, stranger, "entrada", "09:00").status_code == 404
    assert client.get(f"/api/employees/{employee_id}/days/{DAY}").status_code == 404
    assert client.get(f"/api/employees/{employee_id}/days/yesterday").status_code == 400


def test_day_status_transitions(client, employee_id):
    _full_day(client, employee_id)
    base = f"/api/employees/{employee_id}/days/{DAY}"

    finalized = client.post(f"{base}/finalize", json={"actor": "ana"})
    assert finalized.status_code == 200
    assert finalized.get_json()["status"] == "finalized"
    assert finalized.get_json()["cached"] is True
    assert finalized.get_json()["worked_hours"] == "8.00"

    assert client.post(f"{base}/finalize", json={}).status_code == 409
    assert _clock(client, employee_id, "entrada", "19:00").status_code == 409

    review = client.post(f"{base}/review", json={"actor": "hr", "reason": "Check overtime"})
    assert review.status_code == 200
    assert review.get_json()["status"] == "under_review"
    assert review.get_json()["cached"] is False

    approved = client.post(f"{base}/approve", json={"actor": "hr"})
    assert approved.status_code == 200
    assert approved.get_json()["status"] == "approved"

    response = client.post(f"{base}/review", json={})
    assert response.status_code == 409
    assert response.get_json()["error"] == "invalid_transition"

    actions = db.session.execute(select(AuditLog.action).order_by(AuditLog.ts.asc())).scalars().all()
    assert actions == ["day.finalized", "day.review_requested", "day.approved"]


def test_correction_keeps_original_timestamp_and_is_audited(client, employee_id):
    day_payload = _full_day(client, employee_id)
    salida_id = _event_id(day_payload, "salida")
    client.post(f"/api/employees/{employee_id}/days/{DAY}/finalize", json={})

    response = client.post(
        f"/api/employees/{employee_id}/days/{DAY}/corrections",
        json={"event_id": salida_id, "new_time": "18:30", "reason": "Forgot to clock out", "actor": "hr-maria"},
    )
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "under_review"
    assert payload["worked_hours"] == "9.50"
    salida = next(event for event in payload["events"] if event["id"] == salida_id)
    assert salida["timestamp"].startswith("2026-02-10T18:30:00")
    assert salida["original_timestamp"].startswith("2026-02-10T17:00:00")
    assert salida["edited"] is True
    assert salida["edited_by"] == "hr-maria"

    response = client.post(
        f"/api/employees/{employee_id}/days/{DAY}/corrections",
        json={"event_id": salida_id, "new_time": "19:00", "reason": "Second look", "actor": "hr-luis"},
    )
    salida = next(event for event in response.get_json()["events"] if event["id"] == salida_id)
    assert salida["original_timestamp"].startswith("2026-02-10T17:00:00")

    entries = db.session.execute(
        select(AuditLog).where(AuditLog.action == "clock_event.corrected").order_by(AuditLog.ts.asc())
    ).scalars().all()
    assert len(entries) == 2
    assert entries[0].entity_type == "clock_event"
    assert entries[0].payload_json["reason"] == "Forgot to clock out"
    assert entries[0].payload_json["old_timestamp"].startswith("2026-02-10T17:00:00")
    assert entries[1].actor == "hr-luis"


def test_correction_errors(client, employee_id):
    day_payload = _full_day(client, employee_id)
    base = f"/api/employees/{employee_id}/days/{DAY}/corrections"

    response = client.post(
        base,
        json={"event_id": _event_id(day_payload, "salida"), "new_time": "08:00", "reason": "x", "actor": "hr"},
    )
    assert response.status_code == 422

    response = client.post(base, json={"event_id": str(uuid.uuid4()), "new_time": "18:00", "reason": "x", "actor": "hr"})
    assert response.status_code == 404

    response = client.post(base, json={"event_id": _event_id(day_payload, "salida"), "new_time": "18:00", "actor": "hr"})
    assert response.status_code == 400

    unchanged = client.get(f"/api/employees/{employee_id}/days/{DAY}").get_json()
    assert unchanged["events"] == day_payload["events"]


def test_mass_correction_keeps_approved_status(client, employee_id):
    day_payload = _full_day(client, employee_id)
    base = f"/api/employees/{employee_id}/days/{DAY}"
    client.post(f"{base}/finalize", json={})
    client.post(f"{base}/approve", json={})

    response = client.post(
        f"{base}/corrections",
        json={
            "event_id": _event_id(day_payload, "entrada"),
            "new_time": "08:30",
            "reason": "Kiosk clock drift",
            "actor": "hr",
            "mass": True,
        },
    )
    assert response.status_code == 200
    assert response.get_json()["status"] == "approved"
    assert response.get_json()["mass_corrected"] is True


def test_batch_with_one_bad_day_changes_nothing(client, employee_id):
    days = {day: _full_day(client, employee_id, day) for day in ("2026-02-09", "2026-02-10", "2026-02-11")}
    items = [
        {
            "date": day,
            "event_id": _event_id(payload, "salida"),
            "new_time": "08:00" if day == "2026-02-10" else "18:00",
            "reason": "Monthly review",
            "actor": "hr",
        }
        for day, payload in days.items()
    ]

    response = client.post(f"/api/employees/{employee_id}/corrections/batch", json={"items": items})

    assert response.status_code == 409
    body = response.get_json()
    assert body["error"] == "partial_batch_failure"
    assert list(body["failed"]) == ["2026-02-10"]
    assert body["failed"]["2026-02-10"]["error"] == "invalid_sequence"
    assert body["would_succeed"] == ["2026-02-09", "2026-02-11"]
    assert body["corrected"] == []

    for day, payload in days.items():
        current = client.get(f"/api/employees/{employee_id}/days/{day}").get_json()
        assert current["events"] == payload["events"]
    edited = db.session.execute(
        select(func.count()).select_from(ClockEventRow).where(ClockEventRow.original_ts.is_not(None))
    ).scalar_one()
    assert edited == 0


def test_batch_success_corrects_every_day(client, employee_id):
    days = {day: _full_day(client, employee_id, day) for day in ("2026-02-09", "2026-02-10")}
    items = [
        {"date": day, "event_id": _event_id(payload, "salida"), "new_time": "18:00", "reason": "Overtime", "actor": "hr"}
        for day, payload in days.items()
    ]

    response = client.post(f"/api/employees/{employee_id}/corrections/batch", json={"items": items, "mass": True})

    assert response.status_code == 200
    body = response.get_json()
    assert body["failed"] == {}
    assert [day["date"] for day in body["corrected"]] == ["2026-02-09", "2026-02-10"]
    assert all(day["worked_hours"] == "9.00" and day["mass_corrected"] for day in body["corrected"])
    audited = db.session.execute(
        select(func.count()).select_from(AuditLog).where(AuditLog.action == "clock_event.mass_corrected")
    ).scalar_one()
    assert audited == 2


def test_batch_payload_is_validated(client, employee_id):
    url = f"/api/employees/{employee_id}/corrections/batch"
    assert client.post(url, json={"items": []}).status_code == 400
    assert client.post(url, json={"items": ["2026-02-10"]}).status_code == 400
    response = client.post(url, json={"items": [{"date": DAY, "event_id": "nope", "new_time": "18:00", "reason": "x", "actor": "hr"}]})
    assert response.status_code == 400


def test_auto_complete_fills_missing_salida(client, employee_id):
    _clock(client, employee_id, "entrada", "09:00")

    response = client.post(f"/api/employees/{employee_id}/days/{DAY}/auto-complete", json={})

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["auto_completed"] is True
    assert [event["type"] for event in payload["events"]] == ["entrada", "salida"]
    assert payload["events"][1]["source"] == "AUTO"
    assert payload["worked_hours"] == "7.50"

    again = client.post(f"/api/employees/{employee_id}/days/{DAY}/auto-complete", json={})
    assert again.status_code == 422


def test_summary_for_explicit_range(client, employee_id):
    _full_day(client, employee_id, "2026-02-09", "09:00", "17:00")
    _full_day(client, employee_id, "2026-02-10", "08:00", "17:00")

    response = client.get(
        f"/api/employees/{employee_id}/summary",
        query_string={"date_from": "2026-02-09", "date_to": "2026-02-11"},
    )

    assert response.status_code == 200
    body = response.get_json()
    assert body["total_worked_hours"] == "17.00"
    assert body["total_expected_hours"] == "22.50"
    assert body["balance_hours"] == "-5.50"
    assert body["days_without_clocking"] == 1
    assert body["days_unjustified"] == 1
    assert [day["has_record"] for day in body["days"]] == [True, True, False]


def test_summary_week_preset_and_validation(client, employee_id):
    response = client.get(
        f"/api/employees/{employee_id}/summary",
        query_string={"preset": "week", "anchor": "2026-02-12"},
    )
    assert response.status_code == 200
    body = response.get_json()
    assert (body["range_start"], body["range_end"]) == ("2026-02-09", "2026-02-15")
    assert body["total_worked_hours"] == "0.00"
    assert body["days_without_clocking"] == 7

    assert client.get(f"/api/employees/{employee_id}/summary").status_code == 400
    assert client.get(f"/api/employees/{employee_id}/summary", query_string={"preset": "quarter"}).status_code == 400
    assert client.get(f"/api/employees/{uuid.uuid4()}/summary", query_string={"preset": "week"}).status_code == 404


def test_summary_export_csv_and_json(client, employee_id):
    _full_day(client, employee_id, "2026-02-09")
    query = {"date_from": "2026-02-09", "date_to": "2026-02-10"}

    response = client.get(f"/api/employees/{employee_id}/summary/export", query_string=query)
    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert "attachment" in response.headers["Content-Disposition"]
    rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
    assert rows[0][:4] == ["employee_id", "date", "status", "worked_hours"]
    assert rows[1][1:4] == ["2026-02-09", "open", "8.00"]
    assert rows[2][1] == "2026-02-10"

    response = client.get(
        f"/api/employees/{employee_id}/summary/export",
        query_string={**query, "format": "json"},
    )
    assert response.mimetype == "application/json"
    assert json.loads(response.get_data(as_text=True))["total_worked_hours"] == "8.00"


def test_close_days_finalizes_stale_open_days(client, employee_id):
    _full_day(client, employee_id, "2026-02-09")
    _clock(client, employee_id, "entrada", "09:00", "2026-02-10")
    _clock(client, employee_id, "entrada", "09:00", "2026-02-11")

    response = client.post("/api/days/close", json={"date": "2026-02-11"})

    assert response.status_code == 200
    body = response.get_json()
    assert [item["date"] for item in body["finalized"]] == ["2026-02-09", "2026-02-10"]
    assert [item["date"] for item in body["incomplete"]] == ["2026-02-10"]

    closed = client.get(f"/api/employees/{employee_id}/days/2026-02-10").get_json()
    assert closed["status"] == "finalized"
    assert closed["worked_hours"] == "0.00"
    assert client.get(f"/api/employees/{employee_id}/days/2026-02-11").get_json()["status"] == "open"


def test_close_days_command(app, client, employee_id):
    _clock(client, employee_id, "entrada", "09:00", "2026-02-10")

    result = app.test_cli_runner().invoke(args=["fichajes", "close-days", "--date", "2026-02-11"])

    assert result.exit_code == 0
    assert "Closed 1 open days before 2026-02-11." in result.output
    assert "on 2026-02-10" in result.output


def test_non_string_values_are_rejected_as_invalid_format(client, employee_id):
    response = client.post(f"/api/employees/{employee_id}/events", json={"type": "entrada", "date": DAY, "time": 900})
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_format"

    day_payload = _full_day(client, employee_id)
    base = f"/api/employees/{employee_id}/days/{DAY}"

    response = client.post(
        f"{base}/corrections",
        json={"event_id": _event_id(day_payload, "salida"), "new_time": 830, "reason": "x", "actor": "hr"},
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_format"

    response = client.post(f"{base}/finalize", json={"actor": 7})
    assert response.status_code == 400

    response = client.post(
        f"/api/employees/{employee_id}/corrections/batch",
        json={"items": [{"date": DAY, "event_id": 5, "new_time": "18:00", "reason": "x", "actor": "hr"}]},
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_format"

    response = client.post(
        f"{base}/correction-requests",
        json={"event_id": _event_id(day_payload, "salida"), "new_time": "18:00", "reason": {"text": "x"}, "requested_by": "ana"},
    )
    assert response.status_code == 400

    assert client.get(base).get_json()["status"] == "open"


def test_missing_salida_is_inserted_on_a_finalized_day(client, employee_id):
    assert _clock(client, employee_id, "entrada", "09:00").status_code == 201
    base = f"/api/employees/{employee_id}/days/{DAY}"
    assert client.post(f"{base}/finalize", json={}).get_json()["worked_hours"] == "0.00"

    response = client.post(
        f"{base}/corrections/events",
        json={"type": "salida", "time": "17:43", "reason": "Forgot to clock out", "actor": "hr-maria"},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "under_review"
    assert payload["worked_hours"] == "8.72"
    salida = payload["events"][1]
    assert salida["type"] == "salida"
    assert salida["timestamp"].startswith("2026-02-10T17:43:00")
    assert salida["original_timestamp"] is None
    assert salida["source"] == "MANUAL"
    assert salida["edited"] is True
    assert salida["edited_by"] == "hr-maria"

    entry = db.session.execute(select(AuditLog).where(AuditLog.action == "clock_event.inserted")).scalar_one()
    assert entry.entity_type == "clock_event"
    assert entry.payload_json["event_id"] == salida["id"]
    assert entry.payload_json["old_timestamp"] is None
    assert entry.payload_json["reason"] == "Forgot to clock out"


def test_insertion_errors(client, employee_id):
    _full_day(client, employee_id)
    url = f"/api/employees/{employee_id}/days/{DAY}/corrections/events"

    response = client.post(url, json={"type": "entrada", "time": "12:00", "reason": "x", "actor": "hr"})
    assert response.status_code == 422
    assert response.get_json()["error"] == "invalid_sequence"

    assert client.post(url, json={"type": "salida", "time": "18:00", "actor": "hr"}).status_code == 400
    assert client.post(url, json={"type": "lunch", "time": "18:00", "reason": "x", "actor": "hr"}).status_code == 400
    missing_day = f"/api/employees/{employee_id}/days/2026-02-11/corrections/events"
    assert client.post(missing_day, json={"type": "salida", "time": "18:00", "reason": "x", "actor": "hr"}).status_code == 404


def test_batch_can_insert_missing_events(client, employee_id):
    corrected = _full_day(client, employee_id, "2026-02-09")
    _clock(client, employee_id, "entrada", "09:00", "2026-02-10")
    items = [
        {"date": "2026-02-09", "event_id": _event_id(corrected, "salida"), "new_time": "18:00", "reason": "Overtime", "actor": "hr"},
        {"date": "2026-02-10", "type": "salida", "time": "17:00", "reason": "Forgot to clock out", "actor": "hr"},
    ]

    response = client.post(f"/api/employees/{employee_id}/corrections/batch", json={"items": items})

    assert response.status_code == 200
    body = response.get_json()
    assert [(day["date"], day["worked_hours"]) for day in body["corrected"]] == [("2026-02-09", "9.00"), ("2026-02-10", "8.00")]
    actions = db.session.execute(select(AuditLog.action).order_by(AuditLog.action.asc())).scalars().all()
    assert actions == ["clock_event.corrected", "clock_event.inserted"]


def _submit(client, employee_id, **payload):
    body = {"new_time": "18:00", "reason": "Stayed for the inventory count", "requested_by": "ana"}
    body.update(payload)
    return client.post(f"/api/employees/{employee_id}/days/{DAY}/correction-requests", json=body)


def test_correction_request_is_applied_on_approval(client, employee_id):
    day_payload = _full_day(client, employee_id)
    salida_id = _event_id(day_payload, "salida")
    client.post(f"/api/employees/{employee_id}/days/{DAY}/finalize", json={})

    submitted = _submit(client, employee_id, event_id=salida_id)
    assert submitted.status_code == 201
    punch = submitted.get_json()
    assert punch["status"] == "REQUESTED"
    assert punch["event_id"] == salida_id
    assert client.get(f"/api/employees/{employee_id}/days/{DAY}").get_json()["status"] == "finalized"

    duplicate = _submit(client, employee_id, event_id=salida_id)
    assert duplicate.status_code == 409
    assert duplicate.get_json()["error"] == "invalid_transition"

    listed = client.get(f"/api/employees/{employee_id}/correction-requests", query_string={"status": "REQUESTED"})
    assert [item["id"] for item in listed.get_json()["items"]] == [punch["id"]]

    response = client.post(
        f"/api/correction-requests/{punch['id']}/approve",
        json={"actor": "hr-maria", "comment": "Confirmed with the team lead"},
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["request"]["status"] == "APPROVED"
    assert body["request"]["decided_by"] == "hr-maria"
    assert body["day"]["status"] == "under_review"
    assert body["day"]["worked_hours"] == "9.00"
    salida = next(event for event in body["day"]["events"] if event["id"] == salida_id)
    assert salida["original_timestamp"].startswith("2026-02-10T17:00:00")
    assert salida["edited_by"] == "hr-maria"

    again = client.post(f"/api/correction-requests/{punch['id']}/reject", json={"actor": "hr-maria"})
    assert again.status_code == 409

    corrected = db.session.execute(select(AuditLog).where(AuditLog.action == "clock_event.corrected")).scalar_one()
    assert corrected.payload_json["request_id"] == punch["id"]
    actions = db.session.execute(
        select(AuditLog.action).where(AuditLog.entity_type == "punch_correction_request").order_by(AuditLog.ts.asc())
    ).scalars().all()
    assert actions == ["correction_request.submitted", "correction_request.approved"]


def test_correction_request_for_missing_event(client, employee_id):
    _clock(client, employee_id, "entrada", "09:00")

    punch = _submit(client, employee_id, type="salida", new_time="17:30").get_json()
    assert punch["requested_type"] == "salida"
    assert punch["event_id"] is None

    response = client.post(f"/api/correction-requests/{punch['id']}/approve", json={"actor": "hr"})

    assert response.status_code == 200
    day = response.get_json()["day"]
    assert [event["type"] for event in day["events"]] == ["entrada", "salida"]
    assert day["events"][1]["source"] == "MANUAL"
    assert day["worked_hours"] == "8.50"


def test_correction_request_reject_and_cancel(client, employee_id):
    day_payload = _full_day(client, employee_id)
    salida_id = _event_id(day_payload, "salida")

    rejected = _submit(client, employee_id, event_id=salida_id).get_json()
    response = client.post(f"/api/correction-requests/{rejected['id']}/reject", json={"actor": "hr", "comment": "No evidence"})
    assert response.status_code == 200
    assert response.get_json()["status"] == "REJECTED"
    assert response.get_json()["decision_comment"] == "No evidence"

    cancelled = _submit(client, employee_id, event_id=salida_id).get_json()
    cancel_url = f"/api/employees/{employee_id}/correction-requests/{cancelled['id']}/cancel"
    assert client.post(f"/api/employees/{uuid.uuid4()}/correction-requests/{cancelled['id']}/cancel").status_code == 404
    response = client.post(cancel_url)
    assert response.status_code == 200
    assert response.get_json()["status"] == "CANCELLED"
    assert client.post(cancel_url).status_code == 409

    unchanged = client.get(f"/api/employees/{employee_id}/days/{DAY}").get_json()
    assert unchanged["events"] == day_payload["events"]
    statuses = [
        item["status"]
        for item in client.get(f"/api/employees/{employee_id}/correction-requests").get_json()["items"]
    ]
    assert sorted(statuses) == ["CANCELLED", "REJECTED"]


def test_correction_request_errors(client, employee_id):
    day_payload = _full_day(client, employee_id)
    salida_id = _event_id(day_payload, "salida")

    assert _submit(client, employee_id).status_code == 400
    assert _submit(client, employee_id, event_id=salida_id, type="salida").status_code == 400
    assert _submit(client, employee_id, event_id=str(uuid.uuid4())).status_code == 404
    response = client.post(
        f"/api/employees/{employee_id}/days/2026-02-11/correction-requests",
        json={"type": "salida", "new_time": "18:00", "reason": "x", "requested_by": "ana"},
    )
    assert response.status_code == 404

    assert client.post(f"/api/correction-requests/{uuid.uuid4()}/approve", json={"actor": "hr"}).status_code == 404
    punch = _submit(client, employee_id, event_id=salida_id).get_json()
    assert client.post(f"/api/correction-requests/{punch['id']}/approve", json={}).status_code == 400

    listed = client.get(f"/api/employees/{employee_id}/correction-requests", query_string={"status": "pending"})
    assert listed.status_code == 400


def test_clock_in_outside_shift_limits_is_rejected(client, employee_id):
    shift = Shift(
        name="Morning",
        break_minutes=30,
        expected_hours=Decimal("8.00"),
        earliest_clock_in=time(7, 0),
        latest_clock_out=time(20, 0),
    )
    db.session.add(shift)
    db.session.flush()
    db.session.add(EmployeeShiftAssignment(employee_id=employee_id, shift_id=shift.id, effective_from=date(2026, 1, 1)))
    db.session.commit()

    response = _clock(client, employee_id, "entrada", "06:30")
    assert response.status_code == 422
    assert response.get_json()["error"] == "outside_clock_limits"
    assert client.get(f"/api/employees/{employee_id}/days/{DAY}").status_code == 404

    assert _clock(client, employee_id, "entrada", "07:00").status_code == 201
    response = _clock(client, employee_id, "salida", "20:30")
    assert response.status_code == 422
    assert _clock(client, employee_id, "salida", "20:00").status_code == 201


def test_summary_year_preset_runs_to_the_anchor(client, employee_id):
    _full_day(client, employee_id, "2026-01-05")
    _full_day(client, employee_id, "2026-02-10")

    response = client.get(
        f"/api/employees/{employee_id}/summary",
        query_string={"preset": "year", "anchor": "2026-02-10"},
    )

    assert response.status_code == 200
    body = response.get_json()
    assert (body["range_start"], body["range_end"]) == ("2026-01-01", "2026-02-10")
    assert body["total_worked_hours"] == "16.00"
    assert len(body["days"]) == 41
