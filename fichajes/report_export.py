"""Payroll export of period summaries (CSV, JSON)."""

from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from fichajes.domain import PeriodSummary


SUMMARY_HEADERS = [
    "employee_id",
    "date",
    "status",
    "worked_hours",
    "expected_hours",
    "balance_hours",
    "has_record",
    "justified",
]


def to_csv_bytes(headers: list[str], rows: list[list[Any]]) -> bytes:
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_stringify(value) for value in row])
    return out.getvalue().encode("utf-8")


def to_json_bytes(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False, indent=2, default=_json_default).encode("utf-8")


def summary_payload(summary: PeriodSummary) -> dict[str, Any]:
    return {
        "employee_id": str(summary.employee_id),
        "range_start": summary.range_start.isoformat(),
        "range_end": summary.range_end.isoformat(),
        "total_worked_hours": str(summary.total_worked_hours),
        "total_expected_hours": str(summary.total_expected_hours),
        "balance_hours": str(summary.balance_hours),
        "days_without_clocking": summary.days_without_clocking,
        "days_open": summary.days_open,
        "days_justified": summary.days_justified,
        "days_unjustified": summary.days_unjustified,
        "days": [
            {
                "date": day.date.isoformat(),
                "status": day.status.value if day.status is not None else None,
                "worked_hours": str(day.worked_hours),
                "expected_hours": str(day.expected_hours),
                "balance_hours": str(day.balance_hours),
                "has_record": day.has_record,
                "is_open": day.is_open,
                "justified": day.justified,
            }
            for day in summary.days
        ],
    }


def summary_rows(summary: PeriodSummary) -> list[list[Any]]:
    rows: list[list[Any]] = []
    for day in summary.days:
        rows.append(
            [
                summary.employee_id,
                day.date,
                day.status.value if day.status is not None else "",
                day.worked_hours,
                day.expected_hours,
                day.balance_hours,
                day.has_record,
                day.justified,
            ]
        )
    rows.append(
        [
            summary.employee_id,
            "TOTAL",
            "",
            summary.total_worked_hours,
            summary.total_expected_hours,
            summary.balance_hours,
            "",
            "",
        ]
    )
    return rows


def summary_to_csv_bytes(summary: PeriodSummary) -> bytes:
    return to_csv_bytes(SUMMARY_HEADERS, summary_rows(summary))


def summary_to_json_bytes(summary: PeriodSummary) -> bytes:
    return to_json_bytes(summary_payload(summary))


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)
