"""``flask fichajes`` commands."""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import AppGroup

from fichajes.normalizer import normalize_date, resolve_timezone
from fichajes.service import build_service, today_local


fichajes_cli = AppGroup("fichajes", help="Time-tracking maintenance commands.")


@fichajes_cli.command("close-days")
@click.option("--date", "before", default=None, help="Close open days dated before this day (YYYY-MM-DD). Defaults to today.")
def close_days(before: str | None) -> None:
    """Finalize every open day left over from previous days."""
    tz = resolve_timezone(current_app.config.get("APP_TIMEZONE"))
    before_day = normalize_date(before, tz) if before else today_local(tz)

    result = build_service().close_stale_days(before_day)
    click.echo(f"Closed {len(result.finalized)} open days before {before_day.isoformat()}.")
    for record in result.incomplete:
        click.echo(f"Incomplete: employee {record.employee_id} on {record.date.isoformat()}")
