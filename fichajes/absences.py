"""Absence provider backed by approved leave requests."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import select

from fichajes.extensions import db
from fichajes.models import LeaveRequest, LeaveRequestStatus


class LeaveAbsenceProvider:
    """A day is justified when an approved leave request covers it."""

    def is_justified(self, employee_id: uuid.UUID, day: date) -> bool:
        stmt = (
            select(LeaveRequest.id)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveRequestStatus.APPROVED,
                LeaveRequest.date_from <= day,
                LeaveRequest.date_to >= day,
            )
            .limit(1)
        )
        return db.session.execute(stmt).scalar_one_or_none() is not None
