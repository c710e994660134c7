"""
Attendance ledger: one presence record per employee per day, and the running salary balance
that follows it.

A day toggled present adds the daily rate to the balance, a day toggled back to absent takes
it off again, except inside a period that has already been released: the record is still
corrected but the balance is left alone, since that money has been paid out.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import select, func

from salonpay.auth.roles import ATTENDANCE_MARK, load_actor
from salonpay.core.audit import AuditLogger
from salonpay.core.errors import NotFoundError, ValidationError
from salonpay.core.utils import to_date, now
from salonpay.db.models import AttendanceRecord, Employee
from salonpay.db.session import session_scope
from salonpay.payroll.period import release_cutoffs

logger = logging.getLogger(__name__)

@dataclass
class AttendanceResult:
    record: AttendanceRecord
    previous: Optional[bool]
    delta: int
    new_balance: Optional[int]
    locked: bool

def attendance_delta(previous: Optional[bool], is_present: bool, daily_rate: int, locked: bool) -> int:
    if is_present and not previous:
        return daily_rate
    if previous and not is_present:
        return 0 if locked else -daily_rate
    return 0

def _parse_day(value) -> date:
    try:
        return to_date(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"invalid attendance date: {e}") from e

def count_present_days(session, employee_id: str, start: date, end: date) -> int:
    if start > end:
        return 0
    stmt = select(func.count(AttendanceRecord.id)).where(
        AttendanceRecord.employee_id == employee_id,
        AttendanceRecord.is_present.is_(True),
        AttendanceRecord.date >= start,
        AttendanceRecord.date <= end,
    )
    return session.execute(stmt).scalar_one()

def attendance_between(session, employee_id: str, start: date, end: date) -> List[AttendanceRecord]:
    stmt = (
        select(AttendanceRecord)
        .where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.date >= start,
            AttendanceRecord.date <= end,
        )
        .order_by(AttendanceRecord.date.asc())
    )
    return list(session.execute(stmt).scalars())

class AttendanceLedger:
    def __init__(self, session_factory=None, audit: AuditLogger = None):
        self.session_factory = session_factory
        self.audit = audit or AuditLogger()

    def mark_attendance(self, employee_id: str, day, is_present: bool, checked_by_id: str,
                        notes: Optional[str] = None) -> AttendanceResult:
        day = _parse_day(day)
        if day > now().date():
            raise ValidationError(f"cannot mark attendance for a future date ({day})")
        if not isinstance(is_present, bool):
            raise ValidationError("is_present must be a boolean")

        with session_scope(self.session_factory) as session:
            actor = load_actor(session, checked_by_id).require(ATTENDANCE_MARK)
            employee = session.execute(
                select(Employee).where(Employee.id == employee_id).with_for_update()
            ).scalar_one_or_none()
            if employee is None:
                raise NotFoundError("employee", employee_id)

            record = session.execute(
                select(AttendanceRecord)
                .where(AttendanceRecord.date == day, AttendanceRecord.employee_id == employee_id)
                .with_for_update()
            ).scalar_one_or_none()
            previous = record.is_present if record is not None else None

            locked = release_cutoffs(session, employee_id).is_locked(day)
            delta = attendance_delta(previous, is_present, employee.daily_rate or 0, locked)

            checked_at = now()
            if record is None:
                record = AttendanceRecord(date=day, employee_id=employee_id)
                session.add(record)
            record.is_present = is_present
            record.checked_by_id = actor.id
            record.checked_at = checked_at
            if notes is not None:
                record.notes = notes

            new_balance = employee.apply_balance_delta(delta) if delta else None
            session.flush()

        if previous and not is_present and locked:
            logger.info("employee %s: %s corrected to absent inside a released period, balance kept",
                        employee_id, day)
        logger.info("employee %s: attendance %s present=%s (was %s), delta %d",
                    employee_id, day, is_present, previous, delta)
        self.audit.log_change("attendance", "mark", f"{employee_id}:{day.isoformat()}", {
            "is_present": is_present, "previous": previous, "delta": delta,
            "new_balance": new_balance, "locked": locked,
        }, actor_id=actor.id)
        return AttendanceResult(record=record, previous=previous, delta=delta,
                                new_balance=new_balance, locked=locked)

    def get_attendance(self, employee_id: str, period_start, period_end) -> List[AttendanceRecord]:
        start, end = _parse_day(period_start), _parse_day(period_end)
        if start > end:
            raise ValidationError(f"period start {start} is after period end {end}")
        with session_scope(self.session_factory) as session:
            if session.get(Employee, employee_id) is None:
                raise NotFoundError("employee", employee_id)
            return attendance_between(session, employee_id, start, end)
