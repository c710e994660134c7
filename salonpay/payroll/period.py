"""
Pay period resolution from an employee's release history.

Two cutoffs come out of the last released payslip and are kept apart on purpose:

* attendance is locked by date: any day on or before ``period_end``;
* commission is cut by timestamp: work completed after the release instant belongs to the
  next period. When a release happens after the period's last day, the cut is taken at the
  end of that day instead, so work done between period end and release is not lost.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select

from salonpay.core.config import settings
from salonpay.core.errors import NotFoundError, ValidationError
from salonpay.core.utils import day_after, end_of_day, earliest, to_date, today
from salonpay.db.models import Employee, Payslip, PayslipStatus

@dataclass(frozen=True)
class PayPeriod:
    period_start: date
    period_end: date

    @property
    def days(self) -> int:
        return (self.period_end - self.period_start).days + 1

@dataclass(frozen=True)
class ReleaseCutoffs:
    locked_through: Optional[date]      # attendance: days <= this are paid out
    commission_after: Optional[datetime]  # commission: exclusive lower bound

    def is_locked(self, day: date) -> bool:
        return self.locked_through is not None and day <= self.locked_through

def last_released_payslip(session, employee_id: str) -> Optional[Payslip]:
    stmt = (
        select(Payslip)
        .where(Payslip.employee_id == employee_id, Payslip.status == PayslipStatus.RELEASED)
        .order_by(Payslip.period_end.desc(), Payslip.released_date.desc())
        .limit(1)
    )
    return session.execute(stmt).scalars().first()

def commission_cutoff_for(payslip: Payslip) -> Optional[datetime]:
    if payslip is None:
        return None
    return earliest(payslip.released_date, end_of_day(payslip.period_end))

def release_cutoffs(session, employee_id: str) -> ReleaseCutoffs:
    last = last_released_payslip(session, employee_id)
    if last is None:
        return ReleaseCutoffs(None, None)
    return ReleaseCutoffs(last.period_end, commission_cutoff_for(last))

def resolve_pay_period(session, employee_id: str, end_date=None, *, epoch: date = None) -> PayPeriod:
    """Next billable window for an employee. Read-only and idempotent."""
    if session.get(Employee, employee_id) is None:
        raise NotFoundError("employee", employee_id)
    try:
        requested_end = to_date(end_date) if end_date is not None else today()
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e)) from e

    last = last_released_payslip(session, employee_id)
    if last is not None:
        period_start = day_after(last.period_end)
    else:
        period_start = epoch or settings.PAYROLL_EPOCH_DATE
    # a re-request on the day of the last release collapses to a one-day window
    period_end = max(requested_end, period_start)
    return PayPeriod(period_start, period_end)
