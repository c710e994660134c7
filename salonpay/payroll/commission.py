"""
Commission accrual: read-only sums over completed work items.

The lower bound is a timestamp (``completed_after``, exclusive), never a calendar date, so a
job finished later on the same day as a release is counted once, in the next period.
"""
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import select

from salonpay.core.utils import end_of_day, earliest
from salonpay.db.models import Payslip, PayslipStatus, WorkItem, WorkStatus
from salonpay.payroll.period import commission_cutoff_for

@dataclass(frozen=True)
class CommissionLine:
    work_item_id: str
    service_title: Optional[str]
    customer_name: Optional[str]
    service_price: int
    commission_earned: int
    completed_at: datetime

    def to_dict(self):
        return asdict(self)

def commission_breakdown(session, employee_id: str, completed_through: datetime,
                         completed_after: Optional[datetime] = None) -> List[CommissionLine]:
    """Commission-bearing work in (completed_after, completed_through], oldest first."""
    stmt = select(WorkItem).where(
        WorkItem.served_by_id == employee_id,
        WorkItem.status == WorkStatus.COMPLETED,
        WorkItem.commission_value > 0,
        WorkItem.completed_at.is_not(None),
        WorkItem.completed_at <= completed_through,
    )
    if completed_after is not None:
        stmt = stmt.where(WorkItem.completed_at > completed_after)
    stmt = stmt.order_by(WorkItem.completed_at.asc(), WorkItem.id.asc())
    return [
        CommissionLine(
            work_item_id=w.id,
            service_title=w.service_title,
            customer_name=w.customer_name,
            service_price=w.price or 0,
            commission_earned=w.commission_value,
            completed_at=w.completed_at,
        )
        for w in session.execute(stmt).scalars()
    ]

def total_commissions(lines: List[CommissionLine]) -> int:
    return sum(line.commission_earned for line in lines)

def has_commission_after(session, employee_id: str, completed_through: datetime,
                         completed_after: Optional[datetime]) -> bool:
    stmt = select(WorkItem.id).where(
        WorkItem.served_by_id == employee_id,
        WorkItem.status == WorkStatus.COMPLETED,
        WorkItem.commission_value > 0,
        WorkItem.completed_at.is_not(None),
        WorkItem.completed_at <= completed_through,
    )
    if completed_after is not None:
        stmt = stmt.where(WorkItem.completed_at > completed_after)
    return session.execute(stmt.limit(1)).first() is not None

def commission_window(session, employee_id: str, period_start: date,
                      period_end: date) -> Tuple[Optional[datetime], datetime]:
    """Timestamp window that a [period_start, period_end] pay period accrues commission over.

    Bounded below by the release that closed the preceding period and above by the end of
    ``period_end``, or by this period's own release when it has been paid out already.
    """
    released = (
        select(Payslip)
        .where(Payslip.employee_id == employee_id, Payslip.status == PayslipStatus.RELEASED)
    )
    prior = session.execute(
        released.where(Payslip.period_end < period_start)
        .order_by(Payslip.period_end.desc()).limit(1)
    ).scalars().first()
    closing = session.execute(
        released.where(Payslip.period_end >= period_end)
        .order_by(Payslip.period_end.asc()).limit(1)
    ).scalars().first()
    return commission_cutoff_for(prior), earliest(end_of_day(period_end), commission_cutoff_for(closing))
