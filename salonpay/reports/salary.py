from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

import pandas as pd
from sqlalchemy import select

from salonpay.approvals.engine import coerce_status
from salonpay.attendance.ledger import attendance_between
from salonpay.core.errors import NotFoundError, ValidationError
from salonpay.core.utils import day_after, end_of_day, to_date, today
from salonpay.db.models import AttendanceRecord, Employee, Payslip, PayslipStatus
from salonpay.db.session import session_scope
from salonpay.payroll.commission import CommissionLine, commission_breakdown, total_commissions
from salonpay.payroll.period import last_released_payslip, release_cutoffs

PAYSLIP_COLUMNS = ["payslip_id", "employee_id", "employee_name", "period_start", "period_end",
                   "present_days", "base_salary", "total_commissions", "total_bonuses",
                   "total_deductions", "net_pay", "status", "released_date"]
ATTENDANCE_COLUMNS = ["date", "is_present", "checked_by_id", "checked_at", "notes"]

@dataclass
class SalarySnapshot:
    """What an employee has earned since they were last paid out."""
    employee_id: str
    balance: int
    since: Optional[date]
    through: date
    attendance: List[AttendanceRecord] = field(default_factory=list)
    commissions: List[CommissionLine] = field(default_factory=list)

    @property
    def present_days(self) -> int:
        return sum(1 for r in self.attendance if r.is_present)

    @property
    def total_commissions(self) -> int:
        return total_commissions(self.commissions)

class SalaryReports:
    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def current_salary_snapshot(self, employee_id: str, as_of: Optional[date] = None) -> SalarySnapshot:
        through = as_of or today()
        with session_scope(self.session_factory) as session:
            employee = session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("employee", employee_id)
            last = last_released_payslip(session, employee_id)
            since = day_after(last.period_end) if last is not None else None
            if since is not None and since > through:
                attendance = []
            else:
                attendance = attendance_between(session, employee_id, since or date.min, through)
            lines = commission_breakdown(session, employee_id, end_of_day(through),
                                         completed_after=release_cutoffs(session, employee_id).commission_after)
            return SalarySnapshot(employee_id=employee_id, balance=employee.salary_balance or 0,
                                  since=since, through=through, attendance=attendance, commissions=lines)

    def payslip_register(self, status: Optional[PayslipStatus] = None,
                         employee_id: Optional[str] = None) -> pd.DataFrame:
        stmt = select(Payslip, Employee.name).join(Employee, Employee.id == Payslip.employee_id)
        if status is not None:
            stmt = stmt.where(Payslip.status == coerce_status(PayslipStatus, status))
        if employee_id is not None:
            stmt = stmt.where(Payslip.employee_id == employee_id)
        stmt = stmt.order_by(Payslip.period_end.desc(), Employee.name.asc())
        with session_scope(self.session_factory) as session:
            rows = [
                {"payslip_id": p.id, "employee_id": p.employee_id, "employee_name": name,
                 "period_start": p.period_start, "period_end": p.period_end,
                 "present_days": p.present_days, "base_salary": p.base_salary,
                 "total_commissions": p.total_commissions, "total_bonuses": p.total_bonuses,
                 "total_deductions": p.total_deductions, "net_pay": p.net_pay,
                 "status": p.status.value, "released_date": p.released_date}
                for p, name in session.execute(stmt).all()
            ]
        if not rows: return pd.DataFrame(columns=PAYSLIP_COLUMNS)
        return pd.DataFrame(rows, columns=PAYSLIP_COLUMNS)

    def attendance_summary(self, employee_id: str, start, end) -> pd.DataFrame:
        try:
            start, end = to_date(start), to_date(end)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e)) from e
        with session_scope(self.session_factory) as session:
            if session.get(Employee, employee_id) is None:
                raise NotFoundError("employee", employee_id)
            records = attendance_between(session, employee_id, start, end)
        if not records: return pd.DataFrame(columns=ATTENDANCE_COLUMNS)
        return pd.DataFrame([
            {"date": r.date, "is_present": r.is_present, "checked_by_id": r.checked_by_id,
             "checked_at": r.checked_at, "notes": r.notes}
            for r in records
        ], columns=ATTENDANCE_COLUMNS)

    def payroll_totals(self, status: Optional[PayslipStatus] = None) -> pd.DataFrame:
        """Net pay per employee, largest first."""
        df = self.payslip_register(status=status)
        if df.empty: return pd.DataFrame(columns=["employee_id", "employee_name", "payslips", "net_pay"])
        out = (df.groupby(["employee_id", "employee_name"])
                 .agg(payslips=("payslip_id", "count"), net_pay=("net_pay", "sum"))
                 .reset_index()
                 .sort_values("net_pay", ascending=False))
        return out.reset_index(drop=True)
