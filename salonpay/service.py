"""
PayrollService: the operations other parts of the business call into.

Each method is a thin delegation to the component that owns the behavior; this is where
session factory, activity trail and epoch get wired once.
"""
from datetime import date
from typing import List, Optional

from salonpay.attendance.ledger import AttendanceLedger, AttendanceResult
from salonpay.core.audit import AuditLogger
from salonpay.core.errors import NotFoundError, ValidationError
from salonpay.core.utils import setup_logging, to_date
from salonpay.db.models import Employee, Payslip, PayslipRequest
from salonpay.db.session import session_scope
from salonpay.employees.manager import EmployeeManager
from salonpay.payroll.commission import CommissionLine, commission_breakdown, commission_window
from salonpay.payroll.engine import PayrollEngine
from salonpay.payroll.lifecycle import PayslipLifecycle
from salonpay.payroll.period import PayPeriod, resolve_pay_period
from salonpay.payroll.requests import PayslipRequestWorkflow
from salonpay.reports.salary import SalaryReports, SalarySnapshot

class PayrollService:
    def __init__(self, session_factory=None, audit: AuditLogger = None, epoch: date = None,
                 engine: PayrollEngine = None):
        self.session_factory = session_factory
        self.audit = audit or AuditLogger()
        self.epoch = epoch
        self.logger = setup_logging("payroll")
        self.attendance = AttendanceLedger(session_factory, self.audit)
        self.requests = PayslipRequestWorkflow(session_factory, self.audit, engine=engine, epoch=epoch)
        self.payslips = PayslipLifecycle(session_factory, self.audit)
        self.employees = EmployeeManager(session_factory, self.audit)
        self.reports = SalaryReports(session_factory)

    def resolve_pay_period(self, employee_id: str, end_date=None) -> PayPeriod:
        with session_scope(self.session_factory) as session:
            return resolve_pay_period(session, employee_id, end_date, epoch=self.epoch)

    def mark_attendance(self, employee_id: str, day, is_present: bool, checked_by_id: str,
                        notes: Optional[str] = None) -> AttendanceResult:
        return self.attendance.mark_attendance(employee_id, day, is_present, checked_by_id, notes=notes)

    def get_attendance(self, employee_id: str, period_start, period_end):
        return self.attendance.get_attendance(employee_id, period_start, period_end)

    def get_commission_breakdown(self, employee_id: str, period_start, period_end) -> List[CommissionLine]:
        try:
            start, end = to_date(period_start), to_date(period_end)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e)) from e
        if start > end:
            raise ValidationError(f"period start {start} is after period end {end}")
        with session_scope(self.session_factory) as session:
            if session.get(Employee, employee_id) is None:
                raise NotFoundError("employee", employee_id)
            after, through = commission_window(session, employee_id, start, end)
            if after is not None and after >= through:
                return []
            return commission_breakdown(session, employee_id, through, completed_after=after)

    def submit_payslip_request(self, employee_id: str) -> PayslipRequest:
        return self.requests.submit(employee_id)

    def approve_payslip_request(self, request_id: str, admin_id: str, *,
                                bonuses: int = 0, deductions: int = 0) -> Payslip:
        return self.requests.approve(request_id, admin_id, bonuses=bonuses, deductions=deductions)

    def reject_payslip_request(self, request_id: str, admin_id: str, reason: str) -> None:
        self.requests.reject(request_id, admin_id, reason)

    def list_payslip_requests(self, status=None, employee_id: Optional[str] = None) -> List[PayslipRequest]:
        return self.requests.list_requests(status=status, employee_id=employee_id)

    def release_payslip(self, payslip_id: str, admin_id: str) -> None:
        self.payslips.release(payslip_id, admin_id)

    def list_payslips(self, status=None, employee_id: Optional[str] = None) -> List[Payslip]:
        return self.payslips.list_payslips(status=status, employee_id=employee_id)

    def get_payslip_status_for_period(self, employee_id: str, period_start, period_end) -> str:
        return self.payslips.status_for_period(employee_id, period_start, period_end)

    def get_released_payslips(self, employee_id: str) -> List[Payslip]:
        return self.payslips.released_payslips(employee_id)

    def get_current_salary_snapshot(self, employee_id: str) -> SalarySnapshot:
        return self.reports.current_salary_snapshot(employee_id)

    def set_can_request_payslip(self, employee_id: str, allowed: bool, actor_id: str) -> Employee:
        return self.employees.set_can_request_payslip(employee_id, allowed, actor_id)

    def set_all_can_request_payslip(self, allowed: bool, actor_id: str) -> int:
        return self.employees.set_all_can_request_payslip(allowed, actor_id)
