"""
Payslip requests: an employee asks to be paid out, an owner approves or rejects.

Approval materializes a PENDING payslip from scratch (attendance days x daily rate, plus
commission since the last release). If that fails after the guards have passed, the request
is parked in FAILED with the error text in its notes instead of staying PENDING forever.
"""
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select

from salonpay.approvals.engine import apply_transition, coerce_status, ensure_status
from salonpay.attendance.ledger import count_present_days
from salonpay.auth.roles import PAYSLIPS_MANAGE, PAYSLIPS_REQUEST, is_payroll_eligible, load_actor
from salonpay.core.audit import AuditLogger
from salonpay.core.errors import (
    ApprovalFailedError, NoNewEarningsError, NotFoundError, PayrollError, PermissionDenied,
    StateConflictError, ValidationError,
)
from salonpay.core.utils import end_of_day, now
from salonpay.db.models import Employee, Payslip, PayslipRequest, PayslipRequestStatus, PayslipStatus
from salonpay.db.session import session_scope
from salonpay.payroll.commission import commission_breakdown, has_commission_after, total_commissions
from salonpay.payroll.engine import PayrollEngine
from salonpay.payroll.period import release_cutoffs, resolve_pay_period

logger = logging.getLogger(__name__)

def _pending_payslip_overlapping(session, employee_id: str, start, end) -> Optional[Payslip]:
    stmt = select(Payslip).where(
        Payslip.employee_id == employee_id,
        Payslip.status == PayslipStatus.PENDING,
        Payslip.period_start <= end,
        Payslip.period_end >= start,
    ).order_by(Payslip.period_end.asc())
    return session.execute(stmt).scalars().first()

class PayslipRequestWorkflow:
    def __init__(self, session_factory=None, audit: AuditLogger = None,
                 engine: PayrollEngine = None, epoch: date = None):
        self.session_factory = session_factory
        self.audit = audit or AuditLogger()
        self.engine = engine or PayrollEngine()
        self.epoch = epoch

    def submit(self, employee_id: str, today: Optional[date] = None) -> PayslipRequest:
        with session_scope(self.session_factory) as session:
            employee = session.execute(
                select(Employee).where(Employee.id == employee_id).with_for_update()
            ).scalar_one_or_none()
            if employee is None or not employee.is_active:
                raise NotFoundError("employee", employee_id)
            if not is_payroll_eligible(employee.roles):
                raise PermissionDenied(employee_id, PAYSLIPS_REQUEST, "owners are not on payroll")
            if not employee.can_request_payslip:
                raise PermissionDenied(employee_id, PAYSLIPS_REQUEST, "payslip requests are disabled for this employee")

            period = resolve_pay_period(session, employee_id, end_date=today or now().date(), epoch=self.epoch)

            # one open payout at a time: every window starts after the last release, so any
            # pending request or unreleased payslip covers the same days and work
            pending = session.execute(
                select(PayslipRequest).where(
                    PayslipRequest.employee_id == employee_id,
                    PayslipRequest.status == PayslipRequestStatus.PENDING,
                )
            ).scalars().first()
            if pending is not None:
                raise StateConflictError("PayslipRequest", pending.id, pending.status.value, "none",
                                         message=f"request {pending.id} for {pending.period_start}..{pending.period_end} is still pending")
            unreleased = _pending_payslip_overlapping(session, employee_id, period.period_start, period.period_end)
            if unreleased is not None:
                raise StateConflictError("Payslip", unreleased.id, unreleased.status.value, PayslipStatus.RELEASED.value,
                                         message=f"payslip {unreleased.id} for {unreleased.period_start}..{unreleased.period_end} has not been released yet")
            existing = session.execute(
                select(Payslip).where(
                    Payslip.employee_id == employee_id,
                    Payslip.period_start == period.period_start,
                    Payslip.period_end == period.period_end,
                )
            ).scalars().first()
            if existing is not None:
                raise StateConflictError("Payslip", existing.id, existing.status.value, "none",
                                         message=f"a payslip for {period.period_start}..{period.period_end} already exists")

            cutoffs = release_cutoffs(session, employee_id)
            if not has_commission_after(session, employee_id, end_of_day(period.period_end), cutoffs.commission_after):
                raise NoNewEarningsError(f"employee {employee_id} has no commissionable work since the last release")

            request = PayslipRequest(
                employee_id=employee_id,
                requested_at=now(),
                period_start=period.period_start,
                period_end=period.period_end,
                status=PayslipRequestStatus.PENDING,
            )
            session.add(request)
            session.flush()

        logger.info("payslip request %s submitted by %s for %s..%s",
                    request.id, employee_id, request.period_start, request.period_end)
        self.audit.log_change("payslip_request", "submit", request.id, {
            "period_start": request.period_start, "period_end": request.period_end,
        }, actor_id=employee_id)
        return request

    def approve(self, request_id: str, admin_id: str, *, bonuses: int = 0, deductions: int = 0) -> Payslip:
        for name, value in (("bonuses", bonuses), ("deductions", deductions)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")

        with session_scope(self.session_factory) as session:
            actor = load_actor(session, admin_id).require(PAYSLIPS_MANAGE)
            ensure_status(session, PayslipRequest, request_id, PayslipRequestStatus.PENDING)

        try:
            with session_scope(self.session_factory) as session:
                payslip = self._materialize(session, request_id, actor.id, bonuses, deductions)
        except StateConflictError:
            # the request or an unreleased payslip is in the way; the request stays PENDING
            raise
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error("approval of payslip request %s failed: %s", request_id, reason, exc_info=True)
            self._mark_failed(request_id, actor.id, reason)
            raise ApprovalFailedError(request_id, reason) from e

        logger.info("payslip request %s approved by %s: payslip %s net %d",
                    request_id, actor.id, payslip.id, payslip.net_pay)
        self.audit.log_change("payslip_request", "approve", request_id, {
            "payslip_id": payslip.id, "base_salary": payslip.base_salary,
            "total_commissions": payslip.total_commissions, "net_pay": payslip.net_pay,
        }, actor_id=actor.id)
        return payslip

    def _materialize(self, session, request_id: str, actor_id: str, bonuses: int, deductions: int) -> Payslip:
        request = session.get(PayslipRequest, request_id)
        employee = session.execute(
            select(Employee).where(Employee.id == request.employee_id).with_for_update()
        ).scalar_one_or_none()
        if employee is None:
            raise NotFoundError("employee", request.employee_id)

        # the request's window is nominal; attendance restarts after whatever was paid last
        attendance_start = resolve_pay_period(
            session, employee.id, end_date=request.period_end, epoch=self.epoch
        ).period_start
        unreleased = _pending_payslip_overlapping(session, employee.id, attendance_start, request.period_end)
        if unreleased is not None:
            raise StateConflictError("Payslip", unreleased.id, unreleased.status.value, PayslipStatus.RELEASED.value,
                                     message=f"payslip {unreleased.id} already covers part of "
                                             f"{attendance_start}..{request.period_end}; release it first")
        present_days = count_present_days(session, employee.id, attendance_start, request.period_end)
        base_salary = self.engine.compute_base_salary(employee.daily_rate, present_days)

        cutoffs = release_cutoffs(session, employee.id)
        lines = commission_breakdown(session, employee.id, end_of_day(request.period_end),
                                     completed_after=cutoffs.commission_after)
        totals = self.engine.compute_net_pay(base_salary, total_commissions(lines), bonuses, deductions)

        payslip = Payslip(
            employee_id=employee.id,
            period_start=request.period_start,
            period_end=request.period_end,
            present_days=present_days,
            status=PayslipStatus.PENDING,
            **totals,
        )
        session.add(payslip)
        session.flush()

        apply_transition(session, PayslipRequest, request_id,
                         PayslipRequestStatus.PENDING, PayslipRequestStatus.PROCESSED,
                         payslip_id=payslip.id, processed_by_id=actor_id, processed_at=now())
        return payslip

    def _mark_failed(self, request_id: str, actor_id: str, reason: str) -> None:
        try:
            with session_scope(self.session_factory) as session:
                apply_transition(session, PayslipRequest, request_id,
                                 PayslipRequestStatus.PENDING, PayslipRequestStatus.FAILED,
                                 notes=reason, processed_by_id=actor_id, processed_at=now())
        except PayrollError as e:
            logger.error("could not mark payslip request %s as FAILED: %s", request_id, e)
            return
        self.audit.log_change("payslip_request", "fail", request_id, {"notes": reason}, actor_id=actor_id)

    def reject(self, request_id: str, admin_id: str, reason: str) -> None:
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationError("a rejection reason is required")
        with session_scope(self.session_factory) as session:
            actor = load_actor(session, admin_id).require(PAYSLIPS_MANAGE)
            apply_transition(session, PayslipRequest, request_id,
                             PayslipRequestStatus.PENDING, PayslipRequestStatus.REJECTED,
                             notes=reason.strip(), processed_by_id=actor.id, processed_at=now())
        logger.info("payslip request %s rejected by %s", request_id, actor.id)
        self.audit.log_change("payslip_request", "reject", request_id, {"notes": reason.strip()}, actor_id=actor.id)

    def get_request(self, request_id: str) -> PayslipRequest:
        with session_scope(self.session_factory) as session:
            request = session.get(PayslipRequest, request_id)
            if request is None:
                raise NotFoundError("PayslipRequest", request_id)
            return request

    def list_requests(self, status: Optional[PayslipRequestStatus] = None,
                      employee_id: Optional[str] = None) -> List[PayslipRequest]:
        stmt = select(PayslipRequest)
        if status is not None:
            stmt = stmt.where(PayslipRequest.status == coerce_status(PayslipRequestStatus, status))
        if employee_id is not None:
            stmt = stmt.where(PayslipRequest.employee_id == employee_id)
        stmt = stmt.order_by(PayslipRequest.requested_at.desc())
        with session_scope(self.session_factory) as session:
            return list(session.execute(stmt).scalars())
