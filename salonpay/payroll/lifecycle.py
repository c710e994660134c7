"""
Payslip lifecycle: PENDING -> RELEASED, once.

Release is where the incrementally kept salary balance is reconciled with the payslip: the
balance goes back to zero whatever it held, and the net pay is booked as a salary expense.
Status change, balance reset and expense entry commit together or not at all.
"""
import logging
from typing import Callable, List, Optional

from sqlalchemy import select, case

from salonpay.approvals.engine import apply_transition, coerce_status
from salonpay.auth.roles import PAYSLIPS_MANAGE, load_actor
from salonpay.core.audit import AuditLogger
from salonpay.core.config import settings
from salonpay.core.errors import NotFoundError, ValidationError
from salonpay.core.utils import now, to_date
from salonpay.db.models import Employee, ExpenseEntry, Payslip, PayslipStatus
from salonpay.db.session import session_scope

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"

def record_salary_expense(session, payslip: Payslip, employee: Employee, actor_id: str, released_at) -> ExpenseEntry:
    entry = ExpenseEntry(
        amount=payslip.net_pay,
        category=settings.SALARY_EXPENSE_CATEGORY,
        description=f"Salary {employee.name} {payslip.period_start}..{payslip.period_end}",
        expense_date=released_at,
        recorded_by_id=actor_id,
        payslip_id=payslip.id,
    )
    session.add(entry)
    return entry

class PayslipLifecycle:
    def __init__(self, session_factory=None, audit: AuditLogger = None,
                 expense_sink: Callable = record_salary_expense):
        self.session_factory = session_factory
        self.audit = audit or AuditLogger()
        self.expense_sink = expense_sink

    def release(self, payslip_id: str, releasing_actor_id: str) -> Payslip:
        with session_scope(self.session_factory) as session:
            actor = load_actor(session, releasing_actor_id).require(PAYSLIPS_MANAGE)
            payslip = session.get(Payslip, payslip_id)
            if payslip is None:
                raise NotFoundError("Payslip", payslip_id)

            released_at = now()
            apply_transition(session, Payslip, payslip_id,
                             PayslipStatus.PENDING, PayslipStatus.RELEASED,
                             released_date=released_at, released_by_id=actor.id)

            employee = session.execute(
                select(Employee).where(Employee.id == payslip.employee_id).with_for_update()
            ).scalar_one_or_none()
            if employee is None:
                raise NotFoundError("employee", payslip.employee_id)
            balance_before = employee.reset_balance()

            self.expense_sink(session, payslip, employee, actor.id, released_at)
            session.flush()

        if balance_before != payslip.net_pay:
            logger.info("payslip %s: running balance %d reconciled to net pay %d at release",
                        payslip_id, balance_before, payslip.net_pay)
        logger.info("payslip %s released by %s, net %d", payslip_id, actor.id, payslip.net_pay)
        self.audit.log_change("payslip", "release", payslip_id, {
            "net_pay": payslip.net_pay, "balance_before": balance_before,
            "released_date": released_at,
        }, actor_id=actor.id)
        return payslip

    def get_payslip(self, payslip_id: str) -> Payslip:
        with session_scope(self.session_factory) as session:
            payslip = session.get(Payslip, payslip_id)
            if payslip is None:
                raise NotFoundError("Payslip", payslip_id)
            return payslip

    def list_payslips(self, status: Optional[PayslipStatus] = None,
                      employee_id: Optional[str] = None) -> List[Payslip]:
        """Pending first, then most recent period first."""
        stmt = select(Payslip)
        if status is not None:
            stmt = stmt.where(Payslip.status == coerce_status(PayslipStatus, status))
        if employee_id is not None:
            stmt = stmt.where(Payslip.employee_id == employee_id)
        pending_first = case((Payslip.status == PayslipStatus.PENDING, 0), else_=1)
        stmt = stmt.order_by(pending_first, Payslip.period_end.desc(), Payslip.employee_id)
        with session_scope(self.session_factory) as session:
            return list(session.execute(stmt).scalars())

    def released_payslips(self, employee_id: str) -> List[Payslip]:
        return self.list_payslips(status=PayslipStatus.RELEASED, employee_id=employee_id)

    def status_for_period(self, employee_id: str, period_start, period_end) -> str:
        try:
            start, end = to_date(period_start), to_date(period_end)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e)) from e
        with session_scope(self.session_factory) as session:
            status = session.execute(
                select(Payslip.status).where(
                    Payslip.employee_id == employee_id,
                    Payslip.period_start == start,
                    Payslip.period_end == end,
                )
            ).scalar_one_or_none()
        return status.value if status is not None else NOT_FOUND
