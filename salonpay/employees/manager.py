"""
Employee master data as payroll sees it: who is on payroll and who may request a payslip.
"""
import logging
from typing import List

from sqlalchemy import select

from salonpay.auth.roles import PAYSLIPS_MANAGE, PAYSLIPS_REQUEST, is_payroll_eligible, load_actor
from salonpay.core.audit import AuditLogger
from salonpay.core.errors import NotFoundError, PermissionDenied, ValidationError
from salonpay.db.models import Employee
from salonpay.db.session import session_scope

logger = logging.getLogger(__name__)

class EmployeeManager:
    """Payroll-facing employee lookups and the payslip request toggles."""

    def __init__(self, session_factory=None, audit: AuditLogger = None):
        self.session_factory = session_factory
        self.audit = audit or AuditLogger()

    def get_employee(self, employee_id: str) -> Employee:
        with session_scope(self.session_factory) as session:
            employee = session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("employee", employee_id)
            return employee

    def list_payroll_employees(self, include_inactive: bool = False) -> List[Employee]:
        """Everyone who earns a salary, i.e. all non-owner accounts, sorted by name."""
        stmt = select(Employee).order_by(Employee.name.asc())
        if not include_inactive:
            stmt = stmt.where(Employee.is_active.is_(True))
        with session_scope(self.session_factory) as session:
            return [e for e in session.execute(stmt).scalars() if is_payroll_eligible(e.roles)]

    def set_can_request_payslip(self, employee_id: str, allowed: bool, actor_id: str) -> Employee:
        if not isinstance(allowed, bool):
            raise ValidationError("allowed must be a boolean")
        with session_scope(self.session_factory) as session:
            actor = load_actor(session, actor_id).require(PAYSLIPS_MANAGE)
            employee = session.get(Employee, employee_id)
            if employee is None:
                raise NotFoundError("employee", employee_id)
            if not is_payroll_eligible(employee.roles):
                raise PermissionDenied(employee_id, PAYSLIPS_REQUEST, "owners are not on payroll")
            previous = bool(employee.can_request_payslip)
            employee.can_request_payslip = allowed

        logger.info("employee %s: can_request_payslip %s -> %s (by %s)", employee_id, previous, allowed, actor.id)
        self.audit.log_change("employee", "set_can_request_payslip", employee_id,
                              {"previous": previous, "allowed": allowed}, actor_id=actor.id)
        return employee

    def set_all_can_request_payslip(self, allowed: bool, actor_id: str) -> int:
        """Flip the toggle for every active payroll employee. Returns how many changed."""
        if not isinstance(allowed, bool):
            raise ValidationError("allowed must be a boolean")
        with session_scope(self.session_factory) as session:
            actor = load_actor(session, actor_id).require(PAYSLIPS_MANAGE)
            changed = []
            for employee in session.execute(select(Employee).where(Employee.is_active.is_(True))).scalars():
                if not is_payroll_eligible(employee.roles) or bool(employee.can_request_payslip) == allowed:
                    continue
                employee.can_request_payslip = allowed
                changed.append(employee.id)

        logger.info("can_request_payslip set to %s for %d employees (by %s)", allowed, len(changed), actor.id)
        self.audit.log_change("employee", "set_all_can_request_payslip", "*",
                              {"allowed": allowed, "employee_ids": changed}, actor_id=actor.id)
        return len(changed)
