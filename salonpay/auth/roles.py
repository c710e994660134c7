"""
Roles, permissions and the actor context passed into every mutating payroll call.
"""
import enum
from dataclasses import dataclass, field
from typing import Iterable, FrozenSet

from salonpay.core.errors import NotFoundError, PermissionDenied
from salonpay.db.models import Employee

class Role(str, enum.Enum):
    OWNER = "OWNER"
    CASHIER = "CASHIER"
    WORKER = "WORKER"
    ATTENDANCE_CHECKER = "ATTENDANCE_CHECKER"

ATTENDANCE_MARK = "attendance.mark"
PAYSLIPS_REQUEST = "payslips.request"
PAYSLIPS_MANAGE = "payslips.manage"

DEFAULT_ROLES = {
    Role.OWNER: {"description": "Owner / administrator", "permissions": ["*"]},
    Role.ATTENDANCE_CHECKER: {"description": "Attendance checker", "permissions": [ATTENDANCE_MARK, PAYSLIPS_REQUEST]},
    Role.CASHIER: {"description": "Cashier", "permissions": [PAYSLIPS_REQUEST]},
    Role.WORKER: {"description": "Service worker", "permissions": [PAYSLIPS_REQUEST]},
}

ADMIN_ROLES = frozenset({Role.OWNER.value})

def _role_names(roles: Iterable) -> FrozenSet[str]:
    return frozenset(r.value if isinstance(r, Role) else str(r) for r in (roles or []))

def effective_permissions(roles: Iterable) -> set:
    perms = set()
    for name in _role_names(roles):
        meta = DEFAULT_ROLES.get(Role(name)) if name in Role.__members__ else None
        if meta:
            perms.update(meta["permissions"])
    return perms

def has_permission(roles: Iterable, permission: str) -> bool:
    perms = effective_permissions(roles)
    if "*" in perms or permission in perms:
        return True
    prefix = permission.split(".")[0]
    return f"{prefix}.*" in perms

def is_admin(roles: Iterable) -> bool:
    return bool(_role_names(roles) & ADMIN_ROLES)

def is_payroll_eligible(roles: Iterable) -> bool:
    return not is_admin(roles)

@dataclass(frozen=True)
class Actor:
    """Who performs an action, and with which roles."""
    id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def can(self, permission: str) -> bool:
        return has_permission(self.roles, permission)

    def require(self, permission: str) -> "Actor":
        if not self.can(permission):
            raise PermissionDenied(self.id, permission)
        return self

    @property
    def is_admin(self) -> bool:
        return is_admin(self.roles)

def load_actor(session, actor_id: str) -> Actor:
    if not actor_id:
        raise NotFoundError("actor", str(actor_id))
    emp = session.get(Employee, actor_id)
    if emp is None or not emp.is_active:
        raise NotFoundError("actor", actor_id)
    return Actor(id=emp.id, roles=_role_names(emp.roles))
