"""
State machines for payslip requests and payslips.

Request:  PENDING -> PROCESSED | REJECTED | FAILED   (terminal)
Payslip:  PENDING -> RELEASED                        (terminal)

A transition is applied as a conditional UPDATE on the expected current status, so of two
concurrent callers exactly one sees rowcount == 1; the other gets StateConflictError.
"""
from typing import Dict, Set, Any
from sqlalchemy import select, update

from salonpay.core.errors import NotFoundError, StateConflictError, ValidationError
from salonpay.db.models import PayslipRequestStatus, PayslipStatus

REQUEST_TRANSITIONS: Dict[PayslipRequestStatus, Set[PayslipRequestStatus]] = {
    PayslipRequestStatus.PENDING: {
        PayslipRequestStatus.PROCESSED,
        PayslipRequestStatus.REJECTED,
        PayslipRequestStatus.FAILED,
    },
}

PAYSLIP_TRANSITIONS: Dict[PayslipStatus, Set[PayslipStatus]] = {
    PayslipStatus.PENDING: {PayslipStatus.RELEASED},
}

def _table_for(model) -> Dict:
    status_type = model.status.type.enum_class
    if status_type is PayslipRequestStatus:
        return REQUEST_TRANSITIONS
    if status_type is PayslipStatus:
        return PAYSLIP_TRANSITIONS
    raise TypeError(f"no state machine for {model.__name__}")

def coerce_status(enum_class, value):
    """Status filter value as `enum_class`; unknown names are a ValidationError."""
    try:
        return enum_class(value)
    except ValueError:
        allowed = ", ".join(s.value for s in enum_class)
        raise ValidationError(f"unknown status {value!r}, expected one of: {allowed}") from None

def is_allowed(model, current, target) -> bool:
    return target in _table_for(model).get(current, set())

def current_status(session, model, entity_id: str):
    status = session.execute(select(model.status).where(model.id == entity_id)).scalar_one_or_none()
    if status is None:
        raise NotFoundError(model.__name__, entity_id)
    return status

def ensure_status(session, model, entity_id: str, expected):
    """Guard read: raise unless the entity is currently in `expected`."""
    status = current_status(session, model, entity_id)
    if status != expected:
        raise StateConflictError(model.__name__, entity_id, status.value, expected.value)
    return status

def apply_transition(session, model, entity_id: str, expected, target, **values: Any) -> None:
    """Move entity from `expected` to `target`, writing `values` alongside the status."""
    if not is_allowed(model, expected, target):
        raise StateConflictError(model.__name__, entity_id, expected.value, f"a state that allows {target.value}")
    stmt = (
        update(model)
        .where(model.id == entity_id, model.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session="fetch")
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        status = current_status(session, model, entity_id)
        raise StateConflictError(model.__name__, entity_id, status.value, expected.value)
