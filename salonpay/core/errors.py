"""
Error taxonomy for payroll operations.

ValidationError and PermissionDenied are raised before any write, StateConflictError when an
entity is not in the state a transition needs, PersistenceError when storage fails mid
transaction (the transaction is rolled back).
"""
from typing import Optional


class PayrollError(Exception):
    """Base class for every error raised by salonpay."""


class ValidationError(PayrollError):
    pass


class NotFoundError(ValidationError):
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class NoNewEarningsError(ValidationError):
    """A payslip request must cover commission earned since the last release."""


class StateConflictError(PayrollError):
    def __init__(self, entity: str, entity_id: str, current: str, expected: str,
                 message: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.expected = expected
        super().__init__(message or f"{entity} {entity_id} is {current}, expected {expected}")


class PermissionDenied(PayrollError):
    def __init__(self, actor_id: str, action: str, reason: Optional[str] = None):
        self.actor_id = actor_id
        self.action = action
        msg = f"actor {actor_id} may not {action}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PersistenceError(PayrollError):
    pass


class ApprovalFailedError(PayrollError):
    """Raised after a request was moved to FAILED; the reason is stored in its notes."""

    def __init__(self, request_id: str, reason: str):
        self.request_id = request_id
        self.reason = reason
        super().__init__(f"payslip request {request_id} failed: {reason}")
