from datetime import date, datetime

import pytest
from sqlalchemy import select

from salonpay.core.errors import NotFoundError, PermissionDenied, StateConflictError, ValidationError
from salonpay.db.models import Employee, ExpenseEntry, Payslip, PayslipStatus
from salonpay.payroll.lifecycle import PayslipLifecycle
from factories import add_released_payslip, add_request, balance_of

def _pending_payslip(service, factory, owner, checker, worker):
    service.mark_attendance(worker, date(2024, 3, 4), True, checker)
    service.mark_attendance(worker, date(2024, 3, 5), True, checker)
    return service.approve_payslip_request(add_request(factory, worker, date(2024, 3, 1), date(2024, 3, 5)), owner)

def _expenses(factory):
    db = factory()
    try:
        return list(db.execute(select(ExpenseEntry)).scalars())
    finally:
        db.close()

def test_release_resets_balance_and_books_expense(service, factory, owner, checker, worker):
    payslip = _pending_payslip(service, factory, owner, checker, worker)
    # the running balance is allowed to drift from net pay before release
    db = factory()
    db.get(Employee, worker).salary_balance = 1337
    db.commit(); db.close()

    service.release_payslip(payslip.id, owner)

    assert balance_of(factory, worker) == 0
    released = service.payslips.get_payslip(payslip.id)
    assert released.status == PayslipStatus.RELEASED
    assert released.released_date is not None and released.released_by_id == owner
    [entry] = _expenses(factory)
    assert entry.amount == payslip.net_pay == 1000
    assert entry.category == "SALARY"
    assert entry.recorded_by_id == owner and entry.payslip_id == payslip.id

def test_release_twice_conflicts_without_side_effects(service, factory, owner, checker, worker):
    payslip = _pending_payslip(service, factory, owner, checker, worker)
    service.release_payslip(payslip.id, owner)
    service.mark_attendance(worker, date(2024, 3, 6), True, checker)

    with pytest.raises(StateConflictError):
        service.release_payslip(payslip.id, owner)
    assert balance_of(factory, worker) == 500
    assert len(_expenses(factory)) == 1

def test_release_guards(service, factory, owner, checker, worker):
    payslip = _pending_payslip(service, factory, owner, checker, worker)
    with pytest.raises(PermissionDenied):
        service.release_payslip(payslip.id, checker)
    with pytest.raises(NotFoundError):
        service.release_payslip("missing", owner)
    assert service.payslips.get_payslip(payslip.id).status == PayslipStatus.PENDING
    assert balance_of(factory, worker) == 1000

def test_failed_expense_write_rolls_back_release(factory, audit, service, owner, checker, worker):
    payslip = _pending_payslip(service, factory, owner, checker, worker)

    def broken_sink(session, payslip, employee, actor_id, released_at):
        raise RuntimeError("expense ledger unavailable")

    lifecycle = PayslipLifecycle(factory, audit, expense_sink=broken_sink)
    with pytest.raises(RuntimeError):
        lifecycle.release(payslip.id, owner)

    assert service.payslips.get_payslip(payslip.id).status == PayslipStatus.PENDING
    assert balance_of(factory, worker) == 1000
    assert _expenses(factory) == []

def test_list_payslips_pending_first_then_latest_period(service, factory, owner, worker, checker):
    add_released_payslip(factory, worker, date(2024, 3, 1), date(2024, 3, 10), datetime(2024, 3, 10, 18))
    add_released_payslip(factory, worker, date(2024, 3, 11), date(2024, 3, 20), datetime(2024, 3, 20, 18))
    db = factory()
    db.add(Payslip(employee_id=checker, period_start=date(2024, 3, 1), period_end=date(2024, 3, 5)))
    db.commit(); db.close()

    ends = [(p.status, p.period_end.day) for p in service.list_payslips()]
    assert ends == [(PayslipStatus.PENDING, 5), (PayslipStatus.RELEASED, 20), (PayslipStatus.RELEASED, 10)]
    assert [p.period_end.day for p in service.get_released_payslips(worker)] == [20, 10]
    assert service.list_payslips(status="PENDING", employee_id=worker) == []

def test_status_for_period(service, factory, owner, checker, worker):
    payslip = _pending_payslip(service, factory, owner, checker, worker)
    assert service.get_payslip_status_for_period(worker, "2024-03-01", "2024-03-05") == "PENDING"
    service.release_payslip(payslip.id, owner)
    assert service.get_payslip_status_for_period(worker, date(2024, 3, 1), date(2024, 3, 5)) == "RELEASED"
    assert service.get_payslip_status_for_period(worker, date(2024, 3, 1), date(2024, 3, 6)) == "NOT_FOUND"
    with pytest.raises(ValidationError):
        service.get_payslip_status_for_period(worker, "first of march", date(2024, 3, 5))

def test_release_closes_the_period_for_the_next_request(service, factory, owner, checker, worker):
    payslip = _pending_payslip(service, factory, owner, checker, worker)
    service.release_payslip(payslip.id, owner)
    period = service.resolve_pay_period(worker, date(2024, 3, 20))
    assert period.period_start == date(2024, 3, 6)

def test_unknown_payslip_status_filter(service):
    with pytest.raises(ValidationError):
        service.list_payslips(status="PAID")
    with pytest.raises(ValidationError):
        service.reports.payslip_register(status="paid")
