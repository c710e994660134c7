import threading
import time
from datetime import date, datetime, timedelta

import pytest

from salonpay.attendance import ledger as attendance_ledger
from salonpay.attendance.ledger import AttendanceLedger, attendance_delta
from salonpay.core.errors import NotFoundError, PermissionDenied, ValidationError
from salonpay.db.models import Employee
from salonpay.db.session import init_db, make_engine, make_session_factory
from factories import add_employee, add_released_payslip, add_request, balance_of

DAY1, DAY2 = date(2024, 3, 4), date(2024, 3, 5)

def test_delta_table():
    assert attendance_delta(None, True, 500, False) == 500
    assert attendance_delta(False, True, 500, False) == 500
    assert attendance_delta(True, False, 500, False) == -500
    assert attendance_delta(True, False, 500, True) == 0
    assert attendance_delta(True, True, 500, False) == 0
    assert attendance_delta(None, False, 500, False) == 0
    # re-marking present inside a paid period still credits; only claw-backs are blocked
    assert attendance_delta(False, True, 500, True) == 500

def test_mark_present_accrues_balance(service, factory, checker, worker):
    res = service.mark_attendance(worker, DAY1, True, checker)
    assert res.previous is None and res.delta == 500 and res.new_balance == 500
    assert res.record.is_present is True and res.record.checked_by_id == checker
    res = service.mark_attendance(worker, DAY2, True, checker)
    assert res.new_balance == 1000
    assert balance_of(factory, worker) == 1000

def test_repeat_mark_is_a_noop_for_balance(service, factory, checker, worker):
    service.mark_attendance(worker, DAY1, True, checker)
    res = service.mark_attendance(worker, DAY1, True, checker, notes="double tap")
    assert res.delta == 0 and res.new_balance is None
    assert res.record.notes == "double tap"
    assert balance_of(factory, worker) == 500
    assert len(service.get_attendance(worker, DAY1, DAY1)) == 1

def test_toggle_absent_reverses_accrual(service, factory, checker, worker):
    service.mark_attendance(worker, DAY1, True, checker)
    res = service.mark_attendance(worker, DAY1, False, checker)
    assert res.previous is True and res.delta == -500
    assert balance_of(factory, worker) == 0

def test_balance_never_goes_negative(service, factory, checker, worker):
    service.mark_attendance(worker, DAY1, True, checker)
    db = factory()
    db.get(Employee, worker).salary_balance = 200
    db.commit(); db.close()
    service.mark_attendance(worker, DAY1, False, checker)
    assert balance_of(factory, worker) == 0

def test_locked_period_correction_keeps_balance(service, factory, checker, worker):
    add_released_payslip(factory, worker, date(2024, 3, 1), DAY2, datetime(2024, 3, 5, 19, 0))
    service.mark_attendance(worker, DAY1, True, checker)
    before = balance_of(factory, worker)
    res = service.mark_attendance(worker, DAY1, False, checker)
    assert res.locked is True and res.delta == 0
    assert res.record.is_present is False
    assert balance_of(factory, worker) == before

def test_concrete_scenario(service, factory, owner, checker, worker):
    assert service.mark_attendance(worker, DAY1, True, checker).new_balance == 500
    assert service.mark_attendance(worker, DAY2, True, checker).new_balance == 1000

    request_id = add_request(factory, worker, DAY1, DAY2)
    payslip = service.approve_payslip_request(request_id, owner)
    assert payslip.present_days == 2
    assert payslip.base_salary == 1000

    service.release_payslip(payslip.id, owner)
    assert balance_of(factory, worker) == 0

    res = service.mark_attendance(worker, DAY1, False, checker)
    assert res.locked is True
    assert balance_of(factory, worker) == 0
    assert service.get_attendance(worker, DAY1, DAY1)[0].is_present is False

def test_mark_attendance_guards(service, owner, checker, worker):
    with pytest.raises(NotFoundError):
        service.mark_attendance("ghost", DAY1, True, checker)
    with pytest.raises(ValidationError):
        service.mark_attendance(worker, "03/04/2024", True, checker)
    with pytest.raises(ValidationError):
        service.mark_attendance(worker, date.today() + timedelta(days=2), True, checker)
    with pytest.raises(ValidationError):
        service.mark_attendance(worker, DAY1, "yes", checker)
    # workers cannot mark attendance, owners can
    with pytest.raises(PermissionDenied):
        service.mark_attendance(checker, DAY1, True, worker)
    assert service.mark_attendance(worker, DAY1, True, owner).delta == 500

def test_get_attendance_orders_by_day(service, checker, worker):
    service.mark_attendance(worker, DAY2, True, checker)
    service.mark_attendance(worker, DAY1, False, checker)
    records = service.get_attendance(worker, "2024-03-01", "2024-03-31")
    assert [r.date for r in records] == [DAY1, DAY2]
    with pytest.raises(ValidationError):
        service.get_attendance(worker, DAY2, DAY1)

def test_marks_are_written_to_activity_trail(service, audit, checker, worker):
    service.mark_attendance(worker, DAY1, True, checker)
    history = audit.get_change_history("attendance", f"{worker}:{DAY1.isoformat()}")
    assert len(history) == 1
    assert history[0]["changes"]["delta"] == 500
    assert history[0]["actor_id"] == checker

def test_remark_without_note_keeps_existing_note(service, checker, worker):
    service.mark_attendance(worker, DAY1, True, checker, notes="left at 3pm")
    res = service.mark_attendance(worker, DAY1, False, checker)
    assert res.record.notes == "left at 3pm"
    assert service.get_attendance(worker, DAY1, DAY1)[0].notes == "left at 3pm"

def test_concurrent_marks_for_one_employee_both_accrue(tmp_path, audit, monkeypatch):
    engine = make_engine(f"sqlite:///{tmp_path / 'payroll.db'}")
    init_db(bind=engine)
    factory = make_session_factory(engine)
    checker = add_employee(factory, "Chris Checker", ["ATTENDANCE_CHECKER"])
    worker = add_employee(factory, "Wren Worker", ["WORKER"], daily_rate=500)
    ledger = AttendanceLedger(factory, audit)

    # hold each mark open between reading the balance and writing it back
    read_cutoffs = attendance_ledger.release_cutoffs
    def slow_cutoffs(session, employee_id):
        cutoffs = read_cutoffs(session, employee_id)
        time.sleep(0.3)
        return cutoffs
    monkeypatch.setattr(attendance_ledger, "release_cutoffs", slow_cutoffs)

    errors = []
    def mark(day):
        try:
            ledger.mark_attendance(worker, day, True, checker)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=mark, args=(d,)) for d in (DAY1, DAY2)]
    for t in threads: t.start()
    for t in threads: t.join()
    try:
        assert errors == []
        assert balance_of(factory, worker) == 1000
        assert len(ledger.get_attendance(worker, DAY1, DAY2)) == 2
    finally:
        engine.dispose()
