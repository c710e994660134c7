import pytest

from salonpay.core.errors import ValidationError
from salonpay.payroll.engine import PayrollEngine, commission_for_price

def test_commission_is_floored_tenth_of_price():
    assert commission_for_price(2000) == 200
    assert commission_for_price(1999) == 199
    assert commission_for_price(5) == 0
    assert commission_for_price(0) == 0
    assert commission_for_price(-100) == 0
    assert commission_for_price(1000, rate=0.25) == 250

def test_base_salary():
    e = PayrollEngine()
    assert e.compute_base_salary(500, 2) == 1000
    assert e.compute_base_salary(500, 0) == 0
    assert e.compute_base_salary(None, 3) == 0

def test_net_pay():
    e = PayrollEngine()
    totals = e.compute_net_pay(1000, 200, total_bonuses=100, total_deductions=50)
    assert totals["net_pay"] == 1250
    assert totals["total_bonuses"] == 100 and totals["total_deductions"] == 50
    assert e.compute_net_pay(0, 0, 300, 100)["net_pay"] == 200

def test_net_pay_rejects_bad_adjustments():
    e = PayrollEngine()
    with pytest.raises(ValidationError):
        e.compute_net_pay(100, 0, total_deductions=101)
    with pytest.raises(ValidationError):
        e.compute_net_pay(100, 0, total_bonuses=-5)
    with pytest.raises(ValidationError):
        e.compute_net_pay(100, 0, total_bonuses=True)
