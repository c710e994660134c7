import math
from typing import Dict
from salonpay.core.config import settings
from salonpay.core.errors import ValidationError

def commission_for_price(price: int, rate: float = None) -> int:
    """Commission stamped on a completed work item, in the smallest currency unit."""
    rate = settings.SALARY_COMMISSION_RATE if rate is None else rate
    if price is None or price <= 0:
        return 0
    return math.floor(price * rate)

class PayrollEngine:
    def compute_base_salary(self, daily_rate: int, present_days: int) -> int:
        return max(0, daily_rate or 0) * max(0, present_days)

    def compute_net_pay(self, base_salary: int, total_commissions: int,
                        total_bonuses: int = 0, total_deductions: int = 0) -> Dict[str, int]:
        for name, value in (("bonuses", total_bonuses), ("deductions", total_deductions)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
        gross = base_salary + total_commissions + total_bonuses
        if total_deductions > gross:
            raise ValidationError(f"deductions {total_deductions} exceed gross earnings {gross}")
        return {
            "base_salary": base_salary,
            "total_commissions": total_commissions,
            "total_bonuses": total_bonuses,
            "total_deductions": total_deductions,
            "net_pay": gross - total_deductions,
        }
