import enum
import uuid
from sqlalchemy import (
    Column, String, Integer, ForeignKey, Date, DateTime, Boolean, JSON, Text, Enum,
    UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from datetime import datetime
from salonpay.db.session import Base

def _uuid():
    return str(uuid.uuid4())

class WorkStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class PayslipStatus(str, enum.Enum):
    PENDING = "PENDING"
    RELEASED = "RELEASED"

class PayslipRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"

class Employee(Base):
    __tablename__ = "employees"
    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    roles = Column(JSON, default=list)
    daily_rate = Column(Integer, nullable=False, default=0)
    # unpaid earnings; changed only through apply_balance_delta / reset_balance
    salary_balance = Column(Integer, nullable=False, default=0)
    can_request_payslip = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.now)

    payslips = relationship("Payslip", back_populates="employee", foreign_keys="Payslip.employee_id")

    def apply_balance_delta(self, delta: int) -> int:
        balance = self.salary_balance or 0
        if delta < 0:
            self.salary_balance = max(0, balance + delta)
        else:
            self.salary_balance = balance + delta
        return self.salary_balance

    def reset_balance(self) -> int:
        previous = self.salary_balance or 0
        self.salary_balance = 0
        return previous

class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("date", "employee_id", name="uq_attendance_day"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    employee_id = Column(String, ForeignKey("employees.id"), nullable=False, index=True)
    is_present = Column(Boolean, nullable=False, default=False)
    checked_by_id = Column(String, ForeignKey("employees.id"), nullable=True)
    checked_at = Column(DateTime, default=datetime.now)
    notes = Column(Text, nullable=True)

class WorkItem(Base):
    """A unit of service work, written by the transaction subsystem and only read here."""
    __tablename__ = "work_items"
    __table_args__ = (Index("ix_work_items_served_completed", "served_by_id", "completed_at"),)
    id = Column(String, primary_key=True, default=_uuid)
    served_by_id = Column(String, ForeignKey("employees.id"), nullable=True)
    service_title = Column(String, nullable=True)
    customer_name = Column(String, nullable=True)
    price = Column(Integer, nullable=False, default=0)
    commission_value = Column(Integer, nullable=False, default=0)
    status = Column(Enum(WorkStatus, native_enum=False, length=16), nullable=False, default=WorkStatus.PENDING)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

class Payslip(Base):
    __tablename__ = "payslips"
    __table_args__ = (UniqueConstraint("employee_id", "period_start", "period_end", name="uq_payslip_period"),)
    id = Column(String, primary_key=True, default=_uuid)
    employee_id = Column(String, ForeignKey("employees.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    present_days = Column(Integer, nullable=False, default=0)
    base_salary = Column(Integer, nullable=False, default=0)
    total_commissions = Column(Integer, nullable=False, default=0)
    total_deductions = Column(Integer, nullable=False, default=0)
    total_bonuses = Column(Integer, nullable=False, default=0)
    net_pay = Column(Integer, nullable=False, default=0)
    status = Column(Enum(PayslipStatus, native_enum=False, length=16), nullable=False, default=PayslipStatus.PENDING)
    released_date = Column(DateTime, nullable=True)
    released_by_id = Column(String, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    employee = relationship("Employee", back_populates="payslips", foreign_keys=[employee_id])

class PayslipRequest(Base):
    __tablename__ = "payslip_requests"
    id = Column(String, primary_key=True, default=_uuid)
    employee_id = Column(String, ForeignKey("employees.id"), nullable=False, index=True)
    requested_at = Column(DateTime, nullable=False, default=datetime.now)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(Enum(PayslipRequestStatus, native_enum=False, length=16), nullable=False, default=PayslipRequestStatus.PENDING)
    notes = Column(Text, nullable=True)
    payslip_id = Column(String, ForeignKey("payslips.id"), nullable=True)
    processed_by_id = Column(String, ForeignKey("employees.id"), nullable=True)
    processed_at = Column(DateTime, nullable=True)

class ExpenseEntry(Base):
    """Audit expense written when a payslip is released."""
    __tablename__ = "expense_entries"
    id = Column(String, primary_key=True, default=_uuid)
    amount = Column(Integer, nullable=False)
    category = Column(String, nullable=False)
    description = Column(String, nullable=True)
    expense_date = Column(DateTime, nullable=False, default=datetime.now)
    recorded_by_id = Column(String, ForeignKey("employees.id"), nullable=False)
    payslip_id = Column(String, ForeignKey("payslips.id"), nullable=True, unique=True)
    created_at = Column(DateTime, default=datetime.now)
