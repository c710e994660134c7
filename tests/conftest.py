import os
import tempfile

os.environ.setdefault("AUDIT_LOG_PATH", tempfile.mkdtemp(prefix="salonpay-logs-"))
os.environ.setdefault("DB_URL", "sqlite://")

import pytest

from salonpay.core.audit import AuditLogger
from salonpay.db.session import init_db, make_engine, make_session_factory
from salonpay.service import PayrollService
from factories import EPOCH, add_employee

@pytest.fixture
def factory():
    engine = make_engine("sqlite://")
    init_db(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()

@pytest.fixture
def audit(tmp_path):
    return AuditLogger(str(tmp_path / "logs"))

@pytest.fixture
def service(factory, audit):
    return PayrollService(factory, audit, epoch=EPOCH)

@pytest.fixture
def owner(factory):
    return add_employee(factory, "Olive Owner", ["OWNER"], can_request=False)

@pytest.fixture
def checker(factory):
    return add_employee(factory, "Chris Checker", ["ATTENDANCE_CHECKER"], daily_rate=400)

@pytest.fixture
def worker(factory):
    return add_employee(factory, "Wren Worker", ["WORKER"], daily_rate=500)
