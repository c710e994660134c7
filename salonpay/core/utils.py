import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import date, datetime, time, timedelta
from typing import Optional

from salonpay.core.config import settings

def mkdir_safe(path: str):
    Path(path).mkdir(parents=True, exist_ok=True)

def setup_logging(component: str = "system", *, log_level: str = None, log_dir: str = None):
    """Attach a rotating file handler to the package logger. Safe to call repeatedly."""
    root = logging.getLogger(settings.APP_NAME)
    if not root.handlers:
        level = log_level or getattr(settings, "LOG_LEVEL", "INFO")
        root.setLevel(getattr(logging, level))
        audit_dir = log_dir or getattr(settings, "AUDIT_LOG_PATH", "./data/logs")
        mkdir_safe(audit_dir)
        logfile = Path(audit_dir) / f"{settings.APP_NAME}.log"
        handler = RotatingFileHandler(str(logfile), maxBytes=10_000_000, backupCount=5)
        formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
        handler.setFormatter(formatter)
        root.addHandler(handler)
        if os.getenv("DEV", "").lower() in ("1", "true", "yes"):
            ch = logging.StreamHandler()
            ch.setFormatter(formatter)
            root.addHandler(ch)
        root.propagate = False
    return root.getChild(component)

def now() -> datetime:
    return datetime.now()

def today() -> date:
    return now().date()

def to_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            raise ValueError(f"not an ISO date: {value!r}")
    raise TypeError(f"cannot convert {type(value).__name__} to date")

def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)

def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)

def day_after(d: date) -> date:
    return d + timedelta(days=1)

def earliest(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)
