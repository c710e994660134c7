from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from salonpay.core.config import settings
from salonpay.core.errors import PersistenceError

Base = declarative_base()

def _begin_immediate(engine):
    # sqlite ignores FOR UPDATE: take the write lock at BEGIN so reads inside a unit of work
    # see the last committed balance
    @event.listens_for(engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

def make_engine(db_url: str = None, *, timeout: float = None, echo: bool = False):
    db_url = db_url or settings.DB_URL
    timeout = settings.DB_TIMEOUT_SECONDS if timeout is None else timeout
    kwargs = {}
    in_memory = db_url in ("sqlite://", "sqlite:///:memory:")
    if db_url.startswith("sqlite"):
        # sqlite waits up to `timeout` seconds on a locked database, then the statement fails
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": timeout}
        if in_memory:
            kwargs["poolclass"] = StaticPool
    elif db_url.startswith("postgresql"):
        kwargs["connect_args"] = {"options": f"-c lock_timeout={int(timeout * 1000)}"}
    engine = create_engine(db_url, echo=echo, future=True, **kwargs)
    # a private in-memory database has a single connection and nothing to race with
    if db_url.startswith("sqlite") and not in_memory:
        _begin_immediate(engine)
    return engine

def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

engine = make_engine()
SessionLocal = make_session_factory(engine)

def init_db(bind=None):
    # Import models here so they are registered on Base
    import salonpay.db.models as _models  # noqa: F401
    if bind is None and settings.DB_URL.startswith("sqlite:///./"):
        from salonpay.core.utils import mkdir_safe
        mkdir_safe("./" + settings.DB_URL[len("sqlite:///./"):].rpartition("/")[0])
    Base.metadata.create_all(bind=bind or engine)

@contextmanager
def session_scope(factory=None):
    """One atomic unit of work: commit on success, roll back everything on any error."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
