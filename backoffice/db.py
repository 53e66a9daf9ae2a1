import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
import os

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from .errors import Conflict, StoreFailure

logger = logging.getLogger(__name__)

# sqlite reports the columns, other drivers the constraint name
RETRYABLE_CONSTRAINTS = ("uq_tenant_version", "uq_tenant_active", "tenant.tenant_id")

# Base dir = repository root (one level above the package)
BASE_DIR = Path(__file__).resolve().parent.parent

DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)

# DATABASE_URL overrides the default sqlite file (tests and CI set it).
# Relative sqlite paths are resolved against the repository root so the
# app and alembic agree regardless of the working directory.
env_database_url = os.getenv("DATABASE_URL")
if env_database_url:
    DATABASE_URL = env_database_url
else:
    DATABASE_URL = f"sqlite:///{(DATA_DIR / 'app.db').as_posix()}"

if DATABASE_URL.startswith("sqlite:///") and DATABASE_URL != "sqlite:///:memory:":
    p = Path(DATABASE_URL.replace("sqlite:///", "", 1))
    if not p.is_absolute():
        p = (BASE_DIR / p).resolve()
        DATABASE_URL = f"sqlite:///{p.as_posix()}"
    p.parent.mkdir(parents=True, exist_ok=True)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    # WAL and foreign keys on every new sqlite connection; other drivers untouched
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def init_db():
    SQLModel.metadata.create_all(engine)


def open_session() -> Session:
    # rows returned to callers stay readable after the request transaction commits
    return Session(engine, expire_on_commit=False)


@contextmanager
def store_step(step: str):
    """Run one write of a multi-step sequence, naming it if the store fails.

    Integrity errors surface as Conflict. Collisions on the tenant version
    constraints mean another writer moved the same tenant first and are
    marked retryable; any other violation (duplicate reading month, dangling
    reference) will fail the same way again. Anything else from the driver
    becomes a StoreFailure carrying ``step``. The caller's transaction is
    rolled back either way.
    """
    try:
        yield
    except IntegrityError as exc:
        reason = str(exc.orig)
        logger.warning("integrity error during %r: %s", step, reason)
        retryable = any(marker in reason for marker in RETRYABLE_CONSTRAINTS)
        raise Conflict(f"{step}: {reason}", retryable=retryable) from exc
    except SQLAlchemyError as exc:
        logger.exception("store failure during %r", step)
        raise StoreFailure(f"{step}: {exc}", step=step) from exc


def insert_row(session: Session, row: SQLModel, step: str) -> SQLModel:
    with store_step(step):
        session.add(row)
        session.flush()
    return row
