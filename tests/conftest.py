import os
from datetime import date, datetime
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config

ROOT = Path(__file__).resolve().parent.parent

# Module-level setup: point the app at a throwaway database before any test
# module imports `backoffice`.
data_dir = ROOT / "data"
data_dir.mkdir(exist_ok=True)
test_db_path = data_dir / "test.db"
for suffix in ("", "-wal", "-shm"):
    stale = Path(f"{test_db_path}{suffix}")
    if stale.exists():
        stale.unlink()

test_db_url = f"sqlite:///{test_db_path.as_posix()}"
os.environ["DATABASE_URL"] = test_db_url

# Run alembic migrations once at import time so `backoffice` imports see the schema.
cfg = Config(str(ROOT / "alembic.ini"))
cfg.set_main_option("script_location", str(ROOT / "alembic"))
cfg.set_main_option("sqlalchemy.url", test_db_url)
command.upgrade(cfg, "head")

from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from backoffice import dates  # noqa: E402
from backoffice.auth import create_access_token  # noqa: E402

# engine tests run with the clock pinned inside this month
FROZEN_NOW = dates.IST.localize(datetime(2024, 6, 18, 10, 30))
THIS_MONTH = date(2024, 6, 1)


@pytest.fixture(scope="session", autouse=True)
def prepare_test_db():
    """Session-scoped fixture available to tests; cleanup happens after session."""
    yield
    from backoffice.db import engine

    engine.dispose()
    for suffix in ("", "-wal", "-shm"):
        try:
            Path(f"{test_db_path}{suffix}").unlink()
        except FileNotFoundError:
            pass


@pytest.fixture
def frozen_clock(monkeypatch):
    monkeypatch.setattr(dates, "_now", lambda: FROZEN_NOW)
    return THIS_MONTH


@pytest.fixture
def engine():
    e = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(e)
    return e


@pytest.fixture
def session(engine, frozen_clock):
    with Session(engine, expire_on_commit=False) as s:
        yield s


def auth_headers(role: str = "orgadmin", **claims) -> dict:
    token = create_access_token({"sub": f"{role}-user", "role": role, **claims})
    return {"Authorization": f"Bearer {token}"}
