"""Pytest bootstrap configuration.

Environment variables are set before test collection so that application
settings (read at import time) point at a throwaway database.
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="ntfy-relay-tests-")

os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DATABASE__URL", f"sqlite+aiosqlite:///{_TMP_DIR}/default.sqlite")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from infrastructure.database import build_engine, build_session_factory, create_tables, sqlite_url_for  # noqa: E402
from infrastructure.unit_of_work import uow_factory_for  # noqa: E402


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "ntfy.sqlite")


@pytest_asyncio.fixture
async def engine(db_path):
    eng = build_engine(sqlite_url_for(db_path))
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def uow_factory(engine):
    return uow_factory_for(build_session_factory(engine))
