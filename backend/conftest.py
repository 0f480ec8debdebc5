"""Root conftest: test environment, structlog wiring and store fixtures shared by every package."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from game.tests.helpers.seed import seed_duel, seed_session
from shared.db import Database, SqliteTableStore
from shared.logging import _serialize_enums

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Route structlog through stdlib logging so caplog sees operator-channel records.
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _serialize_enums,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent context leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def database(tmp_path):
    db = Database(tmp_path / "test.db")
    db.connect()
    yield db
    db.close()


@pytest.fixture
def store(database):
    return SqliteTableStore(database)


@pytest.fixture
def make_session(store):
    """Async factory: insert a session with seated participants 1..participants."""

    async def _make(name: str = "Test Session", **kwargs):
        return await seed_session(store, name, **kwargs)

    return _make


@pytest.fixture
def make_duel(store):
    async def _make(session_id: str, **kwargs):
        return await seed_duel(store, session_id, **kwargs)

    return _make
