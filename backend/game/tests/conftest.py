import pytest
from starlette.testclient import TestClient

from game.server.app import create_app
from game.server.settings import GameServerSettings
from game.session.duels import DuelCoordinator
from game.session.event_log import EventLog
from game.session.lifecycle import SessionLifecycle
from game.session.turns import TurnOrderService


@pytest.fixture
def event_log(store):
    return EventLog(store)


@pytest.fixture
def duels(store, event_log):
    return DuelCoordinator(store, event_log)


@pytest.fixture
def turns(store, event_log):
    return TurnOrderService(store, event_log)


@pytest.fixture
def lifecycle(store, event_log):
    return SessionLifecycle(store, event_log)


@pytest.fixture
def server_settings(tmp_path):
    return GameServerSettings(
        database_path=str(tmp_path / "server.db"),
        refresh_throttle_seconds=0.02,
        directory_min_interval_seconds=0.05,
        directory_poll_seconds=60,
    )


@pytest.fixture
def app(server_settings, store):
    return create_app(settings=server_settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
