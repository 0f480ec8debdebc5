"""Shared fixtures for lobby tests."""

import pytest

from lobby.directory.manager import LiveSessionDirectory
from lobby.directory.types import DirectoryConfig

MIN_INTERVAL = 0.05
THROTTLE = 0.02


@pytest.fixture
def directory_config():
    return DirectoryConfig(min_interval_seconds=MIN_INTERVAL, poll_seconds=60, throttle_seconds=THROTTLE)


@pytest.fixture
async def directory(store, directory_config):
    directory = LiveSessionDirectory(store, directory_config)
    yield directory
    await directory.close()
