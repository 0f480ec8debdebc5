import pytest

from game.tests.helpers.stores import FlakyStore


@pytest.fixture
def flaky_store(database):
    return FlakyStore(database)
