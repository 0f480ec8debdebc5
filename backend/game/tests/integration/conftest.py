import functools

import pytest


@pytest.fixture
def seed(client, store):
    """Run an async store helper on the test client's event loop."""

    def _seed(func, *args, **kwargs):
        return client.portal.call(functools.partial(func, store, *args, **kwargs))

    return _seed
