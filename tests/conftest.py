import logging

import pytest

from nia.core.db import Store


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "nia.db"


@pytest.fixture
async def store(db_path):
    store = Store(db_path)
    await store.open()
    return store


@pytest.fixture
def restore_logging():
    """Put back the root handlers that the CLI replaces"""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
