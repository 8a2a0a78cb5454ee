"""
Pytest configuration and shared fixtures.

Every test gets its own database file under tmp_path and a zero retry delay.
Settings are re-read from the environment for each test.
"""

from pathlib import Path

import pytest

from msgcache import manager as manager_module
from msgcache.config import get_settings
from msgcache.manager import MessageManager
from msgcache.retry import RetryPolicy
from msgcache.storage import init_database


INIT_SQL_PATH = Path(__file__).resolve().parent.parent / "database" / "init.sql"


@pytest.fixture(autouse=True)
def test_settings(tmp_path, monkeypatch):
    """Point settings at a fresh database and reset the shared manager."""
    monkeypatch.setenv("MESSAGE_SQLITE_FILE", str(tmp_path / "db" / "messages.db"))
    monkeypatch.setenv("MESSAGE_INIT_SQL_FILE", str(INIT_SQL_PATH))
    monkeypatch.setenv("MESSAGE_RETRY_DELAY_SECONDS", "0")
    get_settings.cache_clear()

    yield get_settings()

    manager_module.reset_message_manager()
    get_settings.cache_clear()


@pytest.fixture
def engine(test_settings):
    """Engine for a freshly bootstrapped database."""
    engine = init_database()
    yield engine
    engine.dispose()


@pytest.fixture
def message_manager(engine):
    """A standalone manager, independent of the process-wide instance."""
    return MessageManager(engine, RetryPolicy(max_retries=3, delay_seconds=0))
