"""Pytest fixtures for docmap tests."""

import pytest

from docmap import Settings, connect
from docmap.store import SqliteStore

from records import Account, Message, User


@pytest.fixture
def settings(tmp_path):
    """Settings pinned to a temporary SQLite file.

    config_path points at a file that does not exist so a user config in
    ~/.config/docmap cannot leak into the tests.
    """
    return Settings(
        backend="sqlite",
        database_path=tmp_path / "docmap.db",
        config_path=tmp_path / "config.toml",
        locale="en-US",
        log_level="debug",
    )


@pytest.fixture
def connection(settings):
    """Open connection with the shared record types registered."""
    with connect(settings) as connection:
        connection.register(User, "users")
        connection.register(Message, "messages")
        connection.register(Account, "accounts")
        yield connection


@pytest.fixture
def users(connection):
    return connection.model("User")


@pytest.fixture
def messages(connection):
    return connection.model("Message")


@pytest.fixture
def store(tmp_path):
    """Opened SQLite store without any registered types."""
    store = SqliteStore(tmp_path / "store.db")
    store.open()
    yield store
    store.close()
