"""
Tests for database_session_manager.py - Pooled transactional sessions.

The psycopg2 pool and connections are mocked; these tests cover transaction
handling and connection return, not SQL.
"""
from unittest.mock import MagicMock, Mock, patch

import psycopg2.pool
import pytest

from utils.database_session_manager import DatabaseSession, DatabaseSessionManager


@pytest.fixture
def connection():
    conn = MagicMock()
    conn.closed = 0
    return conn


@pytest.fixture
def pool(connection):
    pool = Mock()
    pool.getconn.return_value = connection
    return pool


@pytest.fixture(autouse=True)
def no_uuid_registration():
    with patch("utils.database_session_manager.psycopg2.extras.register_uuid"):
        yield


class TestSessionTransactions:
    """Tests enforce commit/rollback and connection return."""

    def test_commits_on_clean_exit(self, pool, connection):
        """CONTRACT: A block that completes commits and returns the connection."""
        with DatabaseSession(pool):
            pass

        connection.commit.assert_called_once()
        connection.rollback.assert_not_called()
        pool.putconn.assert_called_once_with(connection)

    def test_rolls_back_on_error(self, pool, connection):
        """CONTRACT: A block that raises rolls back and still returns the connection."""
        with pytest.raises(RuntimeError):
            with DatabaseSession(pool):
                raise RuntimeError("boom")

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()
        pool.putconn.assert_called_once_with(connection)

    def test_execute_single_returns_first_row(self, pool, connection):
        """CONTRACT: execute_single returns the first row as a dict, or None."""
        cursor = connection.cursor.return_value.__enter__.return_value
        cursor.description = [("content",)]
        cursor.fetchall.return_value = [{"content": "a"}, {"content": "b"}]

        with DatabaseSession(pool) as session:
            row = session.execute_single("SELECT content FROM t")

        assert row == {"content": "a"}

    def test_acquire_times_out_when_pool_exhausted(self, pool):
        """CONTRACT: An exhausted pool fails with ValueError after the timeout."""
        pool.getconn.side_effect = psycopg2.pool.PoolError("exhausted")

        with pytest.raises(ValueError, match="timeout"):
            with DatabaseSession(pool, acquire_timeout=0.2):
                pass


class TestSessionManager:
    """Tests enforce lazy pool creation and cleanup."""

    def test_requires_database_url(self):
        with pytest.raises(ValueError):
            DatabaseSessionManager("")

    def test_pool_created_once_and_closed_on_cleanup(self):
        """CONTRACT: The pool is created lazily once and closed by cleanup()."""
        with patch("utils.database_session_manager.psycopg2.pool.ThreadedConnectionPool") as pool_cls:
            manager = DatabaseSessionManager("postgresql://localhost/test", max_connections=3)
            manager.get_session()
            manager.get_session()
            manager.cleanup()

        pool_cls.assert_called_once()
        assert pool_cls.call_args[1]["maxconn"] == 3
        pool_cls.return_value.closeall.assert_called_once()

    def test_pool_failure_becomes_value_error(self):
        """CONTRACT: Connection failures surface as ValueError with the cause chained."""
        with patch(
            "utils.database_session_manager.psycopg2.pool.ThreadedConnectionPool",
            side_effect=psycopg2.OperationalError("refused"),
        ):
            manager = DatabaseSessionManager("postgresql://localhost/test")
            with pytest.raises(ValueError) as exc_info:
                manager.get_session()

        assert isinstance(exc_info.value.__cause__, psycopg2.OperationalError)
