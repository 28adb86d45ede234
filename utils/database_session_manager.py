"""
Database session management for the Postgres memory store.

Provides session-based database access with connection pooling, automatic
cleanup, and commit/rollback handling on session exit.
"""

import time
import logging
import threading
import atexit
from typing import Dict, List, Any, Optional, Union, Tuple

import psycopg2
import psycopg2.pool
import psycopg2.extras

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """
    Session manager for memory store database operations.

    Owns a single lazily created connection pool and hands out
    transactional sessions that borrow connections from it.
    """

    def __init__(
        self,
        database_url: str,
        max_connections: int = 5,
        acquire_timeout: float = 30.0
    ):
        """
        Initialize session manager with cleanup registration.

        Args:
            database_url: Postgres DSN
            max_connections: Upper bound on pooled connections
            acquire_timeout: Seconds to wait for a free connection

        Raises:
            ValueError: If database_url is empty
        """
        if not database_url:
            raise ValueError("database_url is required for database operations")

        self.database_url = database_url
        self.max_connections = max_connections
        self.acquire_timeout = acquire_timeout
        self._pool: Optional[psycopg2.pool.AbstractConnectionPool] = None
        self._lock = threading.RLock()
        # Register cleanup to prevent connection leaks
        atexit.register(self.cleanup)

    def get_session(self) -> 'DatabaseSession':
        """
        Get a database session.

        Returns:
            DatabaseSession to be used as a context manager
        """
        return DatabaseSession(self._get_or_create_pool(), self.acquire_timeout)

    def _get_or_create_pool(self) -> psycopg2.pool.AbstractConnectionPool:
        """
        Get existing pool or create a new one.

        Returns:
            Connection pool

        Raises:
            ValueError: If the pool cannot be created
        """
        with self._lock:
            if self._pool is None:
                try:
                    self._pool = psycopg2.pool.ThreadedConnectionPool(
                        minconn=1,
                        maxconn=self.max_connections,
                        dsn=self.database_url,
                        connect_timeout=30,
                        options='-c statement_timeout=60000'
                    )
                except Exception as e:
                    logger.error(f"Failed to create connection pool: {e}")
                    raise ValueError(f"Database pool creation failed: {str(e)}") from e

            return self._pool

    def cleanup(self):
        """Close the connection pool if one was created."""
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.closeall()
                except Exception as e:
                    logger.error(f"Error closing connection pool: {e}")
                self._pool = None


class DatabaseSession:
    """
    Database session with transaction support.

    Commits on clean exit, rolls back when the block raises, and always
    returns the connection to the pool.
    """

    def __init__(self, pool: psycopg2.pool.AbstractConnectionPool, acquire_timeout: float = 30.0):
        self.pool = pool
        self.acquire_timeout = acquire_timeout
        self._conn = None
        self._closed = False

    def __enter__(self):
        """Enter session context - acquire and setup connection."""
        self._conn = self._acquire_connection_with_timeout()
        psycopg2.extras.register_uuid(conn_or_curs=self._conn)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit session context - handle transactions and return connection."""
        if self._closed:
            return

        try:
            if exc_type:
                self._conn.rollback()
            else:
                self._conn.commit()
        except Exception as e:
            logger.error(f"Error during session cleanup: {e}")
        finally:
            if self._conn:
                self.pool.putconn(self._conn)
                self._conn = None
            self._closed = True

    def execute_query(self, query: str, params: Optional[Union[Dict, Tuple]] = None) -> List[Dict[str, Any]]:
        """
        Execute query and return results as list of dictionaries.

        Args:
            query: SQL query string
            params: Optional parameters (dict for named, tuple for positional)

        Returns:
            List of row dictionaries
        """
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, params)

            if cur.description:
                return [dict(row) for row in cur.fetchall()]
            else:
                return []

    def execute_single(self, query: str, params: Optional[Union[Dict, Tuple]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single result or None."""
        results = self.execute_query(query, params)
        return results[0] if results else None

    def execute_update(self, query: str, params: Optional[Union[Dict, Tuple]] = None) -> int:
        """Execute a statement and return number of rows affected."""
        with self._conn.cursor() as cur:
            cur.execute(query, params)
            return cur.rowcount

    def _acquire_connection_with_timeout(self):
        """
        Acquire connection from pool with timeout and retry logic.

        Returns:
            Database connection

        Raises:
            ValueError: If connection cannot be acquired within timeout
        """
        start_time = time.time()
        retry_interval = 0.1

        while time.time() - start_time < self.acquire_timeout:
            try:
                conn = self.pool.getconn()
                if conn and not conn.closed:
                    return conn
                elif conn and conn.closed:
                    # Return bad connection and try again
                    self.pool.putconn(conn, close=True)
            except psycopg2.pool.PoolError:
                # Pool exhausted, wait and retry
                pass

            time.sleep(retry_interval)

        logger.error(f"Database connection timeout after {self.acquire_timeout}s - pool may be exhausted")
        raise ValueError(f"Database connection timeout after {self.acquire_timeout}s - pool may be exhausted")
