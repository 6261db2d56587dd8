"""
db/connection.py
----------------
Manages the PostgreSQL connection pool.

`ensure_database_exists()` creates the target database through a short-lived
maintenance connection, `connect()` builds the shared `Database` handle on top
of psycopg2's ThreadedConnectionPool, and `teardown()` releases it. The handle
is passed explicitly to every component that queries the database.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from threading import BoundedSemaphore, Lock
from typing import Iterator

import psycopg2
from psycopg2 import extras, pool, sql

from config import DatabaseSettings
from db.migrator import Migrator
from errors import DatabaseConnectionError
from utils.logger import get_logger

logger = get_logger(__name__)


class Database:
    """
    Live handle around a psycopg2 connection pool.

    Each `cursor()` block runs in its own transaction on a pooled connection:
    committed when the block exits cleanly, rolled back when it raises.
    When every connection is checked out, callers wait up to
    `settings.connect_timeout` seconds for one to come back.
    """

    def __init__(self, connection_pool, settings: DatabaseSettings):
        self._pool = connection_pool
        self.settings = settings
        self._closed = False
        self._close_lock = Lock()
        self._slots = BoundedSemaphore(settings.pool_max)

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def cursor(self) -> Iterator[extras.RealDictCursor]:
        """
        Borrow a connection and yield a dict-row cursor inside one transaction.

        Raises:
            DatabaseConnectionError: If the handle was already torn down, or no
                connection became free within the timeout.
        """
        if self._closed:
            raise DatabaseConnectionError("Database handle is closed.")
        if not self._slots.acquire(timeout=self.settings.connect_timeout):
            logger.error(f"No pooled connection free after {self.settings.connect_timeout}s.")
            raise DatabaseConnectionError("Connection pool exhausted.")
        try:
            conn = self._pool.getconn()
        except Exception:
            self._slots.release()
            raise
        try:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)
            self._slots.release()

    def ping(self) -> None:
        """Run a trivial round trip; raises whatever the driver raises."""
        with self.cursor() as cur:
            cur.execute("SELECT 1 AS ok;")
            cur.fetchone()

    def health(self) -> dict:
        """
        Report whether the database answers.

        Returns:
            Dict with 'status', 'database', 'timestamp' and 'environment'.
        """
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            self.ping()
        except (psycopg2.Error, DatabaseConnectionError) as e:
            logger.error(f"Health check failed: {e}")
            return {
                "status": "error",
                "database": "disconnected",
                "timestamp": timestamp,
                "environment": self.settings.environment,
            }
        return {
            "status": "ok",
            "database": "connected",
            "timestamp": timestamp,
            "environment": self.settings.environment,
        }

    def close(self) -> None:
        """Close all pooled connections. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._pool.closeall()
        logger.info("Database connection pool closed.")


def ensure_database_exists(settings: DatabaseSettings) -> bool:
    """
    Create the target database if the server does not have it yet.

    Uses a dedicated autocommit connection to the maintenance database that is
    always closed before returning; it never enters the pool.

    Args:
        settings: Resolved database settings.

    Returns:
        True if the database was created, False if it already existed.

    Raises:
        DatabaseConnectionError: If the server is unreachable or refuses the statement.
    """
    db_name = settings.params.database
    try:
        conn = psycopg2.connect(**settings.connect_kwargs(database=settings.maintenance_database))
    except psycopg2.OperationalError as e:
        logger.error(f"Cannot reach database server {settings.params.host}:{settings.params.port}: {e}")
        raise DatabaseConnectionError(f"Cannot reach database server: {e}") from e

    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            cur.execute("SELECT 1 FROM pg_database WHERE datname = %s;", (db_name,))
            if cur.fetchone() is not None:
                return False
            cur.execute(sql.SQL("CREATE DATABASE {};").format(sql.Identifier(db_name)))
        logger.info(f"Created database: {db_name}")
        return True
    except psycopg2.Error as e:
        logger.error(f"Error ensuring database '{db_name}' exists: {e}")
        raise DatabaseConnectionError(f"Could not ensure database '{db_name}' exists: {e}") from e
    finally:
        conn.close()


def connect(settings: DatabaseSettings) -> Database:
    """
    Open the shared pool, verify it answers, and apply pending migrations.

    Migrations are skipped when ``settings.run_migrations`` is False (test
    environment or SKIP_MIGRATIONS).

    Args:
        settings: Resolved database settings.

    Returns:
        A ready-to-query Database handle.

    Raises:
        DatabaseConnectionError: If the pool cannot be built or the liveness check fails.
            The caller must treat this as fatal.
    """
    try:
        connection_pool = pool.ThreadedConnectionPool(
            settings.pool_min, settings.pool_max, **settings.connect_kwargs()
        )
    except psycopg2.OperationalError as e:
        logger.error(f"Failed to initialize database pool for {settings.params}: {e}")
        raise DatabaseConnectionError(f"Failed to initialize database pool: {e}") from e

    db = Database(connection_pool, settings)
    try:
        db.ping()
    except psycopg2.Error as e:
        logger.error(f"Failed to connect to the database: {e}")
        db.close()
        raise DatabaseConnectionError(f"Database liveness check failed: {e}") from e
    logger.info(
        f"Database connection established ({settings.params}, "
        f"pool {settings.pool_min}..{settings.pool_max}, env={settings.environment})."
    )

    if settings.run_migrations:
        try:
            applied = Migrator(db).latest()
        except Exception:
            db.close()
            raise
        logger.info(f"Database migrations completed ({len(applied)} applied).")
    return db


def teardown(db: Database) -> None:
    """Release every pooled connection held by ``db``. Idempotent."""
    db.close()
