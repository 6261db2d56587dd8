"""
main.py
-------
Entry point for the user registry core.

Responsibilities:
    - Provision the database (create, migrate, seed) and open the shared pool.
    - Build the repository and auth service that the transport layer calls into.
    - Shut down in two phases on SIGINT/SIGTERM: stop accepting work, then close
      the pool within SHUTDOWN_TIMEOUT_SECONDS or force the process to exit.
"""

import os
import signal
import sys
import threading
from dataclasses import dataclass
from typing import Optional

from config import SHUTDOWN_TIMEOUT_SECONDS, DatabaseSettings, resolve_config
from db.connection import Database, teardown
from db.init_db import initialize
from errors import ConfigurationError, DatabaseConnectionError, MigrationError
from repositories.user_repo import UserRepository
from services.auth_service import AuthService
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Application:
    """Everything a transport layer needs, built once at startup."""
    db: Database
    users: UserRepository
    auth: AuthService


def bootstrap(settings: Optional[DatabaseSettings] = None) -> Application:
    """
    Provision storage and wire the components together.

    Raises:
        DatabaseConnectionError: If provisioning fails; the process cannot proceed.
    """
    db = initialize(settings)
    users = UserRepository(db)
    return Application(db=db, users=users, auth=AuthService(users))


def shutdown(db: Database, timeout: float = SHUTDOWN_TIMEOUT_SECONDS) -> bool:
    """
    Close the pool on a worker thread and wait at most ``timeout`` seconds.

    Returns:
        True if teardown finished in time, False if the deadline elapsed.
    """
    worker = threading.Thread(target=teardown, args=(db,), name="db-teardown", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        logger.error(f"Could not close connections within {timeout:g}s.")
        return False
    return True


def main() -> None:
    """Provision, wait for a stop signal, then shut down."""

    # ── 1. Database setup ─────────────────────────────────
    try:
        app = bootstrap(resolve_config())
    except (ConfigurationError, DatabaseConnectionError, MigrationError) as e:
        logger.error(f"Failed to start: {e}")
        sys.exit(1)

    # ── 2. Wait for a stop signal ─────────────────────────
    stop = threading.Event()

    def _request_stop(signum, _frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        stop.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    logger.info(f"🚀 User registry ready (env={app.db.settings.environment}). Press Ctrl+C to stop.")
    while not stop.wait(1.0):
        pass

    # ── 3. Cleanup on shutdown ────────────────────────────
    if not shutdown(app.db):
        logger.error("Forcing shutdown.")
        os._exit(1)
    logger.info("User registry stopped.")


if __name__ == "__main__":
    main()
