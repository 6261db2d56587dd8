"""
db/init_db.py
-------------
Brings a database from "maybe absent" to "ready to query".
Run this module directly to operate the schema by hand:
    python -m db.init_db latest     # apply pending migrations (default)
    python -m db.init_db rollback   # revert the last batch
    python -m db.init_db status     # list migrations
    python -m db.init_db seed       # insert the initial users
"""

import sys
from dataclasses import replace
from typing import Optional

from config import DatabaseSettings, resolve_config
from db.connection import Database, connect, ensure_database_exists, teardown
from db.migrator import Migrator
from db.seeds import seed_initial_users
from utils.logger import get_logger

logger = get_logger(__name__)


def initialize(settings: Optional[DatabaseSettings] = None) -> Database:
    """
    Provision the database and return the shared handle.

    Steps: create the database if missing, open the pool (which applies
    migrations unless disabled), then seed when ``settings.seed_on_boot``.

    Raises:
        DatabaseConnectionError: If the server or database cannot be reached.
    """
    if settings is None:
        settings = resolve_config()
    logger.info(f"Initializing database {settings.params} (env={settings.environment})...")
    ensure_database_exists(settings)
    db = connect(settings)
    if settings.seed_on_boot and settings.run_migrations:
        try:
            seed_initial_users(db)
        except Exception:
            teardown(db)
            raise
    return db


def main(argv: list[str]) -> int:
    command = argv[0] if argv else "latest"
    if command not in ("latest", "rollback", "status", "seed"):
        print(f"Unknown command: {command}. Use latest, rollback, status or seed.")
        return 2

    settings = replace(resolve_config(), run_migrations=False, seed_on_boot=False)
    ensure_database_exists(settings)
    db = connect(settings)
    try:
        if command == "latest":
            applied = Migrator(db).latest()
            print(f"Applied {len(applied)} migration(s).")
        elif command == "rollback":
            reverted = Migrator(db).rollback()
            print(f"Rolled back {len(reverted)} migration(s).")
        elif command == "status":
            for entry in Migrator(db).status():
                print(entry)
        else:
            print(f"Seeded {seed_initial_users(db)} user(s).")
    finally:
        teardown(db)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
