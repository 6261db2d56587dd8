"""
db/migrator.py
--------------
Applies versioned schema migrations and records them in a ledger table.

Migrations live in the `db.migrations` package as modules named
``<timestamp>_<description>.py`` exposing ``up(cur)`` and ``down(cur)``.
They run in ascending name order. Each migration runs in one transaction
together with its ledger row, so a failure leaves neither behind.
Run by hand with:
    python -m db.init_db latest | rollback | status
"""

import importlib
import pkgutil
import re
from dataclasses import dataclass
from types import ModuleType
from typing import Optional

from errors import MigrationError
from utils.logger import get_logger

logger = get_logger(__name__)

LEDGER_TABLE = "schema_migrations"
MIGRATIONS_PACKAGE = "db.migrations"

_NAME_PATTERN = re.compile(r"^\d{14}_\w+$")

LEDGER_SQL = f"""
CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
    id              SERIAL PRIMARY KEY,
    name            VARCHAR(255) UNIQUE NOT NULL,
    batch           INTEGER NOT NULL,
    migration_time  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


def table_exists(cur, table_name: str) -> bool:
    """Return True if ``table_name`` exists in the current schema."""
    cur.execute(
        """
        SELECT EXISTS (
            SELECT 1 FROM information_schema.tables
            WHERE table_schema = current_schema() AND table_name = %s
        ) AS exists;
        """,
        (table_name,),
    )
    return bool(cur.fetchone()["exists"])


@dataclass
class MigrationStatus:
    """One row of `Migrator.status()` output."""
    name: str
    applied: bool
    batch: Optional[int] = None

    def __str__(self) -> str:
        state = f"applied (batch {self.batch})" if self.applied else "pending"
        return f"{self.name}: {state}"


def discover_migrations(package: str = MIGRATIONS_PACKAGE) -> dict[str, ModuleType]:
    """
    Import every migration module in ``package``.

    Returns:
        Dict of migration name -> module, sorted by name.

    Raises:
        MigrationError: If a module lacks ``up`` or ``down``.
    """
    pkg = importlib.import_module(package)
    found: dict[str, ModuleType] = {}
    for info in pkgutil.iter_modules(pkg.__path__):
        if not _NAME_PATTERN.match(info.name):
            continue
        module = importlib.import_module(f"{package}.{info.name}")
        if not callable(getattr(module, "up", None)) or not callable(getattr(module, "down", None)):
            raise MigrationError(f"Migration {info.name} must define up() and down()")
        found[info.name] = module
    return dict(sorted(found.items()))


class Migrator:
    """Runs migrations against a Database handle."""

    def __init__(self, db, migrations: Optional[dict[str, ModuleType]] = None):
        self.db = db
        self.migrations = migrations if migrations is not None else discover_migrations()

    def _ensure_ledger(self) -> None:
        with self.db.cursor() as cur:
            cur.execute(LEDGER_SQL)

    def _applied(self) -> dict[str, int]:
        """Map of applied migration name -> batch, in application order."""
        with self.db.cursor() as cur:
            cur.execute(f"SELECT name, batch FROM {LEDGER_TABLE} ORDER BY id;")
            rows = cur.fetchall()
        applied = {row["name"]: row["batch"] for row in rows}
        missing = [name for name in applied if name not in self.migrations]
        if missing:
            raise MigrationError(
                f"Ledger references migrations that no longer exist: {', '.join(missing)}"
            )
        return applied

    def pending(self) -> list[str]:
        """Names of migrations not yet recorded in the ledger."""
        self._ensure_ledger()
        applied = self._applied()
        return [name for name in self.migrations if name not in applied]

    def status(self) -> list[MigrationStatus]:
        """Every known migration with its applied flag."""
        self._ensure_ledger()
        applied = self._applied()
        return [
            MigrationStatus(name=name, applied=name in applied, batch=applied.get(name))
            for name in self.migrations
        ]

    def latest(self) -> list[str]:
        """
        Apply all pending migrations as one new batch.

        Returns:
            Names of the migrations applied by this call (empty when up to date).
        """
        self._ensure_ledger()
        applied = self._applied()
        todo = [name for name in self.migrations if name not in applied]
        if not todo:
            logger.info("Schema is up to date.")
            return []

        batch = max(applied.values(), default=0) + 1
        for name in todo:
            try:
                with self.db.cursor() as cur:
                    self.migrations[name].up(cur)
                    cur.execute(
                        f"INSERT INTO {LEDGER_TABLE} (name, batch) VALUES (%s, %s);",
                        (name, batch),
                    )
            except Exception as e:
                logger.error(f"Migration {name} failed: {e}")
                raise
            logger.info(f"Applied migration {name} (batch {batch})")
        return todo

    def rollback(self) -> list[str]:
        """
        Revert the most recent batch, newest migration first.

        Returns:
            Names of the migrations reverted (empty when nothing is applied).
        """
        self._ensure_ledger()
        applied = self._applied()
        if not applied:
            logger.info("Nothing to roll back.")
            return []

        last_batch = max(applied.values())
        todo = [name for name, batch in reversed(applied.items()) if batch == last_batch]
        for name in todo:
            try:
                with self.db.cursor() as cur:
                    self.migrations[name].down(cur)
                    cur.execute(f"DELETE FROM {LEDGER_TABLE} WHERE name = %s;", (name,))
            except Exception as e:
                logger.error(f"Rollback of {name} failed: {e}")
                raise
            logger.info(f"Rolled back migration {name} (batch {last_batch})")
        return todo
