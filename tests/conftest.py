"""
Shared fixtures.

`FakePool` stands in for psycopg2's ThreadedConnectionPool. Its cursors
understand exactly the statements this package issues, keep state in a
`FakeStore`, and undo a transaction's writes on rollback.
"""

import copy
import re
from datetime import datetime, timedelta, timezone

import psycopg2
import pytest
from psycopg2 import errors as pg_errors

from config import ConnectionParams, DatabaseSettings
from db.connection import Database
from db.migrator import Migrator


def _normalize(query) -> str:
    return " ".join(str(query).split())


class FakeStore:
    """In-memory tables: `users` rows, the migration ledger, and which tables exist."""

    def __init__(self):
        self.tables: set[str] = set()
        self.users: dict[int, dict] = {}
        self.ledger: list[dict] = []
        self.next_user_id = 1
        self.next_ledger_id = 1
        self._clock = datetime(2024, 7, 31, 13, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def snapshot(self) -> dict:
        return copy.deepcopy(self.__dict__)

    def restore(self, state: dict) -> None:
        self.__dict__.update(copy.deepcopy(state))


class FakeCursor:
    def __init__(self, store: FakeStore, fail_on: str | None = None):
        self.store = store
        self.fail_on = fail_on
        self._results: list[dict] = []
        self.rowcount = -1

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def fetchone(self):
        return self._results.pop(0) if self._results else None

    def fetchall(self):
        rows, self._results = self._results, []
        return rows

    def _require_users(self) -> None:
        if "users" not in self.store.tables:
            raise pg_errors.UndefinedTable('relation "users" does not exist')

    def execute(self, query, params=None):
        q = _normalize(query)
        params = list(params or [])
        self._results = []
        self.rowcount = -1
        store = self.store

        if self.fail_on and self.fail_on in q:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")

        if q.startswith("SELECT 1 AS ok"):
            self._results = [{"ok": 1}]
        elif "information_schema.tables" in q:
            self._results = [{"exists": params[0] in store.tables}]
        elif m := re.match(r"CREATE TABLE (IF NOT EXISTS )?(\w+)", q):
            name = m.group(2)
            if name in store.tables and not m.group(1):
                raise pg_errors.DuplicateTable(f'relation "{name}" already exists')
            store.tables.add(name)
        elif m := re.match(r"DROP TABLE IF EXISTS (\w+)", q):
            store.tables.discard(m.group(1))
            if m.group(1) == "users":
                store.users.clear()
        elif q.startswith("SELECT name, batch FROM schema_migrations"):
            self._results = [{"name": r["name"], "batch": r["batch"]} for r in store.ledger]
        elif q.startswith("INSERT INTO schema_migrations"):
            store.ledger.append({"id": store.next_ledger_id, "name": params[0], "batch": params[1]})
            store.next_ledger_id += 1
            self.rowcount = 1
        elif q.startswith("DELETE FROM schema_migrations WHERE name"):
            before = len(store.ledger)
            store.ledger = [r for r in store.ledger if r["name"] != params[0]]
            self.rowcount = before - len(store.ledger)
        elif m := re.match(r"INSERT INTO users \(([^)]*)\) VALUES", q):
            self._require_users()
            columns = [c.strip() for c in m.group(1).split(",")]
            row = dict(zip(columns, params))
            if any(u["email"] == row["email"] for u in store.users.values()):
                raise pg_errors.UniqueViolation(
                    'duplicate key value violates unique constraint "uq_users_email"'
                )
            now = store.now()
            row.update(id=store.next_user_id, created_at=now, updated_at=now)
            store.users[row["id"]] = row
            store.next_user_id += 1
            self.rowcount = 1
            if "RETURNING id" in q:
                self._results = [{"id": row["id"]}]
        elif q.startswith("SELECT id FROM users LIMIT 1"):
            self._require_users()
            self._results = [{"id": uid} for uid in sorted(store.users)][:1]
        elif m := re.match(r"SELECT .* FROM users WHERE (email|id) = %s", q):
            self._require_users()
            key = m.group(1)
            self._results = [dict(u) for u in store.users.values() if u[key] == params[0]]
        elif m := re.match(r"UPDATE users SET (.*) WHERE id = %s", q):
            self._require_users()
            row = store.users.get(params[-1])
            values = iter(params[:-1])
            if row is not None:
                for column, value in re.findall(r"(\w+) = (%s|NOW\(\))", m.group(1)):
                    row[column] = store.now() if value == "NOW()" else next(values)
                self._results = [dict(row)]
            self.rowcount = 0 if row is None else 1
        elif q.startswith("DELETE FROM users WHERE id"):
            self._require_users()
            self.rowcount = 1 if store.users.pop(params[0], None) is not None else 0
        else:
            raise NotImplementedError(f"FakeCursor does not understand: {q}")


class FakeConnection:
    def __init__(self, store: FakeStore, fail_on: str | None = None):
        self.store = store
        self.fail_on = fail_on
        self.commits = 0
        self.rollbacks = 0
        self._snapshot = None

    def cursor(self, **_kwargs):
        self._snapshot = self.store.snapshot()
        return FakeCursor(self.store, self.fail_on)

    def commit(self):
        self.commits += 1
        self._snapshot = None

    def rollback(self):
        self.rollbacks += 1
        if self._snapshot is not None:
            self.store.restore(self._snapshot)
            self._snapshot = None


class FakePool:
    """Mimics the getconn/putconn/closeall surface of a psycopg2 pool."""

    def __init__(self, store: FakeStore | None = None, fail_on: str | None = None):
        self.store = store or FakeStore()
        self.connection = FakeConnection(self.store, fail_on)
        self.checked_out = 0
        self.closeall_calls = 0

    def getconn(self):
        self.checked_out += 1
        return self.connection

    def putconn(self, conn, close=False):
        self.checked_out -= 1

    def closeall(self):
        self.closeall_calls += 1


@pytest.fixture()
def settings() -> DatabaseSettings:
    return DatabaseSettings(
        params=ConnectionParams(database="user_registry_test"),
        environment="test",
        pool_min=1,
        pool_max=5,
        run_migrations=False,
    )


@pytest.fixture()
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture()
def db(fake_pool: FakePool, settings: DatabaseSettings) -> Database:
    return Database(fake_pool, settings)


@pytest.fixture()
def migrated_db(db: Database) -> Database:
    Migrator(db).latest()
    return db
