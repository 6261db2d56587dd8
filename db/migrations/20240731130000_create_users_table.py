"""
Create the `users` table with its unique email index.
"""

from db.migrator import table_exists
from utils.logger import get_logger

logger = get_logger(__name__)

USERS_SQL = """
CREATE TABLE users (
    id              SERIAL PRIMARY KEY,
    email           VARCHAR(255) NOT NULL,
    password        VARCHAR(255) NOT NULL,
    first_name      VARCHAR(100) NOT NULL CHECK (first_name <> ''),
    last_name       VARCHAR(100) NOT NULL CHECK (last_name <> ''),
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT uq_users_email UNIQUE (email)
);
"""


def up(cur) -> None:
    if table_exists(cur, "users"):
        return
    cur.execute(USERS_SQL)
    logger.info("Created users table")


def down(cur) -> None:
    cur.execute("DROP TABLE IF EXISTS users;")
