"""
db/seeds.py
-----------
Initial data for development databases.
Seeding only runs against an existing, empty `users` table.
"""

from db.migrator import table_exists
from security.passwords import hash_password
from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SEED_PASSWORD = "password123"

INITIAL_USERS = [
    {"email": "admin@example.com", "first_name": "Admin", "last_name": "User"},
    {"email": "user@example.com", "first_name": "Regular", "last_name": "User"},
]


def seed_initial_users(db, password: str = DEFAULT_SEED_PASSWORD) -> int:
    """
    Insert the default accounts if no user exists yet.

    Args:
        db: Database handle.
        password: Plaintext password given to every seeded account.

    Returns:
        Number of users inserted (0 when skipped).
    """
    with db.cursor() as cur:
        if not table_exists(cur, "users"):
            logger.info("Users table does not exist, skipping seed.")
            return 0

        cur.execute("SELECT id FROM users LIMIT 1;")
        if cur.fetchone() is not None:
            logger.info("Users already exist, skipping seed.")
            return 0

        password_hash = hash_password(password)
        for user in INITIAL_USERS:
            cur.execute(
                "INSERT INTO users (email, password, first_name, last_name) VALUES (%s, %s, %s, %s);",
                (user["email"], password_hash, user["first_name"], user["last_name"]),
            )

    logger.info(f"Seeded {len(INITIAL_USERS)} initial users.")
    return len(INITIAL_USERS)
