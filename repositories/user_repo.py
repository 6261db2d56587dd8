"""
repositories/user_repo.py
--------------------------
Data access layer for user accounts.
All SQL queries related to the `users` table live here.

Passwords are hashed before they reach any statement, and reads return the
full User (hash included) for internal callers; use `sanitize()` before
handing a user to anything outward-facing.
"""

from typing import Optional

from psycopg2 import errors as pg_errors

from errors import DuplicateEmailError, ValidationError
from models.user import PublicUser, User, UserUpdate
from security.passwords import hash_password, verify_password
from utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = "id, email, password, first_name, last_name, created_at, updated_at"


def normalize_email(email: str) -> str:
    """Lower-case and trim an email; lookups and writes both go through this."""
    return email.strip().lower()


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} must not be empty")
    return str(value).strip()


def _require_password(value: Optional[str]) -> str:
    if not value:
        raise ValidationError("password must not be empty")
    return value


class UserRepository:
    """Repository for CRUD operations on the users table."""

    def __init__(self, db):
        self.db = db

    # ── CREATE ────────────────────────────────────────────

    def create(self, email: str, password: str, first_name: str, last_name: str) -> User:
        """
        Register a new user.

        Args:
            email: Login email (normalised before storage).
            password: Plaintext password; only its hash is stored.
            first_name: Given name.
            last_name: Family name.

        Returns:
            The stored User, re-read so id and timestamps are populated.

        Raises:
            ValidationError: If any field is empty.
            DuplicateEmailError: If the email is already registered.
            CryptoError: If hashing fails.
        """
        email = normalize_email(_require_text(email, "email"))
        first_name = _require_text(first_name, "first_name")
        last_name = _require_text(last_name, "last_name")
        password_hash = hash_password(_require_password(password))

        sql = """
            INSERT INTO users (email, password, first_name, last_name)
            VALUES (%s, %s, %s, %s)
            RETURNING id;
        """
        try:
            with self.db.cursor() as cur:
                cur.execute(sql, (email, password_hash, first_name, last_name))
                user_id = cur.fetchone()["id"]
        except pg_errors.UniqueViolation as e:
            logger.warning(f"Registration rejected, email already in use: {email}")
            raise DuplicateEmailError(email) from e
        except Exception as e:
            logger.error(f"Failed to create user {email}: {e}")
            raise

        user = self.find_by_id(user_id)
        if user is None:
            raise RuntimeError(f"User #{user_id} vanished right after insert")
        logger.info(f"Created user #{user.id}")
        return user

    # ── READ ──────────────────────────────────────────────

    def find_by_email(self, email: str) -> Optional[User]:
        """Fetch a user by email, or None."""
        sql = f"SELECT {_COLUMNS} FROM users WHERE email = %s;"
        with self.db.cursor() as cur:
            cur.execute(sql, (normalize_email(email),))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def find_by_id(self, user_id: int) -> Optional[User]:
        """Fetch a user by primary key, or None."""
        sql = f"SELECT {_COLUMNS} FROM users WHERE id = %s;"
        with self.db.cursor() as cur:
            cur.execute(sql, (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    # ── UPDATE ────────────────────────────────────────────

    def update(self, user_id: int, changes: UserUpdate) -> Optional[User]:
        """
        Apply the provided fields and stamp `updated_at`.

        A new password is hashed before it is written. `updated_at` is refreshed
        even when `changes` carries no fields.

        Returns:
            The updated User, or None if no user has that id.

        Raises:
            ValidationError: If a provided name or password is empty.
            CryptoError: If hashing fails.
        """
        changed: list[str] = []
        params: list = []
        if changes.first_name is not None:
            changed.append("first_name")
            params.append(_require_text(changes.first_name, "first_name"))
        if changes.last_name is not None:
            changed.append("last_name")
            params.append(_require_text(changes.last_name, "last_name"))
        if changes.password is not None:
            changed.append("password")
            params.append(hash_password(_require_password(changes.password)))
        params.append(user_id)

        assignments = [f"{column} = %s" for column in changed] + ["updated_at = NOW()"]
        sql = f"UPDATE users SET {', '.join(assignments)} WHERE id = %s RETURNING {_COLUMNS};"
        try:
            with self.db.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
        except Exception as e:
            logger.error(f"Failed to update user #{user_id}: {e}")
            raise

        if row is None:
            return None
        label = "touch" if changes.is_empty() else ", ".join(changed)
        logger.info(f"Updated user #{user_id} ({label})")
        return self._row_to_user(row)

    def update_profile(
        self, user_id: int, first_name: Optional[str] = None, last_name: Optional[str] = None
    ) -> Optional[User]:
        """Change name fields only."""
        return self.update(user_id, UserUpdate(first_name=first_name, last_name=last_name))

    def change_password(self, user_id: int, new_password: str) -> Optional[User]:
        """Replace the stored password hash."""
        return self.update(user_id, UserUpdate(password=_require_password(new_password)))

    # ── DELETE ────────────────────────────────────────────

    def delete(self, user_id: int) -> int:
        """
        Hard-delete a user.

        Returns:
            Number of rows removed (0 or 1).
        """
        sql = "DELETE FROM users WHERE id = %s;"
        try:
            with self.db.cursor() as cur:
                cur.execute(sql, (user_id,))
                count = cur.rowcount
        except Exception as e:
            logger.error(f"Failed to delete user #{user_id}: {e}")
            raise
        if count:
            logger.info(f"Deleted user #{user_id}")
        return count

    # ── CREDENTIALS ───────────────────────────────────────

    def verify_credentials(self, email: str, password: str) -> Optional[User]:
        """
        Return the user when ``password`` matches, otherwise None.

        An unknown email and a wrong password produce the same result.
        """
        user = self.find_by_email(email)
        if user is None:
            return None
        return user if verify_password(password, user.password) else None

    @staticmethod
    def sanitize(user: User) -> PublicUser:
        """Drop the password hash."""
        return PublicUser(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _row_to_user(row: dict) -> User:
        """Convert a dict row into a User object."""
        return User(
            id=row["id"],
            email=row["email"],
            password=row["password"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
