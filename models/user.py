"""
models/user.py
--------------
Domain models for user accounts.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class User:
    """
    Represents one account as stored.

    Attributes:
        id: Database primary key.
        email: Normalised (lower-case) login email, unique.
        password: bcrypt hash of the password; never the plaintext.
        first_name: Given name.
        last_name: Family name.
        created_at: Set once at insert.
        updated_at: Refreshed on every mutation.
    """
    id: int
    email: str
    password: str = field(repr=False)
    first_name: str
    last_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class PublicUser:
    """A User without its password hash; the only shape that leaves the core."""
    id: int
    email: str
    first_name: str
    last_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """JSON-friendly dict (timestamps as ISO strings)."""
        data = asdict(self)
        for key in ("created_at", "updated_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


@dataclass
class UserUpdate:
    """
    Partial update for a user. A field left as None is not touched.

    `password` is plaintext here; the repository hashes it before storage.
    Email is not updatable.
    """
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    def is_empty(self) -> bool:
        return self.first_name is None and self.last_name is None and self.password is None
