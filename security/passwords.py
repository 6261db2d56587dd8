"""
security/passwords.py
---------------------
Password hashing and verification.

Uses bcrypt: every hash carries its own random salt and cost factor,
and verification re-derives the digest with the embedded salt before a
constant-time comparison. bcrypt only reads the first 72 bytes of a
password, so both paths truncate the UTF-8 encoding to that length.
"""

import bcrypt

from errors import CryptoError
from utils.logger import get_logger

logger = get_logger(__name__)

SALT_ROUNDS = 10
MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def hash_password(password: str) -> str:
    """
    Hash a plaintext password (salted, cost factor SALT_ROUNDS).

    Two calls with the same input return different hashes. Input longer than
    MAX_PASSWORD_BYTES is accepted; only its first 72 bytes are significant.

    Raises:
        CryptoError: If bcrypt rejects the input or fails internally.
    """
    try:
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=SALT_ROUNDS)).decode("ascii")
    except (ValueError, TypeError, AttributeError) as e:
        logger.error(f"Password hashing failed: {type(e).__name__}")
        raise CryptoError("Password hashing failed") from e


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a plaintext password against a stored bcrypt hash.

    Returns False for a mismatch and for malformed hashes; never raises.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False
