"""
errors.py
---------
Exception hierarchy shared by every layer.
Callers outside the core map these onto transport-level responses.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Outward-facing error names used in service results."""
    VALIDATION_FAILURE = "validation_failure"
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"


class UserRegistryError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(UserRegistryError):
    """Raised when environment settings cannot be resolved."""


class ValidationError(UserRegistryError):
    """Raised when input violates a field invariant (e.g. empty name)."""


class DuplicateEmailError(UserRegistryError):
    """Raised when an insert collides with an already-registered email."""

    def __init__(self, email: str):
        super().__init__(f"A user with email '{email}' already exists")
        self.email = email


class CryptoError(UserRegistryError):
    """Raised when the password hashing primitive itself fails."""


class DatabaseConnectionError(UserRegistryError):
    """Raised when provisioning or the startup liveness check fails."""


class MigrationError(UserRegistryError):
    """Raised when the migration ledger and the migration files disagree."""
