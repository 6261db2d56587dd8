"""
services/auth_service.py
------------------------
Registration and login entry points for the transport layer.
Orchestrates the UserRepository and turns its errors into result objects.
"""

from dataclasses import dataclass
from typing import Optional

from errors import DuplicateEmailError, ErrorKind, ValidationError
from models.user import PublicUser
from repositories.user_repo import UserRepository
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthResult:
    """
    Outcome of a register/login call.

    Attributes:
        success: True when the operation succeeded.
        user: Sanitized user on success.
        error: What went wrong on failure.
        message: Human-readable detail.
        token: Session token; issuance is not implemented, always None.
    """
    success: bool
    user: Optional[PublicUser] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    token: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {"success": self.success, "message": self.message}
        if self.user is not None:
            data["user"] = self.user.to_dict()
        if self.error is not None:
            data["error"] = self.error.value
        return data


class AuthService:
    """
    Handles account registration and credential checks.

    Storage errors other than a duplicate email propagate unchanged.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def register(self, email: str, password: str, first_name: str, last_name: str) -> AuthResult:
        """Create an account and return it sanitized."""
        if self.repo.find_by_email(email or "") is not None:
            return AuthResult(
                success=False,
                error=ErrorKind.DUPLICATE_EMAIL,
                message="A user with this email already exists",
            )
        try:
            user = self.repo.create(email, password, first_name, last_name)
        except ValidationError as e:
            return AuthResult(success=False, error=ErrorKind.VALIDATION_FAILURE, message=str(e))
        except DuplicateEmailError:
            # Lost a race with a concurrent registration.
            return AuthResult(
                success=False,
                error=ErrorKind.DUPLICATE_EMAIL,
                message="A user with this email already exists",
            )
        return AuthResult(
            success=True,
            user=self.repo.sanitize(user),
            message="User registered successfully",
        )

    def login(self, email: str, password: str) -> AuthResult:
        """Check credentials; the failure result never says which part was wrong."""
        if not email or not password:
            return AuthResult(
                success=False,
                error=ErrorKind.VALIDATION_FAILURE,
                message="Email and password are required",
            )
        user = self.repo.verify_credentials(email, password)
        if user is None:
            logger.warning("Failed login attempt")
            return AuthResult(
                success=False,
                error=ErrorKind.INVALID_CREDENTIALS,
                message="Incorrect email or password",
            )
        logger.info(f"User #{user.id} logged in")
        return AuthResult(success=True, user=self.repo.sanitize(user), message="Login successful")
