# erapport/services/auth_service.py - Instructor registration, login and token resolution
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erapport.core.errors import ConflictError, ValidationFailure
from erapport.core.security import PasswordManager, SecurityError, TokenManager, password_manager, token_manager
from erapport.models.user import User
from erapport.schemas.report import UserRecord
from erapport.services.reconciliation import new_id

logger = logging.getLogger(__name__)


class InvalidCredentials(Exception):
    """Unknown email or wrong password"""


def to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        name=user.name,
        email=user.email,
        password_hash=user.password_hash,
        salt=user.salt,
        token=user.token,
    )


class AuthService:
    """Accounts live in the users table; sessions are the token column"""

    def __init__(
        self,
        db: Session,
        passwords: Optional[PasswordManager] = None,
        tokens: Optional[TokenManager] = None,
    ):
        self.db = db
        self.passwords = passwords or password_manager
        self.tokens = tokens or token_manager

    def _find_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def register(self, name: str, email: str, password: str) -> tuple[User, str]:
        """
        Create an account and open its first session.

        Returns:
            (user, access token)

        Raises:
            ConflictError: the email is already registered
        """
        email = email.strip().lower()
        if not name.strip() or not email or not password:
            raise ValidationFailure("Name, email and password are required")
        if self._find_by_email(email) is not None:
            raise ConflictError("An account already exists for this email")

        password_hash, salt = self.passwords.hash_password(password)
        user = User(
            id=new_id(),
            name=name.strip(),
            email=email,
            password_hash=password_hash,
            salt=salt,
            token=self.tokens.new_session_id(),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("An account already exists for this email") from e

        logger.info(f"New user registered: {user.email}")
        return user, self.tokens.create_access_token(user.id, user.token)

    def login(self, email: str, password: str) -> tuple[User, str]:
        """
        Check credentials and rotate the session id, which revokes older tokens.

        Raises:
            InvalidCredentials: unknown email or wrong password
        """
        user = self._find_by_email((email or "").strip().lower())
        if user is None or not self.passwords.verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {email}")
            raise InvalidCredentials("Invalid credentials")

        user.token = self.tokens.new_session_id()
        self.db.commit()
        logger.info(f"User logged in: {user.email}")
        return user, self.tokens.create_access_token(user.id, user.token)

    def user_for_token(self, token: str) -> Optional[User]:
        """The account a bearer token belongs to, None when invalid, expired or rotated out"""
        try:
            claims = self.tokens.decode_token(token)
        except SecurityError as e:
            logger.debug(f"Rejected token: {e}")
            return None

        user = self.db.get(User, claims["sub"])
        if user is None or not user.token or user.token != claims["jti"]:
            return None
        return user


__all__ = [
    "InvalidCredentials",
    "to_record",
    "AuthService",
]
