# erapport/core/security.py - Password hashing (passlib) and bearer tokens (PyJWT)
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
import secrets

import jwt
from passlib.hash import pbkdf2_sha512

from erapport.core.config import settings


class SecurityError(Exception):
    """Raised when a token cannot be issued or verified"""
    pass


class PasswordManager:
    """PBKDF2-SHA512 hashing with a per-user salt kept next to the hash"""

    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds or settings.PASSWORD_HASH_ROUNDS

    def hash_password(self, password: str) -> Tuple[str, str]:
        """
        Hash a new password.

        Args:
            password: Plain text password

        Returns:
            (password_hash, salt_hex)
        """
        if not password:
            raise SecurityError("Password cannot be empty")
        salt = secrets.token_bytes(16)
        password_hash = pbkdf2_sha512.using(salt=salt, rounds=self.rounds).hash(password)
        return password_hash, salt.hex()

    @staticmethod
    def verify_password(plain_password: str, password_hash: str) -> bool:
        if not plain_password or not password_hash:
            return False
        try:
            return pbkdf2_sha512.verify(plain_password, password_hash)
        except ValueError:
            # Not a hash passlib recognizes
            return False


class TokenManager:
    """
    Issues signed access tokens. Each token carries the user's current
    session id as "jti"; logging in again rotates it and revokes older tokens.
    """

    def __init__(self):
        self.secret_key = settings.TOKEN_SECRET
        self.algorithm = settings.TOKEN_ALGORITHM
        self.issuer = settings.TOKEN_ISSUER
        self.expire_minutes = settings.TOKEN_EXPIRE_MINUTES

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_hex(16)

    def create_access_token(self, subject: str, session_id: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject),
            "jti": session_id,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
            "iss": self.issuer,
            "type": "access",
        }
        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SecurityError(f"Failed to create access token: {e}")

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, expiry and issuer.

        Raises:
            SecurityError: the token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["sub", "jti", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise SecurityError("Token has expired")
        except jwt.PyJWTError as e:
            raise SecurityError(f"Invalid token: {e}")

        if payload.get("type") != "access":
            raise SecurityError("Invalid token type")
        return payload


password_manager = PasswordManager()
token_manager = TokenManager()


__all__ = [
    "SecurityError",
    "PasswordManager",
    "TokenManager",
    "password_manager",
    "token_manager",
]
