"""
Authentication helpers.

Bearer tokens are JWTs signed with the configured secret. In demo mode the
demo tokens `demo-token-<uid>`, `demo-<uid>` and `demo` are accepted as well,
so the API can be driven without issuing real credentials.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import db_manager
from .exceptions import AccountSuspendedError, AuthenticationError, PermissionDeniedError
from ..config.settings import settings
from ..models.user import User, UserRole

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo-user"
_DEMO_PREFIXES = ("demo-token-", "demo-")

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Salted bcrypt hash of the password"""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class SecurityManager:
    """Issues and resolves bearer tokens"""

    def create_access_token(self, uid: str) -> str:
        if settings.is_demo:
            return f"demo-token-{uid}"
        if not settings.jwt_secret_key:
            raise AuthenticationError("Token signing is not configured")
        now = datetime.now(timezone.utc)
        payload = {
            "sub": uid,
            "iat": now,
            "exp": now + timedelta(hours=settings.jwt_expire_hours),
        }
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        if not settings.jwt_secret_key:
            raise AuthenticationError("Invalid token")
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")

    @staticmethod
    def parse_demo_token(token: str) -> Optional[str]:
        if token == "demo":
            return DEMO_USER_ID
        for prefix in _DEMO_PREFIXES:
            if token.startswith(prefix) and len(token) > len(prefix):
                return token[len(prefix):]
        return None

    def uid_from_token(self, token: str) -> str:
        if settings.is_demo:
            uid = self.parse_demo_token(token)
            if uid:
                return uid
        payload = self.decode_jwt_token(token)
        uid = payload.get("sub")
        if not uid:
            raise AuthenticationError("Token missing subject")
        return uid


# Global security manager
security_manager = SecurityManager()


def load_user(uid: str) -> Optional[User]:
    return User.from_row(db_manager.execute_one("SELECT * FROM users WHERE uid = ?", [uid]))


async def get_current_uid(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Resolve the caller's uid from the Authorization header"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token provided")
    return security_manager.uid_from_token(credentials.credentials)


async def get_current_user(uid: str = Depends(get_current_uid)) -> User:
    """Resolve the caller's account; suspended accounts are refused"""
    user = load_user(uid)
    if user is None:
        raise AuthenticationError("User not found")
    if user.is_suspended:
        raise AccountSuspendedError("Account suspended")
    return user


def require_onboarded(user: User, role: UserRole) -> User:
    """Check the caller acts with the given role and has completed onboarding"""
    if user.role != role.value:
        raise PermissionDeniedError(f"Only {role.value.replace('_', ' ')}s can perform this action")
    if not user.profile_id:
        raise PermissionDeniedError("Complete onboarding before performing this action")
    return user
