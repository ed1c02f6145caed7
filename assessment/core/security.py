"""
Security utilities for authentication and authorization
Tokens are issued by the identity service; this module only decodes them
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from assessment.core.config import settings
from assessment.core.exceptions import AuthenticationException, AuthorizationException

STUDENT = "student"
TEACHER = "teacher"
ADMIN = "admin"
ROLES = (STUDENT, TEACHER, ADMIN)

# HTTP Bearer scheme
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller"""

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


def create_access_token(
    user_id: int, role: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create JWT access token

    Args:
        user_id: Subject of the token
        role: One of student, teacher, admin
        expires_delta: Token expiration time

    Returns:
        Encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Principal:
    """Decode a bearer token into a Principal"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationException("Could not validate credentials")

    subject = payload.get("sub")
    role = payload.get("role")
    if subject is None or role not in ROLES:
        raise AuthenticationException("Invalid token payload")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise AuthenticationException("Invalid token subject")
    return Principal(user_id=user_id, role=role)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """Dependency resolving the caller from the Authorization header"""
    if credentials is None:
        raise AuthenticationException("Not authenticated")
    return decode_access_token(credentials.credentials)


def require_roles(*roles: str):
    """Dependency factory restricting an endpoint to the given roles"""

    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise AuthorizationException(
                f"Role '{principal.role}' is not allowed to perform this action"
            )
        return principal

    return checker
