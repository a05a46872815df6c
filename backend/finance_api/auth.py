"""
Password hashing, token issue and the bearer-token dependency.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlmodel import Session

from .config import settings
from .database import get_session
from .errors import AuthenticationInvalid, AuthenticationRequired
from .models import User
from . import crud

logger = logging.getLogger(__name__)


def get_password_hash(password: str) -> str:
    """Hash a plain-text password using bcrypt."""
    # bcrypt only looks at the first 72 bytes
    pw_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8")[:72],
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def authenticate_user(session: Session, email: str, password: str) -> Optional[User]:
    """Return the user when the credentials match, otherwise None."""
    user = crud.get_user_by_email(session, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT with an expiry claim."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT. Returns the payload or None on failure."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def get_current_user(
    request: Request,
    session: Session = Depends(get_session)
) -> User:
    """
    FastAPI dependency: resolves the Bearer token in the Authorization
    header to a User.

    No token -> 401. A token that fails verification, has expired or names
    a user that no longer exists -> 403.
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationRequired()

    payload = decode_access_token(token.strip())
    if payload is None or payload.get("id") is None:
        raise AuthenticationInvalid()

    user = crud.get_user(session, payload["id"])
    if user is None:
        raise AuthenticationInvalid()
    return user
