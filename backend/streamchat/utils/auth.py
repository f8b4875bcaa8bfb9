"""
Authentication utilities - JWT token handling and password hashing.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..config import settings
from ..models import TokenData
from ..storage import UserRecord, UserStorage, get_db

# Bearer token security
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data to encode in the token
        expires_delta: Optional expiration time delta

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Decode and verify a JWT access token.

    Returns:
        Optional[TokenData]: Token data if valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    user_id: Optional[str] = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(user_id=user_id, username=payload.get("username"))


def resolve_user_id(token: str, db: Session) -> str:
    """
    Map a bearer token onto an existing, active user.

    Raises:
        HTTPException: 401 if the token is invalid or its user is gone or inactive
    """
    token_data = decode_access_token(token)
    user = None
    if token_data is not None and token_data.user_id is not None:
        user = UserStorage(db).get_user(token_data.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user.id


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> str:
    """Dependency to get the current user ID from a JWT token."""
    return resolve_user_id(credentials.credentials, db)


def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db),
) -> Optional[str]:
    """
    Dependency for routes that also serve anonymous callers.

    A missing header means anonymous; a present but invalid token is still
    rejected rather than silently downgraded.
    """
    if credentials is None:
        return None
    return resolve_user_id(credentials.credentials, db)


def authenticate_user(db: Session, username: str, password: str) -> Optional[UserRecord]:
    """
    Authenticate a user by username and password.

    Returns:
        Optional[UserRecord]: The user if the credentials match, None otherwise
    """
    user = UserStorage(db).get_user_by_username(username)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
