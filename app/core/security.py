"""Security utilities for JWT and password hashing."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import Unauthenticated, Unauthorized
from app.db.sessions import get_db
from app.models.user import User, ROLE_ADMIN


logger = logging.getLogger(__name__)

# Password hashing context. hex_md5 is what existing accounts were hashed
# with; bcrypt stays registered so PASSWORD_HASH_SCHEME can move to it.
pwd_context = CryptContext(
    schemes=["hex_md5", "bcrypt"],
    default=settings.PASSWORD_HASH_SCHEME,
)

# JWT bearer token scheme; missing headers are reported as Unauthenticated
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, built only from a verified bearer token."""

    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password."""
    try:
        if pwd_context.identify(hashed_password) == "bcrypt":
            plain_password = _truncate_for_bcrypt(plain_password)
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # unknown hash format in the database
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    if settings.PASSWORD_HASH_SCHEME == "bcrypt":
        password = _truncate_for_bcrypt(password)
    return pwd_context.hash(password)


def _truncate_for_bcrypt(password: str) -> str:
    """Truncate password to bcrypt's 72-byte limit.

    Truncation happens on the UTF-8 bytes and decodes with 'ignore' so a
    multi-byte character is never split.
    """
    if not isinstance(password, str):
        return password
    b = password.encode("utf-8")[:72]
    return b.decode("utf-8", "ignore")


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token carrying the user's id, email and role."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(user.id),
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except JWTError:
        raise Unauthenticated("Invalid token")


def identity_from_token(token: str) -> Identity:
    """Turn a bearer token into an :class:`Identity`."""
    payload = decode_token(token)

    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None:
        raise Unauthenticated("Invalid authentication credentials")

    try:
        return Identity(id=int(user_id), email=payload.get("email") or "", role=role)
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid authentication credentials")


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """
    Dependency that validates the bearer token.

    Usage:
        @router.get("/protected")
        def protected_route(identity: Identity = Depends(get_current_identity)):
            return {"user_id": identity.id}
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Authorization header with Bearer token required")
    return identity_from_token(credentials.credentials)


async def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    """Dependency that also loads the account behind the token."""
    user = db.get(User, identity.id)
    if user is None:
        raise Unauthenticated("User not found")
    return user


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Dependency that only lets administrators through."""
    if not identity.is_admin:
        logger.warning("Admin-only access denied for user %s", identity.id)
        raise Unauthorized("Access denied. Requires admin role")
    return identity
