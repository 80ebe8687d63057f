import hashlib
import logging
import re
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt
from jose import jwt, ExpiredSignatureError, JWTError

from ayahfind.core.config import (
    SECRET_KEY,
    ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_DAYS,
    BCRYPT_ROUNDS,
)
from ayahfind.core.errors import AuthenticationError, ValidationError

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72
TOKEN_LENGTH = 32
MIN_PASSWORD_LENGTH = 8
PASSWORD_TOO_LONG = f"Password must be at most {BCRYPT_MAX_BYTES} bytes"

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def utcnow() -> datetime:
    """Naive UTC now, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _password_bytes(password: str) -> bytes:
    return (password or "").encode("utf-8")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt with a fixed cost factor.

    Args:
        password: Plain text password

    Returns:
        bcrypt hash string

    Raises:
        ValidationError: Password longer than bcrypt's 72-byte input
    """
    password_bytes = _password_bytes(password)
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        raise ValidationError(PASSWORD_TOO_LONG, errors=[PASSWORD_TOO_LONG])
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against its hash.

    Returns False for malformed hashes and for passwords no stored hash can match.
    """
    password_bytes = _password_bytes(password)
    if not hashed or len(password_bytes) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(password_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification failed: {e}")
        return False


def generate_token() -> str:
    """Generate an opaque URL-safe token for email verification and password reset."""
    return secrets.token_urlsafe(TOKEN_LENGTH)[:TOKEN_LENGTH]


def hash_token(token: str) -> str:
    """Digest stored in place of one-time and refresh tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass
class PasswordStrength:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def validate_password_strength(password: str) -> PasswordStrength:
    """
    Validate password strength.

    Requirements:
    - At least 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one number
    - At most 72 bytes in UTF-8

    Every violated rule is reported, not just the first.
    """
    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if len(_password_bytes(password)) > BCRYPT_MAX_BYTES:
        errors.append(PASSWORD_TOO_LONG)

    return PasswordStrength(is_valid=not errors, errors=errors)


def _create_token(claims: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    issued_at = datetime.now(timezone.utc)
    to_encode = claims.copy()
    to_encode.update({
        "type": token_type,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "jti": uuid.uuid4().hex,
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _user_claims(user_id: int, email: str, tier: str) -> Dict[str, Any]:
    return {"sub": str(user_id), "email": email, "tier": tier}


def create_access_token(user_id: int, email: str, tier: str,
                        expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        _user_claims(user_id, email, tier),
        ACCESS_TOKEN_TYPE,
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user_id: int, email: str, tier: str,
                         expires_delta: Optional[timedelta] = None) -> str:
    return _create_token(
        _user_claims(user_id, email, tier),
        REFRESH_TOKEN_TYPE,
        expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    )


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a signed token.

    Raises:
        AuthenticationError: If the token is expired, malformed or has no subject
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    if not payload.get("sub") or payload.get("type") not in (ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE):
        raise AuthenticationError("Invalid token")
    return payload
