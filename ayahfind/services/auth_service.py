"""
Authentication service.

Handles registration, login, email verification, password reset and
access/refresh token issuance. Every function takes the request's database
session and commits its own unit of work.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ayahfind.core.config import (
    VERIFICATION_TOKEN_EXPIRE_HOURS,
    PASSWORD_RESET_TOKEN_EXPIRE_HOURS,
)
from ayahfind.core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ayahfind.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_token,
    hash_password,
    hash_token,
    utcnow,
    validate_password_strength,
    verify_password,
)
from ayahfind.db.models.auth_token import (
    AuthToken,
    PURPOSE_EMAIL_VERIFICATION,
    PURPOSE_PASSWORD_RESET,
)
from ayahfind.db.models.user import User
from ayahfind.services import subscription_service

logger = logging.getLogger(__name__)

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INVALID_CREDENTIALS = "Invalid email or password"


@dataclass
class RegisterResult:
    user_id: int
    verification_token: str


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass
class AuthResult:
    access_token: str
    refresh_token: str
    user: User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _check_password_strength(password: str) -> None:
    strength = validate_password_strength(password)
    if not strength.is_valid:
        raise ValidationError("Password does not meet requirements", errors=strength.errors)


def _issue_token_pair(user: User) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user.id, user.email, user.subscription_tier),
        refresh_token=create_refresh_token(user.id, user.email, user.subscription_tier),
    )


def _issue_one_time_token(
    db: Session,
    user_id: int,
    purpose: str,
    ttl: timedelta,
    now: Optional[datetime] = None
) -> str:
    """
    Create a single-use token, retiring any outstanding one for the same purpose.

    The caller commits.
    """
    now = now or utcnow()
    db.execute(
        update(AuthToken)
        .where(
            AuthToken.user_id == user_id,
            AuthToken.purpose == purpose,
            AuthToken.consumed_at.is_(None),
        )
        .values(consumed_at=now)
        .execution_options(synchronize_session=False)
    )
    token = generate_token()
    db.add(AuthToken(
        user_id=user_id,
        purpose=purpose,
        token_hash=hash_token(token),
        expires_at=now + ttl,
    ))
    return token


def _consume_one_time_token(
    db: Session,
    token: str,
    purpose: str,
    invalid_message: str,
    expired_message: str,
    now: Optional[datetime] = None
) -> int:
    """
    Check and invalidate a single-use token in one conditional update.

    Returns:
        The id of the user the token belongs to. The caller commits.

    Raises:
        NotFoundError: Unknown or already used token
        ValidationError: Expired token
    """
    now = now or utcnow()
    record = db.query(AuthToken).filter(
        AuthToken.token_hash == hash_token(token or ""),
        AuthToken.purpose == purpose,
    ).first()

    if record is None or record.consumed_at is not None:
        raise NotFoundError(invalid_message)
    if record.expires_at <= now:
        raise ValidationError(expired_message)

    result = db.execute(
        update(AuthToken)
        .where(AuthToken.id == record.id, AuthToken.consumed_at.is_(None))
        .values(consumed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Lost the race to a concurrent request using the same token
        db.rollback()
        raise NotFoundError(invalid_message)
    return record.user_id


def register(
    db: Session,
    email: str,
    password: str,
    display_name: Optional[str] = None
) -> RegisterResult:
    """
    Register a new, unverified user.

    Returns:
        RegisterResult with the new user id and the verification token to email

    Raises:
        ValidationError: Malformed email or weak password
        ConflictError: Email already registered
    """
    email = normalize_email(email)
    if not EMAIL_REGEX.match(email):
        raise ValidationError("Invalid email format")
    _check_password_strength(password)

    if db.query(User).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        display_name=(display_name or "").strip() or None,
        email_verified=False,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User with this email already exists")

    token = _issue_one_time_token(
        db, user.id, PURPOSE_EMAIL_VERIFICATION,
        timedelta(hours=VERIFICATION_TOKEN_EXPIRE_HOURS),
    )
    db.commit()

    logger.info(f"User registered: user_id={user.id}")
    return RegisterResult(user_id=user.id, verification_token=token)


def login(db: Session, email: str, password: str) -> AuthResult:
    """
    Authenticate with email and password.

    Unknown email and wrong password raise the same error.
    """
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user or not verify_password(password or "", user.password_hash):
        logger.info("Login failed: invalid credentials")
        raise AuthenticationError(INVALID_CREDENTIALS)

    subscription_service.reconcile_pending(db, user)

    tokens = _issue_token_pair(user)
    user.last_login_at = utcnow()
    user.refresh_token_hash = hash_token(tokens.refresh_token)
    db.commit()
    db.refresh(user)

    logger.info(f"User logged in: user_id={user.id}")
    return AuthResult(access_token=tokens.access_token, refresh_token=tokens.refresh_token, user=user)


def verify_email(db: Session, token: str) -> User:
    """Consume a verification token and mark its user verified."""
    user_id = _consume_one_time_token(
        db, token, PURPOSE_EMAIL_VERIFICATION,
        invalid_message="Invalid or expired verification token",
        expired_message="Verification token has expired",
    )
    user = db.get(User, user_id)
    user.email_verified = True
    db.commit()
    db.refresh(user)

    logger.info(f"Email verified: user_id={user.id}")
    return user


def resend_verification(db: Session, email: str) -> str:
    """Issue a fresh verification token, retiring the previous one."""
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        raise NotFoundError("User not found")
    if user.email_verified:
        raise ValidationError("Email is already verified")

    token = _issue_one_time_token(
        db, user.id, PURPOSE_EMAIL_VERIFICATION,
        timedelta(hours=VERIFICATION_TOKEN_EXPIRE_HOURS),
    )
    db.commit()
    logger.info(f"Verification token reissued: user_id={user.id}")
    return token


def request_password_reset(db: Session, email: str) -> Optional[str]:
    """
    Create a password reset token if the email belongs to a user.

    Returns None for unknown emails; callers must respond identically in both cases.
    """
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user:
        logger.info("Password reset requested for unknown email")
        return None

    token = _issue_one_time_token(
        db, user.id, PURPOSE_PASSWORD_RESET,
        timedelta(hours=PASSWORD_RESET_TOKEN_EXPIRE_HOURS),
    )
    db.commit()
    logger.info(f"Password reset token issued: user_id={user.id}")
    return token


def reset_password(db: Session, token: str, new_password: str) -> User:
    """Consume a reset token, set the new password and revoke the refresh token."""
    _check_password_strength(new_password)

    user_id = _consume_one_time_token(
        db, token, PURPOSE_PASSWORD_RESET,
        invalid_message="Invalid or expired reset token",
        expired_message="Reset token has expired",
    )
    user = db.get(User, user_id)
    user.password_hash = hash_password(new_password)
    user.refresh_token_hash = None
    db.commit()
    db.refresh(user)

    logger.info(f"Password reset: user_id={user.id}")
    return user


def refresh_tokens(db: Session, refresh_token: str) -> TokenPair:
    """
    Exchange a refresh token for a new token pair.

    The refresh token is rotated with a compare-and-swap on the stored digest,
    so each refresh token can be used once.
    """
    payload = decode_token(refresh_token or "")
    if payload.get("type") != REFRESH_TOKEN_TYPE:
        raise AuthenticationError("Invalid token type")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid refresh token")

    old_hash = hash_token(refresh_token)
    user = db.get(User, user_id)
    if not user or user.refresh_token_hash != old_hash:
        raise AuthenticationError("Invalid refresh token")

    subscription_service.reconcile_pending(db, user)
    tokens = _issue_token_pair(user)

    result = db.execute(
        update(User)
        .where(User.id == user.id, User.refresh_token_hash == old_hash)
        .values(refresh_token_hash=hash_token(tokens.refresh_token))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise AuthenticationError("Invalid refresh token")
    db.commit()

    logger.info(f"Tokens refreshed: user_id={user.id}")
    return tokens


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)
