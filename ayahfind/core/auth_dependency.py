from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ayahfind.core.errors import AuthenticationError, NotFoundError
from ayahfind.core.security import decode_token, ACCESS_TOKEN_TYPE
from ayahfind.db.session import SessionLocal
from ayahfind.db.models.user import User, TIER_FREE

DEVICE_ID_HEADER = "X-Device-Id"


@dataclass
class Identity:
    """Caller identity decoded from an access token."""
    user_id: int
    email: str
    subscription_tier: str = TIER_FREE


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Accept both "Bearer <token>" and a bare token."""
    if not authorization or not authorization.strip():
        return None
    parts = authorization.strip().split(" ")
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1] or None
    return authorization.strip()


def identity_from_token(token: Optional[str]) -> Identity:
    if not token:
        raise AuthenticationError("No authentication token provided")

    payload = decode_token(token)
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise AuthenticationError("Invalid token type")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token")

    return Identity(
        user_id=user_id,
        email=payload.get("email", ""),
        subscription_tier=payload.get("tier", TIER_FREE),
    )


def authenticate_request(authorization: Optional[str] = Header(None)) -> Identity:
    """Require a valid access token."""
    return identity_from_token(extract_token(authorization))


def optional_auth(authorization: Optional[str] = Header(None)) -> Optional[Identity]:
    """Decode the access token if one is present and valid, otherwise None."""
    try:
        return identity_from_token(extract_token(authorization))
    except AuthenticationError:
        return None


def extract_device_id(x_device_id: Optional[str] = Header(None, alias=DEVICE_ID_HEADER)) -> Optional[str]:
    """Device identifier for anonymous usage tracking."""
    if x_device_id is None:
        return None
    device_id = x_device_id.strip()
    return device_id or None


def get_current_user_obj(
    identity: Identity = Depends(authenticate_request),
    db: Session = Depends(get_db)
) -> User:
    """Get current User object from the access token."""
    user = db.get(User, identity.user_id)
    if not user:
        raise NotFoundError("User not found")
    return user
