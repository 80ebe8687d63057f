"""
RevenueCat webhook receiver.

RevenueCat sends the Authorization header value configured in its dashboard;
it must match REVENUECAT_WEBHOOK_AUTH.
"""
import hmac
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header
from sqlalchemy.orm import Session

from ayahfind.core import config
from ayahfind.core.auth_dependency import extract_token, get_db
from ayahfind.core.errors import AuthenticationError, ValidationError
from ayahfind.core.logging_config import sanitize_log_data
from ayahfind.services import subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def verify_webhook_auth(authorization: Optional[str] = Header(None)) -> None:
    """Reject requests that do not carry the shared webhook secret."""
    expected = config.REVENUECAT_WEBHOOK_AUTH
    if not expected:
        logger.error("REVENUECAT_WEBHOOK_AUTH not configured; rejecting webhook")
        raise AuthenticationError("Webhook authorization not configured")

    expected_bytes = expected.encode("utf-8")
    candidates = (extract_token(authorization) or "", (authorization or "").strip())
    if not any(hmac.compare_digest(c.encode("utf-8"), expected_bytes) for c in candidates):
        raise AuthenticationError("Invalid webhook authorization")


@router.post("/revenuecat", dependencies=[Depends(verify_webhook_auth)])
def revenuecat_webhook(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db)
):
    event = payload.get("event")
    if not isinstance(event, dict) or not event.get("type"):
        raise ValidationError("Webhook payload must contain an event with a type")

    logger.debug(f"RevenueCat payload: {sanitize_log_data(event)}")

    return subscription_service.handle_webhook_event(db, event)
