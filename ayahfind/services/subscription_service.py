"""
Subscription service for RevenueCat purchases.

The mobile client reports a completed purchase through sync_subscription(),
which elevates the user to premium right away. RevenueCat webhooks later
confirm, renew, cancel or expire the subscription. An elevation that is never
confirmed lapses once its grace period has passed; this is checked lazily
whenever the user's tier is evaluated.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ayahfind.core.config import SUBSCRIPTION_SYNC_GRACE_HOURS
from ayahfind.core.errors import NotFoundError, ValidationError
from ayahfind.core.security import utcnow
from ayahfind.db.models.subscription import (
    Subscription,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_EXPIRED,
    STATUS_PENDING,
)
from ayahfind.db.models.user import User, TIER_FREE, TIER_PREMIUM

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 30

ACTIVATING_EVENTS = {"INITIAL_PURCHASE", "RENEWAL", "PRODUCT_CHANGE", "UNCANCELLATION"}
CANCELLATION_EVENT = "CANCELLATION"
EXPIRATION_EVENT = "EXPIRATION"
BILLING_ISSUE_EVENT = "BILLING_ISSUE"


def _from_ms(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).replace(tzinfo=None)


def get_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def sync_subscription(
    db: Session,
    user_id: int,
    external_customer_id: str,
    now: Optional[datetime] = None
) -> User:
    """
    Link a RevenueCat customer id to the user and elevate them to premium.

    The elevation is optimistic: unless a webhook confirms the purchase within
    SUBSCRIPTION_SYNC_GRACE_HOURS, reconcile_pending() reverts it.

    Raises:
        ValidationError: Empty customer id
        NotFoundError: Unknown user
    """
    now = now or utcnow()
    external_customer_id = (external_customer_id or "").strip()
    if not external_customer_id:
        raise ValidationError("revenueCatCustomerId is required")

    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    subscription = get_subscription(db, user.id)
    if not subscription:
        subscription = Subscription(user_id=user.id, status=STATUS_PENDING)
        db.add(subscription)

    subscription.revenuecat_customer_id = external_customer_id
    if subscription.status != STATUS_ACTIVE:
        subscription.status = STATUS_PENDING
        subscription.pending_until = now + timedelta(hours=SUBSCRIPTION_SYNC_GRACE_HOURS)

    user.subscription_tier = TIER_PREMIUM
    db.commit()
    db.refresh(user)

    logger.info(
        f"Subscription sync: user_id={user.id}, status={subscription.status}, "
        f"tier={user.subscription_tier}"
    )
    return user


def reconcile_pending(db: Session, user: User, now: Optional[datetime] = None) -> User:
    """
    Revert an unconfirmed premium elevation whose grace period has elapsed.

    Also downgrades a cancelled subscription once its paid period is over.
    """
    if user.subscription_tier != TIER_PREMIUM:
        return user

    now = now or utcnow()
    subscription = get_subscription(db, user.id)
    if not subscription:
        return user

    lapsed = False
    if subscription.status == STATUS_PENDING:
        lapsed = subscription.pending_until is not None and subscription.pending_until <= now
    elif subscription.status in (STATUS_ACTIVE, STATUS_CANCELLED):
        lapsed = subscription.expires_at is not None and subscription.expires_at <= now

    if lapsed:
        logger.warning(
            f"Premium lapsed without confirmation: user_id={user.id}, "
            f"status={subscription.status}"
        )
        subscription.status = STATUS_EXPIRED
        user.subscription_tier = TIER_FREE
        db.commit()
        db.refresh(user)

    return user


def _resolve_user(db: Session, event: Dict[str, Any]) -> Optional[User]:
    """Find the user by stored RevenueCat customer id, then by numeric app user id."""
    candidates = [event.get("app_user_id"), event.get("original_app_user_id")]
    candidates += event.get("aliases") or []

    for candidate in candidates:
        if not candidate:
            continue
        subscription = db.query(Subscription).filter(
            Subscription.revenuecat_customer_id == str(candidate)
        ).first()
        if subscription:
            return subscription.user

    for candidate in candidates:
        if candidate is not None and str(candidate).isdigit():
            user = db.get(User, int(candidate))
            if user:
                return user
    return None


def handle_webhook_event(db: Session, event: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Apply a RevenueCat webhook event.

    Returns:
        Acknowledgement dict; an unknown user is acknowledged with a warning so
        RevenueCat does not retry.
    """
    now = now or utcnow()
    event_type = event.get("type")
    user = _resolve_user(db, event)

    logger.info(
        f"RevenueCat event received: type={event_type}, app_user_id={event.get('app_user_id')}, "
        f"product_id={event.get('product_id')}, environment={event.get('environment')}"
    )

    if not user:
        logger.error(f"RevenueCat event for unknown user: app_user_id={event.get('app_user_id')}")
        return {"received": True, "warning": "User not found"}

    subscription = get_subscription(db, user.id)
    if not subscription:
        subscription = Subscription(user_id=user.id)
        db.add(subscription)

    if event_type in ACTIVATING_EVENTS:
        subscription.status = STATUS_ACTIVE
        subscription.product_id = event.get("new_product_id") or event.get("product_id") or subscription.product_id
        subscription.revenuecat_customer_id = subscription.revenuecat_customer_id or event.get("app_user_id")
        subscription.pending_until = None
        subscription.cancelled_at = None
        subscription.started_at = subscription.started_at or _from_ms(event.get("purchased_at_ms")) or now
        subscription.expires_at = _from_ms(event.get("expiration_at_ms")) or now + timedelta(days=DEFAULT_PERIOD_DAYS)
        user.subscription_tier = TIER_PREMIUM
        logger.info(f"Subscription activated: user_id={user.id}, expires_at={subscription.expires_at}")

    elif event_type == CANCELLATION_EVENT:
        # Access continues until expires_at
        subscription.status = STATUS_CANCELLED
        subscription.cancelled_at = now
        expires_at = _from_ms(event.get("expiration_at_ms"))
        if expires_at:
            subscription.expires_at = expires_at
        logger.info(f"Subscription cancelled: user_id={user.id}")

    elif event_type == EXPIRATION_EVENT:
        subscription.status = STATUS_EXPIRED
        subscription.pending_until = None
        user.subscription_tier = TIER_FREE
        logger.info(f"Subscription expired, user downgraded to free: user_id={user.id}")

    elif event_type == BILLING_ISSUE_EVENT:
        logger.warning(f"Billing issue reported: user_id={user.id}")

    else:
        logger.info(f"Unhandled RevenueCat event type: {event_type}")

    db.commit()
    return {"received": True}
