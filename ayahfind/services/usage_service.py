"""
Usage service for search quotas.

Tracks searches per authenticated user and per anonymous device over a daily
UTC window. A window resets by comparison with "now": once the stored
boundary has passed, the counter reads as zero and the next increment
restarts it. No background job is involved.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ayahfind.core.errors import NotFoundError
from ayahfind.core.security import utcnow
from ayahfind.core.usage_limits import (
    TIER_ANONYMOUS,
    get_search_limit,
    limit_reached_reason,
)
from ayahfind.db.models.usage import UsageRecord, SUBJECT_DEVICE, SUBJECT_USER
from ayahfind.db.models.user import User
from ayahfind.services import subscription_service

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@dataclass
class SearchAllowance:
    allowed: bool
    remaining: Optional[int]  # None means unlimited
    limit: Optional[int]      # None means unlimited
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class UsageStats:
    used: int
    remaining: Optional[int]
    limit: Optional[int]
    reset_at: datetime
    subscription_tier: str
    unlimited: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def get_window_end(now: datetime) -> datetime:
    """Next UTC midnight after now."""
    return datetime(now.year, now.month, now.day) + timedelta(days=1)


def _get_record(db: Session, subject_type: str, subject_id: str) -> Optional[UsageRecord]:
    return db.query(UsageRecord).filter(
        UsageRecord.subject_type == subject_type,
        UsageRecord.subject_id == subject_id,
    ).first()


def get_current_count(db: Session, subject_type: str, subject_id: str, now: Optional[datetime] = None) -> int:
    """Searches counted in the current window (0 once the stored window has ended)."""
    now = now or utcnow()
    record = _get_record(db, subject_type, subject_id)
    if record is None or record.window_ends_at <= now:
        return 0
    return record.search_count


def _current_reset_at(db: Session, subject_type: str, subject_id: str, now: datetime) -> datetime:
    record = _get_record(db, subject_type, subject_id)
    if record is None or record.window_ends_at <= now:
        return get_window_end(now)
    return record.window_ends_at


def _increment(db: Session, subject_type: str, subject_id: str, now: Optional[datetime] = None) -> None:
    """
    Atomically add one search to the subject's counter.

    A single INSERT ... ON CONFLICT DO UPDATE creates the row on first use,
    restarts an elapsed window at 1, and otherwise adds one.
    """
    now = now or utcnow()
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Atomic usage increment is not supported on '{dialect}'")

    window_end = get_window_end(now)
    table = UsageRecord.__table__
    window_elapsed = table.c.window_ends_at <= now

    stmt = insert(table).values(
        subject_type=subject_type,
        subject_id=subject_id,
        search_count=1,
        window_ends_at=window_end,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["subject_type", "subject_id"],
        set_={
            "search_count": case(
                (window_elapsed, 1),
                else_=table.c.search_count + 1,
            ),
            "window_ends_at": case(
                (window_elapsed, stmt.excluded.window_ends_at),
                else_=table.c.window_ends_at,
            ),
            "updated_at": now,
        },
    )
    db.execute(stmt)
    db.commit()


def _allowance(used: int, limit: Optional[int], tier: str) -> SearchAllowance:
    if limit is None:
        return SearchAllowance(allowed=True, remaining=None, limit=None)
    if used >= limit:
        return SearchAllowance(allowed=False, remaining=0, limit=limit, reason=limit_reached_reason(tier))
    return SearchAllowance(allowed=True, remaining=limit - used, limit=limit)


def _stats(db: Session, subject_type: str, subject_id: str, tier: str, now: datetime) -> UsageStats:
    limit = get_search_limit(tier)
    used = get_current_count(db, subject_type, subject_id, now)
    return UsageStats(
        used=used,
        remaining=None if limit is None else max(0, limit - used),
        limit=limit,
        reset_at=_current_reset_at(db, subject_type, subject_id, now),
        subscription_tier=tier,
        unlimited=limit is None,
    )


def _load_user(db: Session, user_id: int, now: datetime) -> Optional[User]:
    user = db.get(User, user_id)
    if user:
        subscription_service.reconcile_pending(db, user, now)
    return user


def can_user_search(db: Session, user_id: int, now: Optional[datetime] = None) -> SearchAllowance:
    """
    Check whether an authenticated user may search.

    Premium users are always allowed; free users are held to the daily limit.
    """
    now = now or utcnow()
    user = _load_user(db, user_id, now)
    if not user:
        return SearchAllowance(allowed=False, remaining=0, limit=0, reason="User not found")

    tier = user.subscription_tier
    if get_search_limit(tier) is None:
        return _allowance(0, None, tier)

    used = get_current_count(db, SUBJECT_USER, str(user.id), now)
    return _allowance(used, get_search_limit(tier), tier)


def can_anonymous_search(db: Session, device_id: str, now: Optional[datetime] = None) -> SearchAllowance:
    """Check whether an anonymous device may search."""
    now = now or utcnow()
    used = get_current_count(db, SUBJECT_DEVICE, device_id, now)
    return _allowance(used, get_search_limit(TIER_ANONYMOUS), TIER_ANONYMOUS)


def increment_user_usage(db: Session, user_id: int, now: Optional[datetime] = None) -> None:
    _increment(db, SUBJECT_USER, str(user_id), now)
    logger.info(f"Usage incremented: user_id={user_id}")


def increment_anonymous_usage(db: Session, device_id: str, now: Optional[datetime] = None) -> None:
    _increment(db, SUBJECT_DEVICE, device_id, now)
    logger.info(f"Usage incremented: device_id={device_id}")


def get_user_usage_stats(db: Session, user_id: int, now: Optional[datetime] = None) -> UsageStats:
    """
    Usage statistics for an authenticated user.

    Raises:
        NotFoundError: Unknown user
    """
    now = now or utcnow()
    user = _load_user(db, user_id, now)
    if not user:
        raise NotFoundError("User not found")
    return _stats(db, SUBJECT_USER, str(user.id), user.subscription_tier, now)


def get_anonymous_usage_stats(db: Session, device_id: str, now: Optional[datetime] = None) -> UsageStats:
    now = now or utcnow()
    return _stats(db, SUBJECT_DEVICE, device_id, TIER_ANONYMOUS, now)
