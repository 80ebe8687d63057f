"""
Unit tests for the usage service.
Tests quota checks per tier, daily window reset and atomic increments.
"""
import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ayahfind.core.config import ANONYMOUS_DAILY_SEARCHES, FREE_DAILY_SEARCHES
from ayahfind.core.errors import NotFoundError
from ayahfind.core.security import hash_password
from ayahfind.db.base import Base
from ayahfind.db.models.usage import UsageRecord, SUBJECT_DEVICE
from ayahfind.db.models.user import User, TIER_PREMIUM
from ayahfind.services import usage_service

NOW = datetime(2026, 3, 10, 15, 30)


@pytest.fixture
def free_user(db):
    user = User(email="free@example.com", password_hash=hash_password("SecurePass123"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def premium_user(db):
    user = User(
        email="premium@example.com",
        password_hash=hash_password("SecurePass123"),
        subscription_tier=TIER_PREMIUM,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_window_end_is_next_utc_midnight():
    assert usage_service.get_window_end(NOW) == datetime(2026, 3, 11)
    assert usage_service.get_window_end(datetime(2026, 12, 31, 23, 59)) == datetime(2027, 1, 1)


def test_anonymous_quota_exhaustion(db):
    for _ in range(ANONYMOUS_DAILY_SEARCHES):
        allowance = usage_service.can_anonymous_search(db, "device-1", NOW)
        assert allowance.allowed is True
        usage_service.increment_anonymous_usage(db, "device-1", NOW)

    allowance = usage_service.can_anonymous_search(db, "device-1", NOW)
    assert allowance.allowed is False
    assert allowance.remaining == 0
    assert allowance.limit == ANONYMOUS_DAILY_SEARCHES
    assert "Sign in" in allowance.reason


def test_anonymous_devices_are_independent(db):
    for _ in range(ANONYMOUS_DAILY_SEARCHES):
        usage_service.increment_anonymous_usage(db, "device-1", NOW)
    assert usage_service.can_anonymous_search(db, "device-2", NOW).allowed is True


def test_free_user_quota_exhaustion(db, free_user):
    first = usage_service.can_user_search(db, free_user.id, NOW)
    assert first.allowed is True
    assert first.remaining == FREE_DAILY_SEARCHES
    assert first.limit == FREE_DAILY_SEARCHES

    for _ in range(FREE_DAILY_SEARCHES):
        usage_service.increment_user_usage(db, free_user.id, NOW)

    allowance = usage_service.can_user_search(db, free_user.id, NOW)
    assert allowance.allowed is False
    assert allowance.remaining == 0
    assert "Upgrade to Premium" in allowance.reason


def test_quota_resets_after_window(db, free_user):
    for _ in range(FREE_DAILY_SEARCHES):
        usage_service.increment_user_usage(db, free_user.id, NOW)
    assert usage_service.can_user_search(db, free_user.id, NOW).allowed is False

    tomorrow = NOW + timedelta(days=1)
    allowance = usage_service.can_user_search(db, free_user.id, tomorrow)
    assert allowance.allowed is True
    assert allowance.remaining == FREE_DAILY_SEARCHES


def test_increment_after_window_restarts_count(db):
    usage_service.increment_anonymous_usage(db, "device-1", NOW)
    usage_service.increment_anonymous_usage(db, "device-1", NOW)

    tomorrow = NOW + timedelta(days=1)
    usage_service.increment_anonymous_usage(db, "device-1", tomorrow)

    db.expire_all()
    record = db.query(UsageRecord).filter(UsageRecord.subject_id == "device-1").one()
    assert record.search_count == 1
    assert record.window_ends_at == datetime(2026, 3, 12)


def test_premium_always_allowed(db, premium_user):
    for _ in range(FREE_DAILY_SEARCHES * 3):
        usage_service.increment_user_usage(db, premium_user.id, NOW)

    allowance = usage_service.can_user_search(db, premium_user.id, NOW)
    assert allowance.allowed is True
    assert allowance.remaining is None
    assert allowance.limit is None


def test_unknown_user_not_allowed(db):
    allowance = usage_service.can_user_search(db, 9999, NOW)
    assert allowance.allowed is False
    assert allowance.reason == "User not found"


def test_user_stats(db, free_user):
    usage_service.increment_user_usage(db, free_user.id, NOW)
    stats = usage_service.get_user_usage_stats(db, free_user.id, NOW)
    assert stats.used == 1
    assert stats.remaining == FREE_DAILY_SEARCHES - 1
    assert stats.limit == FREE_DAILY_SEARCHES
    assert stats.reset_at == datetime(2026, 3, 11)
    assert stats.subscription_tier == "free"
    assert stats.unlimited is False


def test_premium_stats_are_unlimited(db, premium_user):
    stats = usage_service.get_user_usage_stats(db, premium_user.id, NOW)
    assert stats.unlimited is True
    assert stats.limit is None
    assert stats.remaining is None


def test_user_stats_unknown_user(db):
    with pytest.raises(NotFoundError):
        usage_service.get_user_usage_stats(db, 9999, NOW)


def test_anonymous_stats_without_usage(db):
    stats = usage_service.get_anonymous_usage_stats(db, "fresh-device", NOW)
    assert stats.used == 0
    assert stats.remaining == ANONYMOUS_DAILY_SEARCHES
    assert stats.subscription_tier == "anonymous"


def test_concurrent_increments_are_not_lost(tmp_path):
    """N parallel increments on one key raise the counter by exactly N."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'usage.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    workers = 20
    barrier = threading.Barrier(workers)
    errors = []

    def worker():
        session = Session()
        try:
            barrier.wait()
            usage_service.increment_anonymous_usage(session, "shared-device", NOW)
        except Exception as e:  # collected and asserted below
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    session = Session()
    try:
        record = session.query(UsageRecord).filter(
            UsageRecord.subject_type == SUBJECT_DEVICE,
            UsageRecord.subject_id == "shared-device",
        ).one()
        assert record.search_count == workers
    finally:
        session.close()
        engine.dispose()
