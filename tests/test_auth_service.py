"""
Unit tests for the authentication service.
Covers registration, login, single-use verification/reset tokens and
refresh token rotation.
"""
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from ayahfind.core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ayahfind.core.security import PASSWORD_TOO_LONG, decode_token, utcnow
from ayahfind.db.base import Base
from ayahfind.db.models.auth_token import AuthToken, PURPOSE_EMAIL_VERIFICATION
from ayahfind.db.models.user import User
from ayahfind.services import auth_service

PASSWORD = "SecurePass123"


@pytest.fixture
def registered(db):
    return auth_service.register(db, "Aisha@Example.com", PASSWORD, "Aisha")


def test_register_creates_unverified_user(db, registered):
    user = db.get(User, registered.user_id)
    assert user.email == "aisha@example.com"
    assert user.display_name == "Aisha"
    assert user.email_verified is False
    assert user.subscription_tier == "free"
    assert user.password_hash != PASSWORD
    assert registered.verification_token


def test_register_stores_only_token_digest(db, registered):
    record = db.query(AuthToken).filter(AuthToken.user_id == registered.user_id).one()
    assert record.purpose == PURPOSE_EMAIL_VERIFICATION
    assert record.token_hash != registered.verification_token


def test_register_duplicate_email_conflicts(db, registered):
    with pytest.raises(ConflictError):
        auth_service.register(db, "aisha@example.com", PASSWORD)
    assert db.query(User).count() == 1


def test_register_weak_password_lists_violations(db):
    with pytest.raises(ValidationError) as exc:
        auth_service.register(db, "weak@example.com", "weak")
    assert "Password must contain at least one uppercase letter" in exc.value.errors
    assert "Password must contain at least one number" in exc.value.errors
    assert db.query(User).count() == 0


def test_register_rejects_password_over_byte_limit(db):
    with pytest.raises(ValidationError) as exc:
        auth_service.register(db, "long@example.com", "Abcd1234" + "x" * 70)
    assert exc.value.errors == [PASSWORD_TOO_LONG]
    assert db.query(User).count() == 0


def test_register_invalid_email(db):
    with pytest.raises(ValidationError):
        auth_service.register(db, "not-an-email", PASSWORD)


def test_login_success(db, registered):
    result = auth_service.login(db, "AISHA@example.com", PASSWORD)
    assert result.user.id == registered.user_id
    assert result.user.last_login_at is not None
    assert decode_token(result.access_token)["type"] == "access"
    assert decode_token(result.refresh_token)["type"] == "refresh"


def test_login_wrong_password_and_unknown_email_match(db, registered):
    with pytest.raises(AuthenticationError) as wrong:
        auth_service.login(db, "aisha@example.com", "WrongPass123")
    with pytest.raises(AuthenticationError) as unknown:
        auth_service.login(db, "nobody@example.com", PASSWORD)
    assert wrong.value.message == unknown.value.message == "Invalid email or password"


def test_verify_email_is_single_use(db, registered):
    user = auth_service.verify_email(db, registered.verification_token)
    assert user.email_verified is True

    with pytest.raises(NotFoundError):
        auth_service.verify_email(db, registered.verification_token)


def test_verify_unknown_token(db):
    with pytest.raises(NotFoundError):
        auth_service.verify_email(db, "does-not-exist")


def test_verify_expired_token(db, registered):
    record = db.query(AuthToken).filter(AuthToken.user_id == registered.user_id).one()
    record.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    with pytest.raises(ValidationError, match="expired"):
        auth_service.verify_email(db, registered.verification_token)


def test_resend_verification_retires_previous_token(db, registered):
    new_token = auth_service.resend_verification(db, "aisha@example.com")
    assert new_token != registered.verification_token

    with pytest.raises(NotFoundError):
        auth_service.verify_email(db, registered.verification_token)
    assert auth_service.verify_email(db, new_token).email_verified is True


def test_resend_verification_already_verified(db, registered):
    auth_service.verify_email(db, registered.verification_token)
    with pytest.raises(ValidationError, match="already verified"):
        auth_service.resend_verification(db, "aisha@example.com")


def test_password_reset_unknown_email_returns_none(db):
    assert auth_service.request_password_reset(db, "nobody@example.com") is None


def test_password_reset_flow(db, registered):
    token = auth_service.request_password_reset(db, "aisha@example.com")
    auth_service.reset_password(db, token, "NewSecure456")

    with pytest.raises(AuthenticationError):
        auth_service.login(db, "aisha@example.com", PASSWORD)
    assert auth_service.login(db, "aisha@example.com", "NewSecure456").user.id == registered.user_id


def test_password_reset_token_is_single_use(db, registered):
    token = auth_service.request_password_reset(db, "aisha@example.com")
    auth_service.reset_password(db, token, "NewSecure456")
    with pytest.raises(NotFoundError):
        auth_service.reset_password(db, token, "Another789Pass")


def test_password_reset_weak_password_keeps_token(db, registered):
    token = auth_service.request_password_reset(db, "aisha@example.com")
    with pytest.raises(ValidationError):
        auth_service.reset_password(db, token, "weak")
    auth_service.reset_password(db, token, "NewSecure456")


def test_password_reset_rejects_password_over_byte_limit(db, registered):
    token = auth_service.request_password_reset(db, "aisha@example.com")
    with pytest.raises(ValidationError) as exc:
        auth_service.reset_password(db, token, "Abcd1234" + "x" * 70)
    assert PASSWORD_TOO_LONG in exc.value.errors
    # The stored password is unchanged
    with pytest.raises(AuthenticationError):
        auth_service.login(db, "aisha@example.com", "Abcd1234" + "x" * 64)
    assert auth_service.login(db, "aisha@example.com", PASSWORD).user.id == registered.user_id


def test_password_reset_revokes_refresh_token(db, registered):
    login = auth_service.login(db, "aisha@example.com", PASSWORD)
    token = auth_service.request_password_reset(db, "aisha@example.com")
    auth_service.reset_password(db, token, "NewSecure456")

    with pytest.raises(AuthenticationError):
        auth_service.refresh_tokens(db, login.refresh_token)


def test_refresh_rotates_token(db, registered):
    login = auth_service.login(db, "aisha@example.com", PASSWORD)
    tokens = auth_service.refresh_tokens(db, login.refresh_token)
    assert tokens.refresh_token != login.refresh_token

    with pytest.raises(AuthenticationError, match="Invalid refresh token"):
        auth_service.refresh_tokens(db, login.refresh_token)
    assert auth_service.refresh_tokens(db, tokens.refresh_token).access_token


def test_refresh_rejects_access_token(db, registered):
    login = auth_service.login(db, "aisha@example.com", PASSWORD)
    with pytest.raises(AuthenticationError, match="Invalid token type"):
        auth_service.refresh_tokens(db, login.access_token)


def test_get_user_by_id(db, registered):
    assert auth_service.get_user_by_id(db, registered.user_id).email == "aisha@example.com"
    assert auth_service.get_user_by_id(db, 9999) is None


@pytest.fixture
def file_sessions(tmp_path):
    """Session factory over a file-backed database, so sessions get their own connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'auth.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _interleave_after_first_select(session, competitor):
    """Run competitor right after the session's first SELECT returns, leaving it a stale read."""
    fired = []

    @event.listens_for(session, "do_orm_execute")
    def _run_competitor(orm_execute_state):
        if fired or not orm_execute_state.is_select:
            return None
        fired.append(True)
        frozen = orm_execute_state.invoke_statement().freeze()
        competitor()
        return frozen()

    return fired


def test_verify_email_loses_race_to_concurrent_consume(file_sessions):
    setup = file_sessions()
    registered = auth_service.register(setup, "race@example.com", PASSWORD)
    setup.close()

    winner, loser = file_sessions(), file_sessions()
    try:
        fired = _interleave_after_first_select(
            loser, lambda: auth_service.verify_email(winner, registered.verification_token)
        )
        with pytest.raises(NotFoundError, match="Invalid or expired verification token"):
            auth_service.verify_email(loser, registered.verification_token)

        assert fired == [True]
        record = winner.query(AuthToken).filter(AuthToken.user_id == registered.user_id).one()
        assert record.consumed_at is not None
        assert winner.get(User, registered.user_id).email_verified is True
    finally:
        winner.close()
        loser.close()


def test_password_reset_loses_race_to_concurrent_reset(file_sessions):
    setup = file_sessions()
    auth_service.register(setup, "race@example.com", PASSWORD)
    token = auth_service.request_password_reset(setup, "race@example.com")
    setup.close()

    winner, loser = file_sessions(), file_sessions()
    try:
        _interleave_after_first_select(
            loser, lambda: auth_service.reset_password(winner, token, "WinnerPass456")
        )
        with pytest.raises(NotFoundError):
            auth_service.reset_password(loser, token, "LoserPass789")
    finally:
        winner.close()
        loser.close()

    check = file_sessions()
    try:
        assert auth_service.login(check, "race@example.com", "WinnerPass456").user.email == "race@example.com"
        with pytest.raises(AuthenticationError):
            auth_service.login(check, "race@example.com", "LoserPass789")
    finally:
        check.close()


def test_refresh_loses_race_to_concurrent_rotation(file_sessions):
    setup = file_sessions()
    auth_service.register(setup, "race@example.com", PASSWORD)
    refresh_token = auth_service.login(setup, "race@example.com", PASSWORD).refresh_token
    setup.close()

    winner, loser = file_sessions(), file_sessions()
    rotated = []
    try:
        fired = _interleave_after_first_select(
            loser, lambda: rotated.append(auth_service.refresh_tokens(winner, refresh_token))
        )
        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            auth_service.refresh_tokens(loser, refresh_token)
        assert fired == [True]
    finally:
        winner.close()
        loser.close()

    check = file_sessions()
    try:
        assert auth_service.refresh_tokens(check, rotated[0].refresh_token).access_token
    finally:
        check.close()
