"""
Account endpoints: registration, login, email verification, password reset
and token refresh.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ayahfind.core.auth_dependency import get_db, get_current_user_obj
from ayahfind.db.models.user import User
from ayahfind.schemas.auth import (
    EmailRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordConfirmRequest,
    TokenPairResponse,
    TokenRequest,
    UserProfile,
)
from ayahfind.schemas.base import MessageResponse
from ayahfind.services import auth_service, email_service, subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

RESET_REQUESTED_MESSAGE = "If an account exists with this email, a password reset link has been sent."


# ✅ REGISTER
@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    result = auth_service.register(db, payload.email, payload.password, payload.display_name)
    email_service.send_verification_email(auth_service.normalize_email(payload.email), result.verification_token)
    return RegisterResponse(
        user_id=result.user_id,
        message="Registration successful. Please check your email to verify your account.",
    )


# ✅ LOGIN
@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    result = auth_service.login(db, payload.email, payload.password)
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user=UserProfile.model_validate(result.user),
    )


# ✅ EMAIL VERIFICATION
@router.post("/verify", response_model=MessageResponse)
def verify(payload: TokenRequest, db: Session = Depends(get_db)):
    user = auth_service.verify_email(db, payload.token)
    email_service.send_welcome_email(user.email, user.display_name)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(payload: EmailRequest, db: Session = Depends(get_db)):
    token = auth_service.resend_verification(db, payload.email)
    email_service.send_verification_email(auth_service.normalize_email(payload.email), token)
    return MessageResponse(message="Verification email sent")


# ✅ PASSWORD RESET
@router.post("/reset-password", response_model=MessageResponse)
def request_password_reset(payload: EmailRequest, db: Session = Depends(get_db)):
    """Always answers with the same message so accounts cannot be enumerated."""
    token = auth_service.request_password_reset(db, payload.email)
    if token:
        email_service.send_password_reset_email(auth_service.normalize_email(payload.email), token)
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/reset-password/confirm", response_model=MessageResponse)
def confirm_password_reset(payload: ResetPasswordConfirmRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, payload.token, payload.new_password)
    return MessageResponse(message="Password reset successfully")


# ✅ TOKEN REFRESH
@router.post("/refresh", response_model=TokenPairResponse)
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    tokens = auth_service.refresh_tokens(db, payload.refresh_token)
    return TokenPairResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


@router.get("/me", response_model=UserProfile)
def me(user: User = Depends(get_current_user_obj), db: Session = Depends(get_db)):
    user = subscription_service.reconcile_pending(db, user)
    return UserProfile.model_validate(user)
