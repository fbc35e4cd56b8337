import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Header
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.tier_limits import ANONYMOUS_TRIAL_LIMIT
from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.models.user_event import UserEventType
from app.schemas.auth import (
    UserCreate,
    UserLogin,
    UserResponse,
    TokenResponse,
    VerifyEmailRequest,
    ResendVerificationRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    TrialStatusResponse,
)
from app.services import email_service
from app.services.analytics import track_user_event
from app.services.usage_tracker import get_anonymous_usage, get_or_create_usage_limit
from app.utils.auth import hash_password, verify_password, create_access_token
from app.utils.disposable_email import is_disposable_email, normalize_email

logger = logging.getLogger(__name__)

router = APIRouter()

VERIFICATION_CODE_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)

DISPOSABLE_EMAIL_MESSAGE = (
    "Temporary or disposable email addresses are not allowed. "
    "Please use a permanent email address to sign up."
)


def _token_response(user: User) -> dict:
    access_token = create_access_token({"sub": str(user.id)})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    }


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Create an account, send the verification email and return an access token.
    """
    username = user_data.username.strip()
    email = normalize_email(user_data.email)

    if len(username) < 3:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username must be at least 3 characters"
        )
    if is_disposable_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=DISPOSABLE_EMAIL_MESSAGE
        )
    if db.query(User).filter(func.lower(User.username) == username.lower()).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists"
        )
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    code = email_service.generate_verification_code()
    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(user_data.password),
        tier="free",
        email_verified=False,
        verification_code=code,
        verification_code_expires=datetime.utcnow() + VERIFICATION_CODE_TTL,
        country=user_data.country,
        referred_by=user_data.referral_code,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    get_or_create_usage_limit(user.id, db)
    track_user_event(db, user.id, UserEventType.REGISTRATION, new_value=user.tier)

    if not email_service.send_verification_email(user.username, user.email, code):
        logger.warning("Verification email could not be sent to user %s", user.id)

    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    identifier = credentials.username.strip()
    user = db.query(User).filter(
        or_(
            func.lower(User.username) == identifier.lower(),
            User.email == normalize_email(identifier),
        )
    ).first()

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    track_user_event(db, user.id, UserEventType.LOGIN)
    return _token_response(user)


@router.post("/logout")
def logout():
    """Tokens are stateless; the client discards its token."""
    return {"message": "Logged out successfully"}


@router.get("/user", response_model=UserResponse)
def get_user(user: User = Depends(get_current_user)):
    return user


@router.get("/check-trial", response_model=TrialStatusResponse)
def check_trial(
    x_device_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Report whether an anonymous device can still use the free trial."""
    if not x_device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-Device-Id header"
        )
    used = get_anonymous_usage(x_device_id, db)
    return {
        "can_use": used < ANONYMOUS_TRIAL_LIMIT,
        "used": used,
        "limit": ANONYMOUS_TRIAL_LIMIT,
    }


@router.post("/verify-email")
def verify_email(request: VerifyEmailRequest, db: Session = Depends(get_db)):
    code = request.code.strip().upper()
    query = db.query(User).filter(User.verification_code == code)
    if request.email:
        query = query.filter(User.email == normalize_email(request.email))
    user = query.first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid verification code"
        )
    if user.verification_code_expires and user.verification_code_expires < datetime.utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Verification code has expired. Please request a new one."
        )

    user.email_verified = True
    user.verification_code = None
    user.verification_code_expires = None
    db.commit()
    track_user_event(db, user.id, UserEventType.EMAIL_VERIFIED)

    return {"message": "Email verified successfully"}


@router.post("/resend-verification")
def resend_verification(request: ResendVerificationRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == normalize_email(request.email)).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if user.email_verified:
        return {"message": "Email is already verified"}

    user.verification_code = email_service.generate_verification_code()
    user.verification_code_expires = datetime.utcnow() + VERIFICATION_CODE_TTL
    db.commit()

    sent = email_service.send_verification_email(user.username, user.email, user.verification_code)
    if not sent:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not send verification email. Please try again later."
        )
    return {"message": "Verification email sent"}


@router.post("/forgot-password")
def forgot_password(request: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """
    Request a password reset link.
    Always returns success so the endpoint cannot be used to discover accounts.
    """
    user = db.query(User).filter(User.email == normalize_email(request.email)).first()
    if user:
        user.password_reset_token = email_service.generate_reset_token()
        user.password_reset_expires = datetime.utcnow() + PASSWORD_RESET_TTL
        db.commit()
        email_service.send_password_reset_email(user.username, user.email, user.password_reset_token)
        logger.info("Password reset requested for user %s", user.id)

    return {
        "message": "If an account exists with this email, a password reset link has been sent."
    }


@router.post("/reset-password")
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.password_reset_token == request.token).first()
    if not user or not user.password_reset_expires or user.password_reset_expires < datetime.utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user.hashed_password = hash_password(request.new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.commit()
    return {"message": "Password has been reset successfully"}
