from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    country: Optional[str] = None
    referral_code: Optional[str] = None


class UserLogin(BaseModel):
    username: str  # Username or email
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    tier: str
    email_verified: bool
    is_admin: bool
    discount_percentage: int = 0
    discount_expiry_date: Optional[datetime] = None
    country: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse


class VerifyEmailRequest(BaseModel):
    code: str
    email: Optional[EmailStr] = None


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=8)


class TrialStatusResponse(BaseModel):
    can_use: bool
    used: int
    limit: int
