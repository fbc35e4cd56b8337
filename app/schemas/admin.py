from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class AdminUserResponse(BaseModel):
    id: int
    username: str
    email: str
    tier: str
    email_verified: bool
    is_admin: bool
    discount_percentage: int = 0
    discount_expiry_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UpdateTierRequest(BaseModel):
    user_id: int
    tier: str


class UpdateAdminRequest(BaseModel):
    user_id: int
    is_admin: bool


class UpdateDiscountRequest(BaseModel):
    user_id: int
    discount_percentage: int
    expiry_days: Optional[int] = Field(None, ge=1)


class UserEventResponse(BaseModel):
    id: int
    user_id: int
    event_type: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PromoCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=32)
    description: Optional[str] = None
    discount_percentage: int = Field(..., ge=1, le=100)
    max_uses: int = Field(100, ge=1)
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    target_tier: Optional[str] = None
    apply_to_first_month: bool = True
    is_active: bool = True


class PromoCodeUpdate(BaseModel):
    description: Optional[str] = None
    discount_percentage: Optional[int] = Field(None, ge=1, le=100)
    max_uses: Optional[int] = Field(None, ge=1)
    expiry_date: Optional[datetime] = None
    target_tier: Optional[str] = None
    is_active: Optional[bool] = None


class PromoCodeResponse(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    discount_percentage: int
    max_uses: int
    used_count: int
    is_active: bool
    start_date: datetime
    expiry_date: Optional[datetime] = None
    target_tier: Optional[str] = None
    apply_to_first_month: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PromoCodeReportEntry(BaseModel):
    code: str
    usageCount: int
    conversionRate: float
    discountAmount: int
    isActive: bool
    createdAt: datetime
    expiresAt: Optional[datetime] = None


class AnnouncementRequest(BaseModel):
    subject: str = Field(..., min_length=1)
    html: str = Field(..., min_length=1)
    test_email: Optional[str] = None  # Send only to this address


class AnnouncementResponse(BaseModel):
    sent: int
    failed: List[str]
