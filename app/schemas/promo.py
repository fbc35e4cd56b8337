from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class RedeemPromoRequest(BaseModel):
    code: str = Field(..., min_length=1)


class RedeemPromoResponse(BaseModel):
    code: str
    discount_percentage: int
    discount_expiry_date: datetime
    target_tier: Optional[str] = None
    message: str


class PromoUsageResponse(BaseModel):
    id: int
    code: str
    applied_discount: int
    target_tier: Optional[str] = None
    used_at: datetime
