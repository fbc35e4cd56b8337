from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime


class ChatAnalysisRequest(BaseModel):
    conversation: str = Field(..., min_length=1)
    me: str = Field(..., min_length=1)
    them: str = Field(..., min_length=1)


class MessageAnalysisRequest(BaseModel):
    message: str = Field(..., min_length=1)
    author: Literal["me", "them"] = "me"


class VentRequest(BaseModel):
    message: str = Field(..., min_length=1)


class DetectNamesRequest(BaseModel):
    conversation: str = Field(..., min_length=1)


class ImageRequest(BaseModel):
    image: str = Field(..., min_length=1)  # Base64, optionally a data: URL
    media_type: str = "image/jpeg"


class ColorPoint(BaseModel):
    x: float
    y: float
    label: Optional[str] = None


class DebugColorsRequest(BaseModel):
    image: str = Field(..., min_length=1)
    points: List[ColorPoint]
    radius: int = Field(30, ge=1, le=200)


class ParticipantsResponse(BaseModel):
    me: Optional[str] = None
    them: Optional[str] = None


class ScreenshotMessage(BaseModel):
    text: str
    speaker: str
    is_me: bool
    x: float
    y: float
    confidence: float


class ScreenshotResponse(BaseModel):
    messages: List[ScreenshotMessage]
    conversation: str
    image_width: float
    detection_method: str


class AnalysisRecord(BaseModel):
    id: int
    type: str
    content: str
    result: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class UsageResponse(BaseModel):
    used: int
    limit: Optional[int] = None  # None means unlimited
    tier: str
