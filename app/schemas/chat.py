from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class StartConversationRequest(BaseModel):
    user_name: Optional[str] = None
    user_email: Optional[EmailStr] = None
    message: Optional[str] = None


class SendChatMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
    sender_name: Optional[str] = None


class ChatMessageResponse(BaseModel):
    id: int
    conversation_id: int
    message: str
    is_admin: bool
    sender_name: str
    timestamp: datetime
    read: bool

    class Config:
        from_attributes = True


class ChatConversationResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    user_name: str
    status: str
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
