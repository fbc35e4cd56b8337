"""
Model for support chat threads between site visitors and admins.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


class ChatConversation(Base):
    __tablename__ = "chat_conversations"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)  # None for anonymous visitors
    user_email = Column(String, nullable=True)
    user_name = Column(String, default="Anonymous", nullable=False)
    status = Column(String, default="active", nullable=False, index=True)  # active | closed
    
    # Conversation metadata
    last_message = Column(Text, nullable=True)  # Preview text of last message
    last_message_time = Column(DateTime, nullable=True)
    unread_count = Column(Integer, default=0, nullable=False)  # User messages not yet read by an admin
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ChatMessage.timestamp",
    )
    
    def __repr__(self):
        return f"<ChatConversation(id={self.id}, user={self.user_name}, status={self.status}, updated_at={self.updated_at})>"
