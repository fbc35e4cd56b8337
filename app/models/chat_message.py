"""
Model for support chat messages (visitor and admin).
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    
    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("chat_conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)  # True if sent by support staff
    sender_name = Column(String, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    read = Column(Boolean, default=False, nullable=False)
    
    conversation = relationship("ChatConversation", back_populates="messages")
    
    def __repr__(self):
        direction = "admin" if self.is_admin else "user"
        return f"<ChatMessage(id={self.id}, conv_id={self.conversation_id}, {direction}, text={self.message[:30]}...)>"
