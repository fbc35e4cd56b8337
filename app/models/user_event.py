"""
Model for user lifecycle events used by the admin analytics dashboard.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from datetime import datetime
from enum import Enum
from app.db.base import Base


class UserEventType(str, Enum):
    """Types of user events that can be tracked."""
    REGISTRATION = "registration"
    LOGIN = "login"
    TIER_CHANGE = "tier_change"  # old_value/new_value hold the tiers
    EMAIL_VERIFIED = "email_verified"
    PROMO_REDEEMED = "promo_redeemed"
    ANALYSIS = "analysis"  # new_value holds the analysis type


class UserEvent(Base):
    __tablename__ = "user_events"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Stored as plain strings so new event types need no enum migration
    event_type = Column(String, nullable=False, index=True)
    old_value = Column(String, nullable=True)
    new_value = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    
    def __repr__(self):
        return f"<UserEvent(id={self.id}, user_id={self.user_id}, type={self.event_type}, created_at={self.created_at})>"
