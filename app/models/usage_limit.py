"""
Monthly analysis counter, one row per user.
"""
from sqlalchemy import Column, Integer, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


class UsageLimit(Base):
    __tablename__ = "usage_limits"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    monthly_total = Column(Integer, default=0, nullable=False)
    last_reset_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    user = relationship("User", back_populates="usage_limit")
    
    def __repr__(self):
        return f"<UsageLimit(user_id={self.user_id}, monthly_total={self.monthly_total}, last_reset_date={self.last_reset_date})>"
