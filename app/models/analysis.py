"""
Model for storing analysis results (chat, message, vent).
Rows are retained for 90 days; pruning happens outside this service.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


ANALYSIS_TYPES = ("chat", "message", "vent")


class Analysis(Base):
    __tablename__ = "analyses"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)  # chat | message | vent
    content = Column(Text, nullable=False)  # Raw submitted text
    result = Column(JSON, nullable=False)  # Shape depends on type
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    
    user = relationship("User", back_populates="analyses")
    
    def __repr__(self):
        return f"<Analysis(id={self.id}, user_id={self.user_id}, type={self.type}, created_at={self.created_at})>"
