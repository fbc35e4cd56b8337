"""
Model for counting free-trial analyses by visitors without an account.
Keyed by the client-generated X-Device-Id header.
"""
from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime
from app.db.base import Base


class AnonymousUsage(Base):
    __tablename__ = "anonymous_usage"

    device_id = Column(String(255), primary_key=True, nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    first_used_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_used_at = Column(DateTime, default=datetime.utcnow, nullable=False)
