from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base

class User(Base):
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)  # Stored lowercased
    hashed_password = Column(String, nullable=False)
    tier = Column(String, default="free", nullable=False)  # free | personal | pro | instant
    
    # Email verification
    email_verified = Column(Boolean, default=False, nullable=False)
    verification_code = Column(String, nullable=True)
    verification_code_expires = Column(DateTime, nullable=True)
    
    # Password reset
    password_reset_token = Column(String, nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)
    
    is_admin = Column(Boolean, default=False, nullable=False)
    
    # Discounts granted by admins or promo codes
    discount_percentage = Column(Integer, default=0, nullable=False)  # 0-100
    discount_expiry_date = Column(DateTime, nullable=True)
    
    country = Column(String, nullable=True)
    referral_code = Column(String, nullable=True)
    referred_by = Column(String, nullable=True)
    
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())
    
    analyses = relationship("Analysis", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    usage_limit = relationship("UsageLimit", back_populates="user", uselist=False, cascade="all, delete-orphan", passive_deletes=True)
    
    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, tier={self.tier})>"
