from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ayahfind.db.base import Base

TIER_FREE = "free"
TIER_PREMIUM = "premium"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)  # stored lower-case
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    subscription_tier = Column(String, default=TIER_FREE, nullable=False)  # free | premium
    refresh_token_hash = Column(String, nullable=True)  # digest of the only valid refresh token
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    subscription = relationship("Subscription", back_populates="user", uselist=False)

    @property
    def is_premium(self) -> bool:
        return self.subscription_tier == TIER_PREMIUM
