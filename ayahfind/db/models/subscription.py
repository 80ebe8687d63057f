from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ayahfind.db.base import Base

STATUS_PENDING = "pending"      # synced by the client, awaiting webhook confirmation
STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"  # access kept until expires_at
STATUS_EXPIRED = "expired"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    revenuecat_customer_id = Column(String, nullable=True, index=True)
    product_id = Column(String, nullable=True)
    status = Column(String, default=STATUS_PENDING, nullable=False)

    pending_until = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="subscription")
