from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from ayahfind.db.base import Base

SUBJECT_USER = "user"
SUBJECT_DEVICE = "device"


class UsageRecord(Base):
    """
    Search counter for one subject (a user id or an anonymous device id).

    A single row per subject is reused across windows: once window_ends_at has
    passed, the stored count no longer applies and the next increment restarts it.
    """
    __tablename__ = "usage_records"

    id = Column(Integer, primary_key=True, index=True)
    subject_type = Column(String(16), nullable=False)  # "user" | "device"
    subject_id = Column(String, nullable=False)
    search_count = Column(Integer, default=0, nullable=False)
    window_ends_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("subject_type", "subject_id", name="uq_usage_subject"),
    )
