"""
Database models module.

Imports every model so they are registered with SQLAlchemy's Base.metadata
before table creation and migrations.
"""
from ayahfind.db.models.user import User
from ayahfind.db.models.subscription import Subscription
from ayahfind.db.models.usage import UsageRecord
from ayahfind.db.models.auth_token import AuthToken
from ayahfind.db.models.recognition_history import RecognitionHistory

__all__ = [
    "User",
    "Subscription",
    "UsageRecord",
    "AuthToken",
    "RecognitionHistory",
]
