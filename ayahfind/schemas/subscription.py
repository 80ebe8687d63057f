"""
Pydantic schemas for subscription endpoints.
"""
from pydantic import Field

from ayahfind.schemas.base import CamelModel


class SubscriptionSyncRequest(CamelModel):
    """RevenueCat customer id reported by the app after a purchase."""
    revenue_cat_customer_id: str = Field(..., description="RevenueCat app user id")


class SubscriptionSyncResponse(CamelModel):
    message: str
    user_id: int
    subscription_tier: str
