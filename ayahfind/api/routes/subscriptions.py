from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ayahfind.core.auth_dependency import Identity, authenticate_request, get_db
from ayahfind.schemas.subscription import SubscriptionSyncRequest, SubscriptionSyncResponse
from ayahfind.services import subscription_service

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.post("/sync", response_model=SubscriptionSyncResponse)
def sync_subscription(
    payload: SubscriptionSyncRequest,
    identity: Identity = Depends(authenticate_request),
    db: Session = Depends(get_db)
):
    """
    Record a purchase completed in the app.

    The user is elevated to premium immediately; the RevenueCat webhook
    confirms the purchase later.
    """
    user = subscription_service.sync_subscription(db, identity.user_id, payload.revenue_cat_customer_id)
    return SubscriptionSyncResponse(
        message="Subscription synced successfully",
        user_id=user.id,
        subscription_tier=user.subscription_tier,
    )
