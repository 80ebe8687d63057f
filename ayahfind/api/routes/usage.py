"""
Usage tracking endpoints.

Callers are identified by bearer token when one is valid, otherwise by the
X-Device-Id header. A malformed token is treated as anonymous.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ayahfind.core.auth_dependency import (
    Identity,
    extract_device_id,
    get_db,
    optional_auth,
)
from ayahfind.core.errors import ValidationError
from ayahfind.schemas.usage import (
    SearchAllowanceResponse,
    UsageIncrementResponse,
    UsageStatsResponse,
)
from ayahfind.services import usage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/usage", tags=["Usage"])

DEVICE_ID_REQUIRED = "Device ID is required for anonymous users"


@router.get("/validate", response_model=SearchAllowanceResponse)
def validate_usage(
    identity: Optional[Identity] = Depends(optional_auth),
    device_id: Optional[str] = Depends(extract_device_id),
    db: Session = Depends(get_db)
):
    """Whether the caller may run another search right now."""
    if identity:
        allowance = usage_service.can_user_search(db, identity.user_id)
    elif device_id:
        allowance = usage_service.can_anonymous_search(db, device_id)
    else:
        return SearchAllowanceResponse(allowed=False, remaining=0, limit=0, reason=DEVICE_ID_REQUIRED)
    return SearchAllowanceResponse.model_validate(allowance.to_dict())


@router.post("/increment", response_model=UsageIncrementResponse)
def increment_usage(
    identity: Optional[Identity] = Depends(optional_auth),
    device_id: Optional[str] = Depends(extract_device_id),
    db: Session = Depends(get_db)
):
    if identity:
        usage_service.increment_user_usage(db, identity.user_id)
        stats = usage_service.get_user_usage_stats(db, identity.user_id)
    elif device_id:
        usage_service.increment_anonymous_usage(db, device_id)
        stats = usage_service.get_anonymous_usage_stats(db, device_id)
    else:
        raise ValidationError(DEVICE_ID_REQUIRED)

    return UsageIncrementResponse(
        message="Usage incremented successfully",
        usage=UsageStatsResponse.model_validate(stats.to_dict()),
    )


@router.get("/stats", response_model=UsageStatsResponse)
def usage_stats(
    identity: Optional[Identity] = Depends(optional_auth),
    device_id: Optional[str] = Depends(extract_device_id),
    db: Session = Depends(get_db)
):
    if identity:
        stats = usage_service.get_user_usage_stats(db, identity.user_id)
    elif device_id:
        stats = usage_service.get_anonymous_usage_stats(db, device_id)
    else:
        raise ValidationError(DEVICE_ID_REQUIRED)

    logger.debug(f"Usage stats requested: tier={stats.subscription_tier}, used={stats.used}")
    return UsageStatsResponse.model_validate(stats.to_dict())
