"""
Tier-based search limits.

Single source of truth for daily search quotas per tier.
None means unlimited.
"""
from typing import Dict, Optional

from ayahfind.core.config import ANONYMOUS_DAILY_SEARCHES, FREE_DAILY_SEARCHES
from ayahfind.db.models.user import TIER_FREE, TIER_PREMIUM

TIER_ANONYMOUS = "anonymous"

# Searches per daily window
SEARCH_LIMITS: Dict[str, Optional[int]] = {
    TIER_ANONYMOUS: ANONYMOUS_DAILY_SEARCHES,
    TIER_FREE: FREE_DAILY_SEARCHES,
    TIER_PREMIUM: None,  # Unlimited
}

LIMIT_REACHED_REASONS: Dict[str, str] = {
    TIER_ANONYMOUS: (
        f"Daily limit reached. Sign in for {FREE_DAILY_SEARCHES} searches per day "
        "or upgrade to Premium for unlimited searches!"
    ),
    TIER_FREE: "Daily limit reached. Upgrade to Premium for unlimited searches!",
}


def get_search_limit(tier: str) -> Optional[int]:
    """
    Get the daily search limit for a tier.

    Unknown tiers get the free limit.
    """
    tier = tier.lower() if tier else TIER_FREE
    if tier not in SEARCH_LIMITS:
        tier = TIER_FREE
    return SEARCH_LIMITS[tier]


def limit_reached_reason(tier: str) -> str:
    return LIMIT_REACHED_REASONS.get(tier, LIMIT_REACHED_REASONS[TIER_FREE])
