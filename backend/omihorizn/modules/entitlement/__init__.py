"""Feature entitlement module.

Maps subscription tiers to catalog features and usage limits.
"""

from omihorizn.modules.entitlement.models import PremiumFeature, Tier
from omihorizn.modules.entitlement.service import FeatureEntitlementResolver, normalize_tier

__all__ = [
    "PremiumFeature",
    "Tier",
    "FeatureEntitlementResolver",
    "normalize_tier",
]
