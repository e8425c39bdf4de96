"""Usage metering module.

Per-user, per-feature quota counters.
"""

from omihorizn.modules.usage.models import PremiumFeatureUsage

__all__ = ["PremiumFeatureUsage"]
