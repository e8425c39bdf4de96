"""FastAPI dependency gating metered endpoints on feature quota."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.database import get_session
from omihorizn.modules.auth.jwt import CurrentUser, get_current_user
from omihorizn.modules.usage.models import PremiumFeatureUsage
from omihorizn.modules.usage.service import UsageMeter


def require_feature(feature_key: str):
    """Build a dependency that consumes one unit of ``feature_key``.

    Quota exhaustion propagates as ``QuotaExceededError`` and is rendered
    as HTTP 402 by the application error handler.

    Usage::

        @router.post("/essays/review")
        async def review(usage=Depends(require_feature("Essay Review & Feedback"))):
            ...
    """

    async def dependency(
        current_user: CurrentUser = Depends(get_current_user),
        session: AsyncSession = Depends(get_session),
    ) -> PremiumFeatureUsage:
        meter = UsageMeter(session)
        return await meter.check_and_increment(current_user.id, feature_key)

    return dependency
