"""API router for feature usage."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.database import get_session
from omihorizn.modules.auth.jwt import CurrentUser, get_current_user
from omihorizn.modules.usage.schemas import FeatureSummaryItem, UsageHistoryResponse
from omihorizn.modules.usage.service import MAX_PAGE_SIZE, UsageMeter

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("/history", response_model=UsageHistoryResponse)
async def get_usage_history(
    feature: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Get the caller's feature usage, most recently used first."""
    meter = UsageMeter(session)
    return await meter.get_usage_history(current_user.id, feature, page, page_size)


@router.get("/summary", response_model=list[FeatureSummaryItem])
async def get_usage_summary(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Remaining quota per feature for the caller."""
    meter = UsageMeter(session)
    return await meter.get_feature_summary(current_user.id)
