"""API router for subscriptions."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from omihorizn.core.database import get_session
from omihorizn.core.exceptions import NotFoundError
from omihorizn.modules.auth.jwt import CurrentUser, get_current_user
from omihorizn.modules.billing.models import Subscription
from omihorizn.modules.billing.schemas import (
    CancelRequest,
    ProrationResponse,
    SubscriptionCreate,
    SubscriptionHistoryResponse,
    SubscriptionResponse,
    SubscriptionUpdate,
    SubscriptionUpdateResponse,
    SubscriptionWithFeaturesResponse,
)
from omihorizn.modules.billing.service import SubscriptionLedger
from omihorizn.modules.entitlement.schemas import CatalogFeatureResponse
from omihorizn.modules.entitlement.service import FeatureEntitlementResolver

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def get_ledger(session: AsyncSession = Depends(get_session)) -> SubscriptionLedger:
    return SubscriptionLedger(session)


async def _owned_subscription(
    ledger: SubscriptionLedger, subscription_id: uuid.UUID, user: CurrentUser
) -> Subscription:
    subscription = await ledger.get_by_id(subscription_id)
    if subscription.user_id != user.id and not user.is_admin:
        raise NotFoundError("Subscription not found", subscription_id=str(subscription_id))
    return subscription


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    """Create the caller's subscription and provision feature quotas."""
    return await ledger.create(
        user_id=current_user.id,
        tier=data.tier,
        billing_cycle=data.billing_cycle,
        amount=data.amount,
        currency=data.currency,
        billing_email=data.billing_email or current_user.email,
        billing_name=data.billing_name or current_user.name,
        promo_code=data.promo_code,
        discount_percentage=data.discount_percentage,
    )


@router.get("/features", response_model=list[CatalogFeatureResponse])
async def get_feature_catalog(session: AsyncSession = Depends(get_session)):
    """All features with access and limits per tier."""
    resolver = FeatureEntitlementResolver(session)
    return await resolver.get_feature_catalog()


@router.get("/me", response_model=SubscriptionWithFeaturesResponse)
async def get_my_subscription(
    current_user: CurrentUser = Depends(get_current_user),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    """The caller's subscription with remaining quota per feature."""
    subscription = await ledger.get_subscription(current_user.id)
    features = await ledger.usage_meter.get_feature_summary(current_user.id)
    return SubscriptionWithFeaturesResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        features=features,
    )


@router.get("/history", response_model=SubscriptionHistoryResponse)
async def get_subscription_history(
    current_user: CurrentUser = Depends(get_current_user),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    return await ledger.get_subscription_history(current_user.id)


@router.put("/{subscription_id}", response_model=SubscriptionUpdateResponse)
async def update_subscription(
    subscription_id: uuid.UUID,
    data: SubscriptionUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    """Change plan or billing details. A tier change resets feature usage."""
    await _owned_subscription(ledger, subscription_id, current_user)
    result = await ledger.update(subscription_id, data.model_dump(exclude_unset=True))
    return SubscriptionUpdateResponse(
        subscription=SubscriptionResponse.model_validate(result.subscription),
        proration=ProrationResponse(**result.proration.to_dict()) if result.proration else None,
        usage_reset=result.usage_reset,
    )


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: uuid.UUID,
    data: CancelRequest,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    await _owned_subscription(ledger, subscription_id, current_user)
    return await ledger.cancel(subscription_id, reason=data.reason, feedback=data.feedback)


@router.post("/{subscription_id}/pause", response_model=SubscriptionResponse)
async def pause_subscription(
    subscription_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    await _owned_subscription(ledger, subscription_id, current_user)
    return await ledger.pause(subscription_id)


@router.post("/{subscription_id}/resume", response_model=SubscriptionResponse)
async def resume_subscription(
    subscription_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    ledger: SubscriptionLedger = Depends(get_ledger),
):
    """Resume a paused subscription; the renewal date moves by the paused time."""
    await _owned_subscription(ledger, subscription_id, current_user)
    return await ledger.resume(subscription_id)
