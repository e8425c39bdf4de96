"""Tests for quota enforcement, provisioning and usage history."""

import asyncio
import uuid
from datetime import timedelta

import pytest

from omihorizn.core.exceptions import NotFoundError, QuotaExceededError, ValidationError
from omihorizn.modules.entitlement.service import FeatureEntitlementResolver
from omihorizn.modules.usage.repository import UsageRepository
from omihorizn.modules.usage.service import UsageMeter

FREE_ONE_PER_MONTH = "AI Document Generator"
PREMIUM_ONLY = "University AI Advisor"


class TestCheckAndIncrement:

    @pytest.mark.asyncio
    async def test_free_limit_of_one_allows_exactly_one_use(
        self, session, seeded, ledger, user_id
    ) -> None:
        await ledger.create(user_id, tier="free")
        meter = UsageMeter(session)

        usage = await meter.check_and_increment(user_id, FREE_ONE_PER_MONTH)
        assert usage.usage_count == 1
        assert usage.last_used_at is not None

        with pytest.raises(QuotaExceededError) as exc_info:
            await meter.check_and_increment(user_id, FREE_ONE_PER_MONTH)

        error = exc_info.value
        assert error.status_code == 402
        assert error.feature_key == FREE_ONE_PER_MONTH
        assert error.usage_limit == 1
        assert error.upgrade_hint

        row = await UsageRepository(session).get_for_feature(user_id, FREE_ONE_PER_MONTH)
        await session.refresh(row)
        assert row.usage_count == 1

    @pytest.mark.asyncio
    async def test_unlimited_feature_never_rejects(self, session, seeded, ledger, user_id) -> None:
        await ledger.create(user_id, tier="professional")
        meter = UsageMeter(session)

        for _ in range(25):
            usage = await meter.check_and_increment(user_id, FREE_ONE_PER_MONTH)
        assert usage.usage_count == 25
        assert usage.usage_limit is None

    @pytest.mark.asyncio
    async def test_feature_outside_tier_is_not_found(self, session, seeded, ledger, user_id) -> None:
        await ledger.create(user_id, tier="free")

        with pytest.raises(NotFoundError):
            await UsageMeter(session).check_and_increment(user_id, PREMIUM_ONLY)

    @pytest.mark.asyncio
    async def test_user_without_subscription_is_not_found(self, session, seeded) -> None:
        with pytest.raises(NotFoundError):
            await UsageMeter(session).check_and_increment(uuid.uuid4(), FREE_ONE_PER_MONTH)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("callers", [6, 12])
    async def test_concurrent_calls_never_exceed_limit(
        self, session, session_factory, seeded, ledger, user_id, callers
    ) -> None:
        # Essay Review & Feedback allows 4 uses on premium
        feature = "Essay Review & Feedback"
        await ledger.create(user_id, tier="premium", amount=2499)

        async def attempt() -> bool:
            async with session_factory() as own_session:
                try:
                    await UsageMeter(own_session).check_and_increment(user_id, feature)
                    return True
                except QuotaExceededError:
                    return False

        results = await asyncio.gather(*(attempt() for _ in range(callers)))

        assert sum(results) == 4
        row = await UsageRepository(session).get_for_feature(user_id, feature)
        await session.refresh(row)
        assert row.usage_count == 4


class TestProvisioning:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tier", ["premium", "professional"])
    async def test_rows_match_tier_entitlements(self, session, seeded, ledger, user_id, tier) -> None:
        await ledger.create(user_id, tier=tier, amount=2499)

        rows = await UsageRepository(session).get_all_for_user(user_id)
        entitlements = await FeatureEntitlementResolver(session).get_features_for_tier(tier)

        assert {(r.feature_id, r.usage_limit) for r in rows} == {
            (e.feature_id, e.usage_limit) for e in entitlements
        }
        assert all(r.usage_count == 0 for r in rows)

    @pytest.mark.asyncio
    async def test_reset_window_is_thirty_days(self, session, seeded, user_id, now) -> None:
        rows = await UsageMeter(session).provision(user_id, "free", now=now)

        assert rows
        assert all(r.reset_date == now + timedelta(days=30) for r in rows)

    @pytest.mark.asyncio
    async def test_reprovision_replaces_previous_rows(self, session, seeded, user_id, now) -> None:
        meter = UsageMeter(session)
        await meter.provision(user_id, "professional", now=now)
        await meter.provision(user_id, "free", now=now)

        rows = await UsageRepository(session).get_all_for_user(user_id)
        free = await FeatureEntitlementResolver(session).get_features_for_tier("free")
        assert sorted(r.feature_key for r in rows) == sorted(e.feature_key for e in free)


class TestUsageHistory:

    @pytest.mark.asyncio
    async def test_most_recently_used_first(self, session, seeded, ledger, user_id) -> None:
        await ledger.create(user_id, tier="free")
        meter = UsageMeter(session)
        await meter.check_and_increment(user_id, "Program Matching Engine")
        await meter.check_and_increment(user_id, "Country Comparison Tool")

        history = await meter.get_usage_history(user_id, page=1, page_size=50)

        assert history.total == len(history.items)
        assert history.items[0].feature_key == "Country Comparison Tool"
        assert history.items[1].feature_key == "Program Matching Engine"
        unused = [item.feature_key for item in history.items[2:]]
        assert unused == sorted(unused)
        assert all(item.last_used_at is None for item in history.items[2:])

    @pytest.mark.asyncio
    async def test_filter_and_pagination(self, session, seeded, ledger, user_id) -> None:
        await ledger.create(user_id, tier="free")
        meter = UsageMeter(session)

        filtered = await meter.get_usage_history(user_id, feature=FREE_ONE_PER_MONTH)
        assert filtered.total == 1
        assert filtered.items[0].feature_key == FREE_ONE_PER_MONTH

        first = await meter.get_usage_history(user_id, page=1, page_size=2)
        second = await meter.get_usage_history(user_id, page=2, page_size=2)
        assert len(first.items) == 2
        assert {i.id for i in first.items}.isdisjoint({i.id for i in second.items})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page,page_size", [(0, 20), (1, 0), (1, 101)])
    async def test_invalid_paging_is_rejected(self, session, user_id, page, page_size) -> None:
        with pytest.raises(ValidationError):
            await UsageMeter(session).get_usage_history(user_id, page=page, page_size=page_size)

    @pytest.mark.asyncio
    async def test_summary_reports_remaining_quota(
        self, session, seeded, ledger, user_id, now
    ) -> None:
        await ledger.create(user_id, tier="free", now=now)
        meter = UsageMeter(session)
        await meter.check_and_increment(user_id, "Document Templates Library")

        summary = {item.feature_key: item for item in await meter.get_feature_summary(user_id, now=now)}

        templates = summary["Document Templates Library"]
        assert templates.usage_limit == 5
        assert templates.remaining == 4
        assert templates.days_until_reset == 30
        assert summary["Email Support"].remaining is None
