"""Tests for tier entitlement resolution and limit normalization."""

import pytest
from hypothesis import given, settings, strategies as st

from omihorizn.core.exceptions import ValidationError
from omihorizn.modules.entitlement.catalog import DEFAULT_FEATURE_CATALOG
from omihorizn.modules.entitlement.models import Tier, normalize_limit
from omihorizn.modules.entitlement.service import FeatureEntitlementResolver, normalize_tier


class TestNormalizeLimit:
    """Catalog limits: None and negatives are unlimited."""

    @given(raw=st.integers(max_value=-1))
    @settings(max_examples=50)
    def test_negative_limits_are_unlimited(self, raw: int) -> None:
        assert normalize_limit(raw) is None

    @given(raw=st.integers(min_value=0, max_value=10_000))
    @settings(max_examples=50)
    def test_non_negative_limits_are_kept(self, raw: int) -> None:
        assert normalize_limit(raw) == raw

    def test_none_is_unlimited(self) -> None:
        assert normalize_limit(None) is None


class TestNormalizeTier:

    @pytest.mark.parametrize("tier", [t.value for t in Tier])
    def test_known_tiers_pass_through(self, tier: str) -> None:
        assert normalize_tier(tier) == tier

    def test_basic_is_an_alias_for_premium(self) -> None:
        assert normalize_tier("basic") == Tier.PREMIUM.value

    @given(tier=st.text(min_size=1, max_size=20).filter(
        lambda t: t not in {"free", "premium", "professional", "basic"}
    ))
    @settings(max_examples=50)
    def test_unknown_tiers_are_rejected(self, tier: str) -> None:
        with pytest.raises(ValidationError):
            normalize_tier(tier)


class TestFeatureEntitlementResolver:

    @pytest.mark.asyncio
    async def test_seed_loads_full_catalog(self, session, seeded) -> None:
        assert seeded == len(DEFAULT_FEATURE_CATALOG)
        catalog = await FeatureEntitlementResolver(session).get_feature_catalog()
        assert len(catalog) == len(DEFAULT_FEATURE_CATALOG)

    @pytest.mark.asyncio
    async def test_seed_is_repeatable(self, session, seeded) -> None:
        resolver = FeatureEntitlementResolver(session)
        await resolver.seed_default_features()
        catalog = await resolver.get_feature_catalog()
        assert len(catalog) == len(DEFAULT_FEATURE_CATALOG)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tier", ["free", "premium", "professional"])
    async def test_tier_gets_exactly_its_accessible_features(self, session, seeded, tier) -> None:
        entitlements = await FeatureEntitlementResolver(session).get_features_for_tier(tier)

        expected = {f["name"] for f in DEFAULT_FEATURE_CATALOG if f[f"{tier}_access"]}
        assert {e.feature_key for e in entitlements} == expected

        limits = {f["name"]: f[f"{tier}_limit"] for f in DEFAULT_FEATURE_CATALOG}
        for entitlement in entitlements:
            assert entitlement.usage_limit == normalize_limit(limits[entitlement.feature_key])

    @pytest.mark.asyncio
    async def test_unlimited_features_have_no_limit(self, session, seeded) -> None:
        entitlements = await FeatureEntitlementResolver(session).get_features_for_tier("professional")
        by_key = {e.feature_key: e for e in entitlements}

        assert by_key["AI Document Generator"].usage_limit is None
        assert by_key["Personal Application Coach"].usage_limit == 12

    @pytest.mark.asyncio
    async def test_basic_alias_resolves_like_premium(self, session, seeded) -> None:
        resolver = FeatureEntitlementResolver(session)
        basic = await resolver.get_features_for_tier("basic")
        premium = await resolver.get_features_for_tier("premium")
        assert [e.model_dump() for e in basic] == [e.model_dump() for e in premium]

    @pytest.mark.asyncio
    async def test_invalid_tier_raises(self, session, seeded) -> None:
        with pytest.raises(ValidationError):
            await FeatureEntitlementResolver(session).get_features_for_tier("gold")

    @pytest.mark.asyncio
    async def test_catalog_lists_access_per_tier(self, session, seeded) -> None:
        catalog = await FeatureEntitlementResolver(session).get_feature_catalog()
        coach = next(f for f in catalog if f.name == "Personal Application Coach")

        assert coach.tiers["free"].access is False
        assert coach.tiers["premium"].access is False
        assert coach.tiers["professional"].access is True
        assert coach.tiers["professional"].limit == 12
