"""Seed the premium feature catalog.

Usage:
    cd backend
    python -m scripts.seed_premium_features
"""

import asyncio
import sys
from collections import Counter
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from omihorizn.core.database import async_session_maker
from omihorizn.modules.entitlement.catalog import DEFAULT_FEATURE_CATALOG
from omihorizn.modules.entitlement.service import FeatureEntitlementResolver


async def main():
    """Upsert the default catalog and print a per-tier summary."""
    print("\n" + "=" * 60)
    print("Seeding Premium Features")
    print("=" * 60)

    async with async_session_maker() as session:
        count = await FeatureEntitlementResolver(session).seed_default_features()

    print(f"\nSeeded {count} premium features")

    print("\nFeature Tier Summary:")
    for tier in ("free", "premium", "professional"):
        total = sum(1 for f in DEFAULT_FEATURE_CATALOG if f[f"{tier}_access"])
        print(f"  {tier.capitalize()}: {total} features")

    print("\nFeature Categories:")
    for category, total in sorted(Counter(f["category"] for f in DEFAULT_FEATURE_CATALOG).items()):
        print(f"  {category}: {total} features")


if __name__ == "__main__":
    asyncio.run(main())
