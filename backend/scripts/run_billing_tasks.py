"""Run billing background tasks manually.

Usage:
    cd backend
    python -m scripts.run_billing_tasks [reset|reminders|reconcile|expire]

Without an argument every job runs once, in that order.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from omihorizn.modules.billing.tasks import (
    expire_overdue_job,
    reconcile_external_sync_job,
    renewal_reminder_job,
    reset_usage_job,
)

JOBS = {
    "reset": reset_usage_job,
    "reminders": renewal_reminder_job,
    "reconcile": reconcile_external_sync_job,
    "expire": expire_overdue_job,
}


async def main(names: list[str]):
    """Run the selected billing jobs."""
    print("\n" + "=" * 60)
    print("Running Billing Background Tasks")
    print("=" * 60)

    for name in names:
        summary = await JOBS[name]()
        print(f"\n{name}:")
        for key, value in summary.items():
            print(f"  {key}: {value}")


if __name__ == "__main__":
    selected = sys.argv[1:] or list(JOBS)
    unknown = [name for name in selected if name not in JOBS]
    if unknown:
        print(f"Unknown job(s): {', '.join(unknown)}. Choose from: {', '.join(JOBS)}")
        sys.exit(1)
    asyncio.run(main(selected))
