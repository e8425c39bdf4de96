"""Plan change proration.

Pure arithmetic, no I/O. The result is informational: nothing is charged
or refunded automatically.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from omihorizn.core.config import settings


SECONDS_PER_DAY = 86400


@dataclass
class ProrationResult:
    """Prorated delta for a plan change.

    ``amount`` is in minor currency units. Positive means an additional
    charge is owed, negative means a credit.
    """
    amount: float
    days_remaining: float
    old_amount: int
    new_amount: int

    @property
    def is_charge(self) -> bool:
        return self.amount > 0

    @property
    def is_credit(self) -> bool:
        return self.amount < 0

    @property
    def rounded_amount(self) -> int:
        return int(round(self.amount))

    def to_dict(self) -> dict:
        return {
            "amount": self.rounded_amount,
            "days_remaining": round(self.days_remaining, 2),
            "old_amount": self.old_amount,
            "new_amount": self.new_amount,
        }


def compute(
    old_amount: int,
    new_amount: int,
    renewal_date: datetime,
    now: datetime,
    days_basis: Optional[int] = None,
) -> ProrationResult:
    """Compute the prorated delta of moving from one price to another.

    ``proration = (new - old) * (days_remaining / days_basis)``.
    ``days_remaining`` is fractional and is not floored at zero, so an
    overdue subscription yields an inverted sign.

    Args:
        old_amount: Current price in minor units
        new_amount: New price in minor units
        renewal_date: End of the current period
        now: Reference time
        days_basis: Days in a proration period (defaults to PRORATION_DAYS_BASIS)
    """
    if days_basis is None:
        days_basis = settings.PRORATION_DAYS_BASIS
    days_remaining = (renewal_date - now).total_seconds() / SECONDS_PER_DAY
    amount = (new_amount - old_amount) * (days_remaining / days_basis)
    return ProrationResult(
        amount=amount,
        days_remaining=days_remaining,
        old_amount=old_amount,
        new_amount=new_amount,
    )
