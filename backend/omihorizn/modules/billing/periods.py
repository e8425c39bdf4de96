"""Billing period arithmetic."""

import calendar
from datetime import datetime

from omihorizn.core.exceptions import ValidationError
from omihorizn.modules.billing.models import BillingCycle


CYCLE_MONTHS = {
    BillingCycle.MONTHLY.value: 1,
    BillingCycle.ANNUAL.value: 12,
}


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month.

    Jan 31 + 1 month is Feb 28 (or 29 in a leap year).
    """
    total_months = value.month - 1 + months
    year = value.year + total_months // 12
    month = total_months % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def cycle_months(billing_cycle: str) -> int:
    """Number of calendar months in a billing cycle."""
    try:
        return CYCLE_MONTHS[billing_cycle]
    except KeyError:
        raise ValidationError(
            f"Invalid billing cycle: {billing_cycle}", billing_cycle=billing_cycle
        )


def advance_renewal_date(
    renewal_date: datetime, billing_cycle: str, now: datetime
) -> datetime:
    """Next renewal date after a successful payment.

    Counts one cycle from whichever is later of now and the current renewal
    date, so renewing early does not lose paid time and renewing late does
    not backdate the new period.
    """
    return add_months(max(now, renewal_date), cycle_months(billing_cycle))
