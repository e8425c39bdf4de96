"""Subscription state machine.

Status changes are validated against a closed transition table. A status
may transition to itself only where listed (``active -> active`` is a
renewal).
"""

from omihorizn.core.exceptions import InvalidTransitionError, ValidationError
from omihorizn.modules.billing.models import SubscriptionStatus


ALLOWED_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.ACTIVE: frozenset({
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.PAUSED,
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
    }),
    SubscriptionStatus.PAUSED: frozenset({
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.EXPIRED,
    }),
    SubscriptionStatus.EXPIRED: frozenset({SubscriptionStatus.ACTIVE}),
    # Re-subscription only, through a verified payment
    SubscriptionStatus.CANCELLED: frozenset({SubscriptionStatus.ACTIVE}),
}


def _as_status(value) -> SubscriptionStatus:
    try:
        return SubscriptionStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown subscription status: {value}", status=str(value))


def can_transition(current, target) -> bool:
    """Check whether the table allows ``current -> target``."""
    return _as_status(target) in ALLOWED_TRANSITIONS[_as_status(current)]


def validate_transition(current, target) -> SubscriptionStatus:
    """Return the target status or raise if the transition is not allowed.

    Raises:
        InvalidTransitionError: If the table has no such transition
        ValidationError: If either status is unknown
    """
    current_status = _as_status(current)
    target_status = _as_status(target)
    if target_status not in ALLOWED_TRANSITIONS[current_status]:
        raise InvalidTransitionError(current_status.value, target_status.value)
    return target_status
