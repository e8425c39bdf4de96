"""Error taxonomy for the billing core.

Every service-level failure is raised as a subclass of ``BillingError``.
The HTTP layer maps ``status_code`` and ``code`` to the response; services
never raise ``HTTPException`` themselves.
"""

from typing import Any, Optional


class BillingError(Exception):
    """Base class for billing core errors."""

    status_code: int = 400
    code: str = "billing_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        """Serialize error for API responses."""
        body = {"detail": self.message, "code": self.code}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class ValidationError(BillingError):
    """Malformed or unsupported input."""

    status_code = 422
    code = "validation_error"


class NotFoundError(BillingError):
    """Missing subscription, payment or feature."""

    status_code = 404
    code = "not_found"


class ConflictError(BillingError):
    """Duplicate or invalid-state operation."""

    status_code = 409
    code = "conflict"


class InvalidTransitionError(ConflictError):
    """Subscription status change absent from the transition table."""

    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot transition subscription from {current} to {target}",
            current_status=current,
            target_status=target,
        )


class RetryLimitExceededError(ConflictError):
    """Payment retried more times than allowed."""

    code = "retry_limit_exceeded"


class QuotaExceededError(BillingError):
    """Feature usage limit reached.

    Not fatal for the caller: the expected reaction is an upsell.
    """

    status_code = 402
    code = "quota_exceeded"

    DEFAULT_UPGRADE_HINT = "Please upgrade your subscription for more usage"

    def __init__(
        self,
        feature_key: str,
        usage_limit: Optional[int] = None,
        upgrade_hint: Optional[str] = None,
    ):
        self.feature_key = feature_key
        self.usage_limit = usage_limit
        self.upgrade_hint = upgrade_hint or self.DEFAULT_UPGRADE_HINT
        super().__init__(
            "Feature usage limit reached",
            feature_key=feature_key,
            usage_limit=usage_limit,
            upgrade_hint=self.upgrade_hint,
        )


class ExternalGatewayError(BillingError):
    """Payment provider call failed or returned an error envelope."""

    status_code = 502
    code = "gateway_error"

    def __init__(self, message: str, provider_response: Optional[dict] = None):
        self.provider_response = provider_response
        super().__init__(message)


class SignatureError(BillingError):
    """Webhook authentication failure. Always rejected, never processed."""

    status_code = 400
    code = "invalid_signature"
