"""Identity module.

Validates bearer tokens issued by the identity service. Issuing tokens is
out of scope here; ``create_access_token`` exists for service-to-service
calls and tests.
"""

from omihorizn.modules.auth.jwt import (
    CurrentUser,
    create_access_token,
    get_current_user,
    require_admin,
)

__all__ = [
    "CurrentUser",
    "create_access_token",
    "get_current_user",
    "require_admin",
]
