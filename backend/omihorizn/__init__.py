"""OmiHorizn subscription, billing and entitlement service."""
