"""Core module for configuration and utilities."""

from omihorizn.core.config import settings
from omihorizn.core.database import Base, UTCDateTime, async_session_maker, get_session, utcnow

__all__ = [
    "settings",
    "Base",
    "UTCDateTime",
    "get_session",
    "async_session_maker",
    "utcnow",
]
