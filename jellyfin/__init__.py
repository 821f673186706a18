"""
jellyfin: Jellyfin host adapter for StrmExtract.

Public API:
    JellyfinClient           -- REST client (item source + refresher)
    JellyfinConnectionError  -- server unreachable or timed out
    JellyfinRequestError     -- server answered with an error status
"""

from jellyfin.client import (
    JellyfinClient,
    JellyfinConnectionError,
    JellyfinRequestError,
)

__all__ = [
    "JellyfinClient",
    "JellyfinConnectionError",
    "JellyfinRequestError",
]
