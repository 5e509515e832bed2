"""External API integrations - Wallhaven search client."""

from .wallhaven_api import SearchParams, WallhavenAPI, WallhavenAPIError

__all__ = ["SearchParams", "WallhavenAPI", "WallhavenAPIError"]
