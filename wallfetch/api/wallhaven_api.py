"""Wallhaven search API client.

Wraps the public REST API documented at https://wallhaven.cc/help/api.
Requests are unauthenticated unless an API key is supplied, in which case it
is sent as the ``apikey`` query parameter.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests

from ..core.models import SearchPage, Wallpaper

logger = logging.getLogger(__name__)

BASE_URL = "https://wallhaven.cc/api/v1"
DEFAULT_TIMEOUT = 30.0

CATEGORY_NAMES = ("general", "anime", "people")
PURITY_NAMES = ("sfw", "sketchy", "nsfw")

_FLAGS_RE = re.compile(r"[01]{3}")


class WallhavenAPIError(Exception):
    """Raised when the Wallhaven API returns an error."""
    pass


@dataclass
class SearchParams:
    """Query parameters for ``/search``. Empty values are not sent."""

    query: str = ""
    categories: str = ""  # "general,anime" or flags like "110"
    purity: str = ""  # "sfw,sketchy" or flags like "110"
    sorting: str = ""  # date_added, relevance, random, views, favorites, toplist
    order: str = ""  # desc, asc
    top_range: str = ""  # 1d, 3d, 1w, 1M, 3M, 6M, 1y
    at_least: str = ""  # minimum resolution, e.g. 1920x1080
    ratios: str = ""  # e.g. 16x9,21x9
    colors: str = ""
    page: int = 1
    seed: str = ""


def to_flags(value: str, names: tuple[str, ...]) -> str:
    """Convert a comma-separated list of names into Wallhaven's bit flags.

    >>> to_flags("general,people", CATEGORY_NAMES)
    '101'

    Values that are already flags are returned unchanged; unknown names are ignored.
    """
    value = value.strip()
    if _FLAGS_RE.fullmatch(value):
        return value
    selected = {part.strip().lower() for part in value.split(",")}
    return "".join("1" if name in selected else "0" for name in names)


class WallhavenAPI:
    """Client for the Wallhaven search API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the API client.

        Args:
            api_key: Optional Wallhaven API key (needed for NSFW results)
            base_url: API root, without trailing slash
            timeout: Request timeout in seconds
            session: HTTP session to use; a new one is created if omitted
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_query(self, params: SearchParams) -> dict[str, str]:
        """Translate SearchParams into the query string dict sent to the API."""
        query: dict[str, str] = {}
        if params.query:
            query["q"] = params.query
        if params.categories:
            query["categories"] = to_flags(params.categories, CATEGORY_NAMES)
        if params.purity:
            query["purity"] = to_flags(params.purity, PURITY_NAMES)
        if params.sorting:
            query["sorting"] = params.sorting
        if params.order:
            query["order"] = params.order
        if params.top_range:
            query["topRange"] = params.top_range
        if params.at_least:
            query["atleast"] = params.at_least
        if params.ratios:
            query["ratios"] = params.ratios
        if params.colors:
            query["colors"] = params.colors
        if params.page and params.page > 0:
            query["page"] = str(params.page)
        if params.seed:
            query["seed"] = params.seed
        if self.api_key:
            query["apikey"] = self.api_key
        return query

    def _get_json(self, url: str, query: dict) -> dict:
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise WallhavenAPIError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise WallhavenAPIError("API rate limit exceeded (429), try again later")
        if response.status_code != 200:
            raise WallhavenAPIError(f"API request failed with status {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise WallhavenAPIError(f"Invalid JSON in API response: {e}") from e

    def search(self, params: SearchParams) -> SearchPage:
        """Search wallpapers and return one page of results.

        Raises:
            WallhavenAPIError: If the request fails or the response can't be decoded
        """
        query = self.build_query(params)
        logger.debug("Searching page %s with %s", params.page, {k: v for k, v in query.items() if k != "apikey"})
        payload = self._get_json(f"{self.base_url}/search", query)
        try:
            return SearchPage.from_api(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise WallhavenAPIError(f"Unexpected search response: {e}") from e

    def get_wallpaper(self, wallpaper_id: str) -> Wallpaper:
        """Fetch full details (including tags) for a single wallpaper."""
        query = {"apikey": self.api_key} if self.api_key else {}
        payload = self._get_json(f"{self.base_url}/w/{wallpaper_id}", query)
        try:
            return Wallpaper.from_api(payload["data"])
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise WallhavenAPIError(f"Unexpected wallpaper response: {e}") from e
