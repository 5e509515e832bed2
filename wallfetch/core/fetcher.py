"""Page through search results until enough new wallpapers are downloaded."""

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from .downloader import WallpaperDownloader
from .filter import WallpaperFilter
from .models import DownloadResult
from ..api.wallhaven_api import SearchParams, WallhavenAPI

logger = logging.getLogger(__name__)


@dataclass
class FetchSummary:
    """Totals for one fetch run."""

    target: int
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    pages_processed: int = 0
    total_available: int = 0
    results: list[DownloadResult] = field(default_factory=list)

    @property
    def target_reached(self) -> bool:
        return self.downloaded >= self.target

    def add(self, results: list[DownloadResult]) -> None:
        self.results.extend(results)
        for result in results:
            if result.is_downloaded:
                self.downloaded += 1
            elif result.is_skipped:
                self.skipped += 1
            else:
                self.failed += 1

    def __str__(self) -> str:
        return (
            f"Target: {self.target}\n"
            f"Downloaded: {self.downloaded}\n"
            f"Skipped: {self.skipped}\n"
            f"Failed: {self.failed}\n"
            f"Pages processed: {self.pages_processed}"
        )


class WallpaperFetcher:
    """Drives the download pipeline one search page at a time."""

    def __init__(
        self,
        api: WallhavenAPI,
        downloader: WallpaperDownloader,
        wallpaper_filter: Optional[WallpaperFilter] = None,
    ):
        self.api = api
        self.downloader = downloader
        self.wallpaper_filter = wallpaper_filter

    def fetch(
        self,
        params: SearchParams,
        limit: int,
        cancel_event: Optional[threading.Event] = None,
        on_page: Optional[Callable[[int, list[DownloadResult]], None]] = None,
        progress: bool = False,
    ) -> FetchSummary:
        """Download until ``limit`` new wallpapers are on disk or results run out.

        Args:
            params: Search parameters; ``params.page`` is the first page fetched
            limit: Number of newly downloaded wallpapers wanted
            cancel_event: Stops paging and aborts the current batch when set
            on_page: Called with (page number, results) after each page

        Raises:
            WallhavenAPIError: If a search request fails
            DownloadDirectoryError: If the download directory can't be created
        """
        summary = FetchSummary(target=limit)
        page = max(params.page, 1)
        last_page = page

        while summary.downloaded < limit and page <= last_page:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Fetch cancelled before page %d", page)
                break

            result_page = self.api.search(replace(params, page=page))
            if summary.pages_processed == 0:
                last_page = result_page.last_page
                summary.total_available = result_page.total

            if not result_page.wallpapers:
                logger.info("No more wallpapers available on page %d", page)
                break

            results = self.downloader.download_wallpapers(
                result_page.wallpapers,
                self.wallpaper_filter,
                cancel_event=cancel_event,
                progress=progress,
            )
            summary.add(results)
            summary.pages_processed += 1
            if on_page is not None:
                on_page(page, results)

            page += 1

        return summary
