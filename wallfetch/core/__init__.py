"""Core business logic - filtering, downloading and collection maintenance."""

from .models import DownloadResult, DownloadStatus, ImageRecord, SearchPage, Wallpaper
from .filter import FilterConfig, WallpaperFilter
from .downloader import WallpaperDownloader
from .fetcher import WallpaperFetcher

__all__ = [
    "DownloadResult",
    "DownloadStatus",
    "ImageRecord",
    "SearchPage",
    "Wallpaper",
    "FilterConfig",
    "WallpaperFilter",
    "WallpaperDownloader",
    "WallpaperFetcher",
]
