"""wallfetch - fetch wallpapers and manage a local wallpaper library.

Package structure:
    wallfetch/
    ├── cli.py              # Command-line interface
    ├── config.py           # YAML configuration
    ├── logging_utils.py    # Logging setup
    ├── core/               # Core business logic
    │   ├── models.py       # Data models (Wallpaper, ImageRecord, DownloadResult)
    │   ├── filter.py       # Resolution / aspect-ratio filter
    │   ├── downloader.py   # Concurrent download pipeline
    │   ├── fetcher.py      # Page-by-page fetch orchestration
    │   ├── maintenance.py  # Prune, dedupe, delete, cleanup
    │   └── preview.py      # Terminal previews and external viewers
    ├── storage/            # Data persistence
    │   └── database.py     # SQLite catalog
    └── api/                # External integrations
        └── wallhaven_api.py # Wallhaven search client
"""

from .core.models import DownloadResult, DownloadStatus, ImageRecord, SearchPage, Wallpaper
from .core.filter import FilterConfig, FilterResult, WallpaperFilter
from .core.downloader import DownloadDirectoryError, WallpaperDownloader
from .core.fetcher import FetchSummary, WallpaperFetcher
from .storage.database import CatalogError, DuplicateImageError, ImageNotFoundError, WallpaperDatabase
from .api.wallhaven_api import SearchParams, WallhavenAPI, WallhavenAPIError

__version__ = "1.0.0"

__all__ = [
    # Core
    "DownloadResult",
    "DownloadStatus",
    "ImageRecord",
    "SearchPage",
    "Wallpaper",
    "FilterConfig",
    "FilterResult",
    "WallpaperFilter",
    "DownloadDirectoryError",
    "WallpaperDownloader",
    "FetchSummary",
    "WallpaperFetcher",
    # Storage
    "CatalogError",
    "DuplicateImageError",
    "ImageNotFoundError",
    "WallpaperDatabase",
    # API
    "SearchParams",
    "WallhavenAPI",
    "WallhavenAPIError",
]
