"""Data models for wallpapers, catalog records and download results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Wallpaper:
    """A candidate image returned by a remote search."""

    id: str
    image_url: str  # direct download URL
    resolution: str  # "WIDTHxHEIGHT"
    tags: tuple[str, ...] = ()
    url: str = ""  # page URL on the source site
    short_url: str = ""
    purity: str = ""
    category: str = ""
    dimension_x: int = 0
    dimension_y: int = 0
    ratio: str = ""
    file_size: int = 0
    file_type: str = ""
    colors: tuple[str, ...] = ()
    views: int = 0
    favorites: int = 0
    created_at: str = ""
    thumbs: dict = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_api(cls, data: dict) -> "Wallpaper":
        """Build a wallpaper from one entry of the Wallhaven JSON payload."""
        tags = tuple(t.get("name", "") for t in data.get("tags") or [] if t.get("name"))
        return cls(
            id=str(data["id"]),
            image_url=data.get("path", ""),
            resolution=data.get("resolution", ""),
            tags=tags,
            url=data.get("url", ""),
            short_url=data.get("short_url", ""),
            purity=data.get("purity", ""),
            category=data.get("category", ""),
            dimension_x=int(data.get("dimension_x") or 0),
            dimension_y=int(data.get("dimension_y") or 0),
            ratio=str(data.get("ratio") or ""),
            file_size=int(data.get("file_size") or 0),
            file_type=data.get("file_type", ""),
            colors=tuple(data.get("colors") or ()),
            views=int(data.get("views") or 0),
            favorites=int(data.get("favorites") or 0),
            created_at=data.get("created_at", ""),
            thumbs=dict(data.get("thumbs") or {}),
        )


@dataclass
class SearchPage:
    """One page of search results plus pagination metadata."""

    wallpapers: list[Wallpaper]
    current_page: int = 1
    last_page: int = 1
    per_page: int = 0
    total: int = 0
    query: Optional[str] = None
    seed: Optional[str] = None

    @classmethod
    def from_api(cls, payload: dict) -> "SearchPage":
        meta = payload.get("meta") or {}
        # per_page comes back as a string
        per_page = meta.get("per_page") or 0
        return cls(
            wallpapers=[Wallpaper.from_api(item) for item in payload.get("data") or []],
            current_page=int(meta.get("current_page") or 1),
            last_page=int(meta.get("last_page") or 1),
            per_page=int(per_page),
            total=int(meta.get("total") or 0),
            query=meta.get("query") if isinstance(meta.get("query"), str) else None,
            seed=meta.get("seed"),
        )


@dataclass
class ImageRecord:
    """Represents one downloaded wallpaper stored in the catalog."""

    source: str
    source_id: str
    url: str
    local_path: str
    checksum: str  # hex SHA-256 of the file content
    tags: str = ""  # comma-joined
    resolution: str = ""
    file_size: int = 0  # bytes
    downloaded_at: Optional[datetime] = None
    favorite: bool = False
    id: Optional[int] = None  # assigned by the catalog

    @property
    def filename(self) -> str:
        return Path(self.local_path).name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "source_id": self.source_id,
            "url": self.url,
            "local_path": self.local_path,
            "checksum": self.checksum,
            "tags": self.tags,
            "resolution": self.resolution,
            "file_size": self.file_size,
            "downloaded_at": self.downloaded_at.isoformat() if self.downloaded_at else None,
            "favorite": self.favorite,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ImageRecord":
        downloaded_at = None
        if data.get("downloaded_at"):
            downloaded_at = datetime.fromisoformat(data["downloaded_at"])
        return cls(
            id=data.get("id"),
            source=data["source"],
            source_id=data["source_id"],
            url=data["url"],
            local_path=data["local_path"],
            checksum=data["checksum"],
            tags=data.get("tags") or "",
            resolution=data.get("resolution") or "",
            file_size=data.get("file_size") or 0,
            downloaded_at=downloaded_at,
            favorite=bool(data.get("favorite")),
        )


class DownloadStatus(str, Enum):
    """Terminal state of one candidate in the download pipeline."""

    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class DownloadResult:
    """Outcome of processing a single wallpaper."""

    wallpaper: Wallpaper
    status: DownloadStatus
    reason: str = ""
    local_path: Optional[str] = None
    checksum: Optional[str] = None
    file_size: int = 0

    @classmethod
    def downloaded(cls, wallpaper: Wallpaper, local_path: str, checksum: str, file_size: int) -> "DownloadResult":
        return cls(wallpaper, DownloadStatus.DOWNLOADED, local_path=local_path, checksum=checksum, file_size=file_size)

    @classmethod
    def skipped(cls, wallpaper: Wallpaper, reason: str, checksum: Optional[str] = None) -> "DownloadResult":
        return cls(wallpaper, DownloadStatus.SKIPPED, reason=reason, checksum=checksum)

    @classmethod
    def failed(cls, wallpaper: Wallpaper, reason: str) -> "DownloadResult":
        return cls(wallpaper, DownloadStatus.FAILED, reason=reason)

    @property
    def is_downloaded(self) -> bool:
        return self.status is DownloadStatus.DOWNLOADED

    @property
    def is_skipped(self) -> bool:
        return self.status is DownloadStatus.SKIPPED

    @property
    def is_failed(self) -> bool:
        return self.status is DownloadStatus.FAILED
