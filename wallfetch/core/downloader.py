"""Concurrent download pipeline with checksum-based de-duplication.

Each wallpaper goes through the same steps independently:

    filter -> source-id check -> HTTP GET -> stream to temp file + SHA-256
    -> checksum check -> install under final name -> catalog insert

The existence checks are advisory and workers take no locks of their own.
The catalog's unique keys are the final word: a lost insert race is reported
as a skip and the loser's installed file is removed again, unless another
worker has replaced it or a record now owns the name.
"""

import hashlib
import logging
import os
import shutil
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm

from .filter import WallpaperFilter
from .models import DownloadResult, ImageRecord, Wallpaper
from ..storage.database import CatalogError, DuplicateImageError, WallpaperDatabase

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "wallhaven"
DEFAULT_EXTENSION = ".jpg"
DEFAULT_TIMEOUT = 60.0
CHUNK_SIZE = 64 * 1024

REASON_EXISTS = "already exists"
REASON_DUPLICATE = "duplicate content"
REASON_CANCELLED = "cancelled"


class DownloadDirectoryError(Exception):
    """Raised when the destination directory cannot be created."""
    pass


class DownloadCancelled(Exception):
    pass


class WallpaperDownloader:
    """Downloads batches of wallpapers with a fixed-size worker pool."""

    def __init__(
        self,
        download_dir: str | Path,
        db: WallpaperDatabase,
        max_concurrent: int = 5,
        source: str = DEFAULT_SOURCE,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the downloader.

        Args:
            download_dir: Directory the wallpapers are installed into
            db: Catalog shared by all workers
            max_concurrent: Number of worker threads
            source: Source name recorded in the catalog and used in filenames
            session: HTTP session; a new one is created if omitted
            timeout: Per-request timeout in seconds
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.download_dir = Path(download_dir)
        self.db = db
        self.max_concurrent = max_concurrent
        self.source = source
        self.session = session or requests.Session()
        self.timeout = timeout

    def download_wallpapers(
        self,
        wallpapers: list[Wallpaper],
        wallpaper_filter: Optional[WallpaperFilter] = None,
        cancel_event: Optional[threading.Event] = None,
        progress: bool = False,
    ) -> list[DownloadResult]:
        """Download a batch concurrently.

        Returns one result per wallpaper, in completion order, once every item
        has reached a terminal state.

        Raises:
            DownloadDirectoryError: If the destination directory can't be created
        """
        try:
            self.download_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadDirectoryError(f"failed to create download directory: {e}") from e

        if not wallpapers:
            return []

        results = []
        with ThreadPoolExecutor(max_workers=self.max_concurrent, thread_name_prefix="wallfetch") as pool:
            futures = [
                pool.submit(self.download_wallpaper, wallpaper, wallpaper_filter, cancel_event)
                for wallpaper in wallpapers
            ]
            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Downloading",
                disable=not progress,
                leave=False,
            ):
                results.append(future.result())
        return results

    def download_wallpaper(
        self,
        wallpaper: Wallpaper,
        wallpaper_filter: Optional[WallpaperFilter] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DownloadResult:
        """Run one wallpaper through the pipeline. Never raises."""
        try:
            result = self._process(wallpaper, wallpaper_filter, cancel_event)
        except Exception as e:
            logger.exception("Unexpected error while processing %s", wallpaper.id)
            result = DownloadResult.failed(wallpaper, f"unexpected error: {e}")
        logger.debug("%s -> %s %s", wallpaper.id, result.status.value, result.reason)
        return result

    def generate_filename(self, wallpaper: Wallpaper) -> str:
        """``<source>-<id><ext>``, extension taken from the download URL."""
        ext = os.path.splitext(urlparse(wallpaper.image_url).path)[1]
        if not ext:
            ext = DEFAULT_EXTENSION
        return f"{self.source}-{wallpaper.id}{ext}"

    @staticmethod
    def extract_tags(wallpaper: Wallpaper) -> str:
        return ",".join(wallpaper.tags)

    def _process(
        self,
        wallpaper: Wallpaper,
        wallpaper_filter: Optional[WallpaperFilter],
        cancel_event: Optional[threading.Event],
    ) -> DownloadResult:
        if cancel_event is not None and cancel_event.is_set():
            return DownloadResult.failed(wallpaper, REASON_CANCELLED)

        if wallpaper_filter is not None:
            verdict = wallpaper_filter.validate(wallpaper.resolution)
            if not verdict.passed:
                return DownloadResult.skipped(wallpaper, f"filtered: {verdict.reason}")

        try:
            if self.db.exists_by_source_id(self.source, wallpaper.id):
                return DownloadResult.skipped(wallpaper, REASON_EXISTS)
        except CatalogError as e:
            return DownloadResult.failed(wallpaper, f"database check failed: {e}")

        final_path = self.download_dir / self.generate_filename(wallpaper)

        try:
            response = self.session.get(wallpaper.image_url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            return DownloadResult.failed(wallpaper, f"failed to download: {e}")

        with response:
            if response.status_code != 200:
                return DownloadResult.failed(
                    wallpaper, f"download failed with status {response.status_code}"
                )
            try:
                with self._temporary_file() as tmp_path:
                    return self._store(wallpaper, response, tmp_path, final_path, cancel_event)
            except OSError as e:
                return DownloadResult.failed(wallpaper, f"failed to create temp file: {e}")

    @contextmanager
    def _temporary_file(self) -> Iterator[Path]:
        """A uniquely named file in the download directory, removed on exit."""
        fd, name = tempfile.mkstemp(prefix="wallfetch_", suffix=".tmp", dir=self.download_dir)
        os.close(fd)
        tmp_path = Path(name)
        try:
            yield tmp_path
        finally:
            tmp_path.unlink(missing_ok=True)

    def _store(
        self,
        wallpaper: Wallpaper,
        response,
        tmp_path: Path,
        final_path: Path,
        cancel_event: Optional[threading.Event],
    ) -> DownloadResult:
        try:
            checksum, size = self._stream_to_file(response, tmp_path, cancel_event)
        except DownloadCancelled:
            return DownloadResult.failed(wallpaper, REASON_CANCELLED)
        except (OSError, requests.RequestException) as e:
            return DownloadResult.failed(wallpaper, f"failed to write file: {e}")

        try:
            if self.db.exists_by_checksum(checksum):
                return DownloadResult.skipped(wallpaper, REASON_DUPLICATE, checksum=checksum)
        except CatalogError as e:
            return DownloadResult.failed(wallpaper, f"checksum database check failed: {e}")

        try:
            installed = self._install(tmp_path, final_path, wallpaper)
        except OSError as e:
            return DownloadResult.failed(wallpaper, f"failed to move file: {e}")
        except CatalogError as e:
            return DownloadResult.failed(wallpaper, f"database check failed: {e}")
        if installed is None:
            return DownloadResult.skipped(wallpaper, REASON_EXISTS, checksum=checksum)

        record = ImageRecord(
            source=self.source,
            source_id=wallpaper.id,
            url=wallpaper.image_url,
            local_path=str(final_path),
            checksum=checksum,
            tags=self.extract_tags(wallpaper),
            resolution=wallpaper.resolution,
            file_size=size,
        )
        try:
            self.db.insert(record)
        except DuplicateImageError as e:
            self._discard(final_path, installed, wallpaper)
            reason = REASON_DUPLICATE if e.key == "checksum" else REASON_EXISTS
            return DownloadResult.skipped(wallpaper, reason, checksum=checksum)
        except CatalogError as e:
            self._discard(final_path, installed, wallpaper)
            return DownloadResult.failed(wallpaper, f"failed to save to database: {e}")
        except BaseException:
            self._discard(final_path, installed, wallpaper)
            raise

        return DownloadResult.downloaded(wallpaper, str(final_path), checksum, size)

    def _stream_to_file(
        self,
        response,
        tmp_path: Path,
        cancel_event: Optional[threading.Event],
    ) -> tuple[str, int]:
        """Write the body to ``tmp_path`` while hashing it. Returns (sha256 hex, bytes)."""
        sha256 = hashlib.sha256()
        size = 0
        with open(tmp_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if cancel_event is not None and cancel_event.is_set():
                    raise DownloadCancelled()
                if not chunk:
                    continue
                f.write(chunk)
                sha256.update(chunk)
                size += len(chunk)
        return sha256.hexdigest(), size

    def _install(self, tmp_path: Path, final_path: Path, wallpaper: Wallpaper) -> Optional[os.stat_result]:
        """Put the temp file at its final name without overwriting another file.

        A file left behind with no catalog record is removed and the install
        retried once.

        Returns:
            The stat of the installed file, or None when the name is taken.
        """
        try:
            self._place(tmp_path, final_path)
        except FileExistsError:
            if self.db.exists_by_source_id(self.source, wallpaper.id):
                return None
            logger.info("Removing stale file %s", final_path)
            final_path.unlink(missing_ok=True)
            try:
                self._place(tmp_path, final_path)
            except FileExistsError:
                return None
        return final_path.stat()

    @staticmethod
    def _place(tmp_path: Path, final_path: Path) -> None:
        """Hard-link ``tmp_path`` to ``final_path``, copying where links aren't supported.

        Raises:
            FileExistsError: If ``final_path`` exists
        """
        try:
            os.link(tmp_path, final_path)
            return
        except (NotImplementedError, PermissionError):
            logger.debug("Hard links unavailable, copying %s", tmp_path)
        with open(tmp_path, "rb") as src, open(final_path, "xb") as dst:
            try:
                shutil.copyfileobj(src, dst)
            except BaseException:
                final_path.unlink(missing_ok=True)
                raise

    def _discard(self, final_path: Path, installed: os.stat_result, wallpaper: Wallpaper) -> None:
        """Remove the file this worker installed after its insert failed.

        The file stays when another worker has replaced it, or when a catalog
        record for this wallpaper now owns the name.
        """
        try:
            current = final_path.stat()
        except FileNotFoundError:
            return
        if (current.st_dev, current.st_ino) != (installed.st_dev, installed.st_ino):
            return
        try:
            if self.db.exists_by_source_id(self.source, wallpaper.id):
                return
        except CatalogError as e:
            logger.warning("Could not check catalog before removing %s: %s", final_path, e)
        final_path.unlink(missing_ok=True)
