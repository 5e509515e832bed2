"""Pytest configuration and shared fakes."""

import threading
from typing import Callable, Optional

import pytest
import requests

from wallfetch.core.models import Wallpaper
from wallfetch.logging_utils import setup_logging
from wallfetch.storage.database import WallpaperDatabase


def pytest_configure(config):
    """Configure logging for tests."""
    setup_logging(level="DEBUG")


class FakeResponse:
    """Minimal stand-in for a streamed ``requests.Response``."""

    def __init__(self, status_code: int = 200, body: bytes = b"", json_data=None, chunk_size: int = 4):
        self.status_code = status_code
        self.body = body
        self.json_data = json_data
        self.chunk_size = chunk_size
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.body), self.chunk_size):
            yield self.body[i:i + self.chunk_size]

    def json(self):
        if self.json_data is None:
            raise ValueError("No JSON object could be decoded")
        return self.json_data

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSession:
    """Serves canned bodies per URL and records every request."""

    def __init__(self, bodies: Optional[dict] = None, on_get: Optional[Callable[[str], None]] = None):
        self.bodies = bodies or {}
        self.on_get = on_get
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def get(self, url, params=None, stream=False, timeout=None):
        with self._lock:
            self.calls.append((url, params or {}))
        if self.on_get is not None:
            self.on_get(url)
        body = self.bodies.get(url)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, FakeResponse):
            return body
        if body is None:
            return FakeResponse(status_code=404)
        return FakeResponse(body=body)

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


def make_wallpaper(wallpaper_id: str, resolution: str = "1920x1080", ext: str = ".jpg", tags=()) -> Wallpaper:
    return Wallpaper(
        id=wallpaper_id,
        image_url=f"https://w.wallhaven.cc/full/{wallpaper_id[:2]}/wallhaven-{wallpaper_id}{ext}",
        resolution=resolution,
        tags=tuple(tags),
    )


@pytest.fixture
def db(tmp_path):
    return WallpaperDatabase(tmp_path / "data" / "wallpapers.db")


@pytest.fixture
def download_dir(tmp_path):
    return tmp_path / "wallpapers"


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")
