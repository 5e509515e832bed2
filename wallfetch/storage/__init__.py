"""Storage layer - SQLite wallpaper catalog."""

from .database import WallpaperDatabase

__all__ = ["WallpaperDatabase"]
