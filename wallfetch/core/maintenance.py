"""Collection maintenance: prune, dedupe, delete and cleanup."""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from .models import ImageRecord
from ..storage.database import CatalogError, WallpaperDatabase

logger = logging.getLogger(__name__)


def remove_file(path: str) -> bool:
    """Delete a file. Returns False if it was already missing.

    Raises:
        OSError: For any failure other than the file not existing
    """
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False


def _file_size(path: str) -> int:
    try:
        return os.path.getsize(path)
    except OSError:
        return 0


@dataclass
class PruneReport:
    """Result of pruning the oldest wallpapers."""

    keep: int
    total_before: int = 0
    candidates: list[ImageRecord] = field(default_factory=list)
    deleted_paths: list[str] = field(default_factory=list)
    already_missing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # path -> error
    bytes_freed: int = 0
    dry_run: bool = False

    def __str__(self) -> str:
        if not self.candidates:
            return f"Collection has {self.total_before} wallpapers (keep target: {self.keep}), nothing to prune"
        if self.dry_run:
            return f"Would delete {len(self.candidates)} of {self.total_before} wallpapers"
        lines = [f"Files deleted: {len(self.deleted_paths) + len(self.already_missing)}"]
        if self.failed:
            lines.append(f"Failed deletions: {len(self.failed)}")
        lines.append(f"Space freed: {self.bytes_freed / (1024 * 1024):.2f} MB")
        return "\n".join(lines)


@dataclass
class DedupeReport:
    """Result of removing duplicate checksums."""

    groups: list[list[ImageRecord]] = field(default_factory=list)
    removed: list[ImageRecord] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)  # record id -> error
    bytes_freed: int = 0
    dry_run: bool = False

    @property
    def kept(self) -> list[ImageRecord]:
        return [group[0] for group in self.groups]

    @property
    def to_remove(self) -> list[ImageRecord]:
        return [record for group in self.groups for record in group[1:]]

    def __str__(self) -> str:
        if not self.groups:
            return "No duplicates found"
        if self.dry_run:
            return f"Would delete {len(self.to_remove)} duplicates in {len(self.groups)} groups"
        lines = [f"Successfully deleted: {len(self.removed)}"]
        if self.failed:
            lines.append(f"Failed: {len(self.failed)}")
        lines.append(f"Approximate space freed: {self.bytes_freed / (1024 * 1024):.2f} MB")
        return "\n".join(lines)


@dataclass
class DeleteResult:
    local_path: str
    file_deleted: bool = False
    file_was_missing: bool = False


@dataclass
class CleanupReport:
    """Catalog entries whose files were missing from disk."""

    removed_paths: list[str] = field(default_factory=list)
    dry_run: bool = False

    def __str__(self) -> str:
        if not self.removed_paths:
            return "No missing files found"
        verb = "Would clean up" if self.dry_run else "Cleaned up"
        return f"{verb} {len(self.removed_paths)} missing files"


def prune_oldest(db: WallpaperDatabase, keep: int, dry_run: bool = False) -> PruneReport:
    """Keep only the ``keep`` most recently downloaded wallpapers.

    Records are removed from the catalog first, then their files from disk.
    A file that is already gone counts as deleted.
    """
    if keep < 0:
        raise ValueError("keep must be >= 0")
    report = PruneReport(keep=keep, total_before=db.count(), dry_run=dry_run)
    report.candidates = db.list_oldest_beyond(keep)
    if dry_run or not report.candidates:
        return report

    sizes = {r.local_path: _file_size(r.local_path) for r in report.candidates}
    for path in db.delete_oldest_beyond(keep):
        try:
            if remove_file(path):
                report.deleted_paths.append(path)
                report.bytes_freed += sizes.get(path, 0)
            else:
                report.already_missing.append(path)
        except OSError as e:
            logger.warning("Failed to delete file %s: %s", path, e)
            report.failed[path] = str(e)
    return report


def remove_duplicates(db: WallpaperDatabase, dry_run: bool = False) -> DedupeReport:
    """Keep the earliest download of every checksum group and delete the rest."""
    report = DedupeReport(groups=db.find_duplicate_groups(), dry_run=dry_run)
    if dry_run:
        return report

    for record in report.to_remove:
        try:
            db.delete_by_id(record.id)
        except CatalogError as e:
            logger.warning("Failed to delete ID %s from database: %s", record.id, e)
            report.failed[record.id] = str(e)
            continue
        # the kept record may share this path
        if any(k.local_path == record.local_path for k in report.kept):
            report.removed.append(record)
            continue
        try:
            size = _file_size(record.local_path)
            if remove_file(record.local_path):
                report.bytes_freed += size
        except OSError as e:
            logger.warning("Deleted ID %s from database but not its file %s: %s", record.id, record.local_path, e)
        report.removed.append(record)
    return report


def delete_image(
    db: WallpaperDatabase,
    image_id: Optional[int] = None,
    source_id: Optional[str] = None,
    source: str = "wallhaven",
    delete_file: bool = False,
) -> DeleteResult:
    """Delete one record by catalog id or by source id, optionally with its file.

    Raises:
        ValueError: If neither identifier is given
        ImageNotFoundError: If no record matches
        OSError: If the file exists but can't be removed
    """
    if source_id:
        local_path = db.delete_by_source_id(source, source_id)
    elif image_id is not None:
        local_path = db.delete_by_id(image_id)
    else:
        raise ValueError("must provide either an image id or a source id")

    result = DeleteResult(local_path=local_path)
    if delete_file:
        if remove_file(local_path):
            result.file_deleted = True
        else:
            result.file_was_missing = True
    return result


def cleanup_missing_files(db: WallpaperDatabase, dry_run: bool = False) -> CleanupReport:
    """Drop catalog records whose file no longer exists on disk."""
    if dry_run:
        return CleanupReport([r.local_path for r in db.find_missing_files()], dry_run=True)
    return CleanupReport(db.cleanup_missing_files())
