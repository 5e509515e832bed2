"""SQLite catalog of downloaded wallpapers."""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from ..core.models import ImageRecord

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, source, source_id, url, local_path, checksum, tags, resolution, "
    "file_size, downloaded_at, favorite"
)
_RECENT_FIRST = "ORDER BY downloaded_at DESC, id DESC"


class CatalogError(Exception):
    """Raised when a catalog operation fails."""
    pass


class DuplicateImageError(CatalogError):
    """Raised when an insert violates one of the catalog's unique keys.

    ``key`` is ``"checksum"`` or ``"source_id"``.
    """

    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = key


class ImageNotFoundError(CatalogError):
    """Raised when no record matches the requested id."""
    pass


class WallpaperDatabase:
    """Manages wallpaper records in SQLite.

    Every operation opens its own connection, so a single instance can be
    shared by the download workers; SQLite's own locking serialises writers.
    """

    def __init__(self, db_path: str | Path, timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise CatalogError(f"failed to open database {self.db_path}: {e}") from e

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        """Create the images table and indexes if they don't exist."""
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS images (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT NOT NULL,
                    source_id TEXT NOT NULL,
                    url TEXT NOT NULL,
                    local_path TEXT NOT NULL,
                    checksum TEXT NOT NULL,
                    tags TEXT,
                    resolution TEXT,
                    file_size INTEGER,
                    downloaded_at TEXT,
                    favorite BOOLEAN DEFAULT 0,
                    UNIQUE(source, source_id)
                );
                CREATE INDEX IF NOT EXISTS idx_source ON images(source);
                CREATE INDEX IF NOT EXISTS idx_downloaded_at ON images(downloaded_at);
            """)
            columns = {row[1] for row in conn.execute("PRAGMA table_info(images)")}
            if "favorite" not in columns:
                conn.execute("ALTER TABLE images ADD COLUMN favorite BOOLEAN DEFAULT 0")
        try:
            with self._connect() as conn:
                conn.execute(
                    "CREATE UNIQUE INDEX IF NOT EXISTS idx_checksum_unique ON images(checksum)"
                )
        except sqlite3.IntegrityError:
            # Older catalogs may hold duplicates; the index is created once they are removed
            logger.warning(
                "Catalog %s contains duplicate checksums; run 'wallfetch dedupe' to enforce uniqueness",
                self.db_path,
            )

    def _row_to_record(self, row) -> ImageRecord:
        """Convert a database row to an ImageRecord."""
        downloaded_at = datetime.fromisoformat(row[9]) if row[9] else None
        return ImageRecord(
            id=row[0],
            source=row[1],
            source_id=row[2],
            url=row[3],
            local_path=row[4],
            checksum=row[5],
            tags=row[6] or "",
            resolution=row[7] or "",
            file_size=row[8] or 0,
            downloaded_at=downloaded_at,
            favorite=bool(row[10]),
        )

    def insert(self, record: ImageRecord) -> int:
        """Insert a new record and return its id.

        Raises:
            DuplicateImageError: If the checksum or (source, source_id) is taken.
        """
        if record.downloaded_at is None:
            record.downloaded_at = datetime.now()
        try:
            with self._connect() as conn:
                cursor = conn.execute("""
                    INSERT INTO images (source, source_id, url, local_path, checksum, tags,
                                        resolution, file_size, downloaded_at, favorite)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.source,
                    record.source_id,
                    record.url,
                    record.local_path,
                    record.checksum,
                    record.tags,
                    record.resolution,
                    record.file_size,
                    record.downloaded_at.isoformat(),
                    record.favorite,
                ))
        except sqlite3.IntegrityError as e:
            key = "checksum" if "checksum" in str(e) else "source_id"
            raise DuplicateImageError(key, f"duplicate {key}: {e}") from e
        except sqlite3.Error as e:
            raise CatalogError(f"insert failed: {e}") from e
        record.id = cursor.lastrowid
        return record.id

    def _query(self, sql: str, params: tuple = ()) -> list[ImageRecord]:
        try:
            with self._connect() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise CatalogError(str(e)) from e
        return [self._row_to_record(row) for row in rows]

    def _scalar(self, sql: str, params: tuple = ()):
        try:
            with self._connect() as conn:
                return conn.execute(sql, params).fetchone()[0]
        except sqlite3.Error as e:
            raise CatalogError(str(e)) from e

    def exists_by_source_id(self, source: str, source_id: str) -> bool:
        return self._scalar(
            "SELECT COUNT(*) FROM images WHERE source = ? AND source_id = ?", (source, source_id)
        ) > 0

    def exists_by_checksum(self, checksum: str) -> bool:
        return self._scalar("SELECT COUNT(*) FROM images WHERE checksum = ?", (checksum,)) > 0

    def get_by_id(self, image_id: int) -> Optional[ImageRecord]:
        records = self._query(f"SELECT {_COLUMNS} FROM images WHERE id = ?", (image_id,))
        return records[0] if records else None

    def list_images(
        self,
        source: Optional[str] = None,
        limit: Optional[int] = None,
        favorites_only: bool = False,
    ) -> list[ImageRecord]:
        """List records, most recently downloaded first."""
        clauses, params = [], []
        if source:
            clauses.append("source = ?")
            params.append(source)
        if favorites_only:
            clauses.append("favorite = 1")
        sql = f"SELECT {_COLUMNS} FROM images"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" {_RECENT_FIRST}"
        if limit and limit > 0:
            sql += " LIMIT ?"
            params.append(limit)
        return self._query(sql, tuple(params))

    def list_all(self) -> list[ImageRecord]:
        return self.list_images()

    def count(self) -> int:
        """Return the number of records in the catalog."""
        return self._scalar("SELECT COUNT(*) FROM images")

    def count_favorites(self) -> int:
        return self._scalar("SELECT COUNT(*) FROM images WHERE favorite = 1")

    def _delete_one(self, where: str, params: tuple, missing: str) -> str:
        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT local_path FROM images WHERE {where}", params).fetchone()
                if row is None:
                    raise ImageNotFoundError(missing)
                conn.execute(f"DELETE FROM images WHERE {where}", params)
        except sqlite3.Error as e:
            raise CatalogError(str(e)) from e
        return row[0]

    def delete_by_id(self, image_id: int) -> str:
        """Delete a record by id. Returns the record's local path."""
        return self._delete_one("id = ?", (image_id,), f"image with ID {image_id} not found")

    def delete_by_source_id(self, source: str, source_id: str) -> str:
        """Delete a record by (source, source_id). Returns the record's local path."""
        return self._delete_one(
            "source = ? AND source_id = ?",
            (source, source_id),
            f"image {source}/{source_id} not found",
        )

    def find_duplicate_groups(self) -> list[list[ImageRecord]]:
        """Group records sharing a checksum, oldest first within each group.

        Only groups with more than one record are returned, ordered by checksum.
        """
        records = self._query(f"""
            SELECT {_COLUMNS} FROM images
            WHERE checksum IN (
                SELECT checksum FROM images GROUP BY checksum HAVING COUNT(*) > 1
            )
            ORDER BY checksum, downloaded_at, id
        """)
        groups: dict[str, list[ImageRecord]] = {}
        for record in records:
            groups.setdefault(record.checksum, []).append(record)
        return list(groups.values())

    def list_oldest_beyond(self, keep_count: int) -> list[ImageRecord]:
        """Records that fall outside the ``keep_count`` most recent ones."""
        if keep_count < 0:
            raise ValueError("keep_count must be >= 0")
        return self._query(
            f"SELECT {_COLUMNS} FROM images {_RECENT_FIRST} LIMIT -1 OFFSET ?", (keep_count,)
        )

    def delete_oldest_beyond(self, keep_count: int) -> list[str]:
        """Delete every record except the ``keep_count`` most recent ones.

        Returns:
            Local paths of the deleted records.
        """
        if keep_count < 0:
            raise ValueError("keep_count must be >= 0")
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT id, local_path FROM images {_RECENT_FIRST} LIMIT -1 OFFSET ?",
                    (keep_count,),
                ).fetchall()
                conn.executemany("DELETE FROM images WHERE id = ?", [(row[0],) for row in rows])
        except sqlite3.Error as e:
            raise CatalogError(str(e)) from e
        return [row[1] for row in rows]

    def find_missing_files(self) -> list[ImageRecord]:
        """Records whose local file no longer exists."""
        return [r for r in self.list_all() if not os.path.exists(r.local_path)]

    def cleanup_missing_files(self) -> list[str]:
        """Delete records whose file is gone. Returns the removed paths."""
        removed = []
        for record in self.find_missing_files():
            try:
                with self._connect() as conn:
                    conn.execute("DELETE FROM images WHERE id = ?", (record.id,))
            except sqlite3.Error as e:
                raise CatalogError(f"failed to delete image {record.id}: {e}") from e
            removed.append(record.local_path)
        return removed

    def _update_favorite(self, sql: str, params: tuple, image_id: int) -> None:
        try:
            with self._connect() as conn:
                cursor = conn.execute(sql, params)
        except sqlite3.Error as e:
            raise CatalogError(str(e)) from e
        if cursor.rowcount == 0:
            raise ImageNotFoundError(f"image with ID {image_id} not found")

    def toggle_favorite(self, image_id: int) -> bool:
        """Flip the favorite flag. Returns the new value."""
        self._update_favorite(
            "UPDATE images SET favorite = NOT favorite WHERE id = ?", (image_id,), image_id
        )
        return self.get_by_id(image_id).favorite

    def set_favorite(self, image_id: int, favorite: bool) -> None:
        self._update_favorite(
            "UPDATE images SET favorite = ? WHERE id = ?", (favorite, image_id), image_id
        )

    def vacuum(self) -> None:
        """Reclaim space after large deletions."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        try:
            conn.execute("VACUUM")
        except sqlite3.Error as e:
            raise CatalogError(f"vacuum failed: {e}") from e
        finally:
            conn.close()
