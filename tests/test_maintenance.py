"""Tests for prune, dedupe, delete and cleanup."""

import sqlite3

import pytest

from test_database import create_legacy_catalog, insert_raw, make_record
from wallfetch.core.maintenance import (
    cleanup_missing_files,
    delete_image,
    prune_oldest,
    remove_duplicates,
    remove_file,
)
from wallfetch.storage.database import ImageNotFoundError, WallpaperDatabase


def add_image(db, directory, source_id, minutes, content=None, checksum=None):
    path = directory / f"wallhaven-{source_id}.jpg"
    path.write_bytes(content or source_id.encode())
    db.insert(make_record(source_id, checksum=checksum, minutes=minutes, path=str(path)))
    return path


@pytest.fixture
def image_dir(tmp_path):
    directory = tmp_path / "images"
    directory.mkdir()
    return directory


class TestPrune:

    def test_keeps_most_recent(self, db, image_dir):
        paths = [add_image(db, image_dir, f"id{i}", minutes=i) for i in range(5)]

        report = prune_oldest(db, keep=2)

        assert [r.source_id for r in db.list_images()] == ["id4", "id3"]
        assert sorted(report.deleted_paths) == sorted(str(p) for p in paths[:3])
        assert not any(p.exists() for p in paths[:3])
        assert all(p.exists() for p in paths[3:])
        assert report.bytes_freed == sum(len(f"id{i}") for i in range(3))

    def test_ties_broken_by_insertion_order(self, db, image_dir):
        for name in ["first", "second", "third"]:
            add_image(db, image_dir, name, minutes=0)

        prune_oldest(db, keep=1)

        assert [r.source_id for r in db.list_images()] == ["third"]

    def test_dry_run_changes_nothing(self, db, image_dir):
        paths = [add_image(db, image_dir, f"id{i}", minutes=i) for i in range(4)]

        report = prune_oldest(db, keep=1, dry_run=True)

        assert [r.source_id for r in report.candidates] == ["id2", "id1", "id0"]
        assert report.deleted_paths == []
        assert db.count() == 4
        assert all(p.exists() for p in paths)
        assert str(report) == "Would delete 3 of 4 wallpapers"

    def test_missing_file_counts_as_deleted(self, db, image_dir):
        old = add_image(db, image_dir, "old", minutes=0)
        add_image(db, image_dir, "new", minutes=1)
        old.unlink()

        report = prune_oldest(db, keep=1)

        assert report.already_missing == [str(old)]
        assert db.count() == 1

    def test_nothing_to_prune(self, db, image_dir):
        add_image(db, image_dir, "only", minutes=0)
        report = prune_oldest(db, keep=5)
        assert report.candidates == []
        assert "nothing to prune" in str(report)

    def test_keep_zero_empties_collection(self, db, image_dir):
        add_image(db, image_dir, "a", minutes=0)
        add_image(db, image_dir, "b", minutes=1)
        prune_oldest(db, keep=0)
        assert db.count() == 0
        assert list(image_dir.iterdir()) == []

    def test_negative_keep(self, db):
        with pytest.raises(ValueError):
            prune_oldest(db, keep=-1)


class TestDedupe:

    @pytest.fixture
    def legacy_db(self, tmp_path, image_dir):
        path = tmp_path / "legacy.db"
        create_legacy_catalog(path)
        for source_id, minutes in [("late", 9), ("early", 1), ("middle", 5)]:
            file_path = image_dir / f"{source_id}.jpg"
            file_path.write_bytes(b"same")
            insert_raw(path, source_id, "dup", minutes, local_path=str(file_path))
        unique = image_dir / "unique.jpg"
        unique.write_bytes(b"other")
        insert_raw(path, "unique", "solo", 3, local_path=str(unique))
        return WallpaperDatabase(path)

    def test_keeps_earliest_download(self, legacy_db, image_dir):
        report = remove_duplicates(legacy_db)

        assert [r.source_id for r in report.kept] == ["early"]
        assert sorted(r.source_id for r in report.removed) == ["late", "middle"]
        assert sorted(r.source_id for r in legacy_db.list_images()) == ["early", "unique"]
        assert sorted(p.name for p in image_dir.iterdir()) == ["early.jpg", "unique.jpg"]
        assert report.bytes_freed == 8

    def test_dry_run(self, legacy_db, image_dir):
        report = remove_duplicates(legacy_db, dry_run=True)

        assert sorted(r.source_id for r in report.to_remove) == ["late", "middle"]
        assert report.removed == []
        assert legacy_db.count() == 4
        assert len(list(image_dir.iterdir())) == 4

    def test_uniqueness_enforced_afterwards(self, legacy_db):
        remove_duplicates(legacy_db)

        reopened = WallpaperDatabase(legacy_db.db_path)
        with sqlite3.connect(reopened.db_path) as conn:
            indexes = {row[1] for row in conn.execute("PRAGMA index_list(images)")}
        assert "idx_checksum_unique" in indexes

    def test_shared_path_is_not_deleted(self, tmp_path, image_dir):
        path = tmp_path / "legacy.db"
        create_legacy_catalog(path)
        shared = image_dir / "shared.jpg"
        shared.write_bytes(b"same")
        insert_raw(path, "a", "dup", 0, local_path=str(shared))
        insert_raw(path, "b", "dup", 1, local_path=str(shared))

        remove_duplicates(WallpaperDatabase(path))

        assert shared.exists()

    def test_no_duplicates(self, db, image_dir):
        add_image(db, image_dir, "a", minutes=0)
        report = remove_duplicates(db)
        assert report.groups == []
        assert str(report) == "No duplicates found"


class TestDelete:

    def test_delete_record_only(self, db, image_dir):
        path = add_image(db, image_dir, "abc123", minutes=0)
        record = db.list_images()[0]

        result = delete_image(db, image_id=record.id)

        assert result.local_path == str(path)
        assert not result.file_deleted
        assert path.exists()
        assert db.count() == 0

    def test_delete_with_file(self, db, image_dir):
        path = add_image(db, image_dir, "abc123", minutes=0)

        result = delete_image(db, source_id="abc123", delete_file=True)

        assert result.file_deleted
        assert not path.exists()

    def test_delete_with_file_already_gone(self, db, image_dir):
        path = add_image(db, image_dir, "abc123", minutes=0)
        path.unlink()

        result = delete_image(db, source_id="abc123", delete_file=True)

        assert result.file_was_missing
        assert db.count() == 0

    def test_delete_unknown(self, db):
        with pytest.raises(ImageNotFoundError):
            delete_image(db, image_id=7)

    def test_requires_identifier(self, db):
        with pytest.raises(ValueError):
            delete_image(db)


class TestCleanup:

    def test_removes_only_missing(self, db, image_dir):
        add_image(db, image_dir, "present", minutes=0)
        gone = add_image(db, image_dir, "gone", minutes=1)
        gone.unlink()

        report = cleanup_missing_files(db)

        assert report.removed_paths == [str(gone)]
        assert [r.source_id for r in db.list_images()] == ["present"]

    def test_is_idempotent(self, db, image_dir):
        gone = add_image(db, image_dir, "gone", minutes=0)
        gone.unlink()

        cleanup_missing_files(db)
        second = cleanup_missing_files(db)

        assert second.removed_paths == []
        assert str(second) == "No missing files found"

    def test_dry_run(self, db, image_dir):
        gone = add_image(db, image_dir, "gone", minutes=0)
        gone.unlink()

        report = cleanup_missing_files(db, dry_run=True)

        assert report.removed_paths == [str(gone)]
        assert db.count() == 1
        assert str(report) == "Would clean up 1 missing files"


def test_remove_file(tmp_path):
    target = tmp_path / "a.jpg"
    target.write_bytes(b"x")
    assert remove_file(str(target)) is True
    assert remove_file(str(target)) is False
