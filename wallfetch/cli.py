"""Command-line interface: fetch, list, browse and manage wallpapers.

Environment variables:
    WALLHAVEN_API_KEY: Wallhaven API key (optional, also read from .env)
    XDG_CONFIG_HOME: Base directory of the config file
"""

import argparse
import random
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .api.wallhaven_api import SearchParams, WallhavenAPI, WallhavenAPIError
from .config import Config, ConfigError, get_config_path, load_config, save_config
from .core.downloader import DownloadDirectoryError, WallpaperDownloader
from .core.fetcher import WallpaperFetcher
from .core.filter import WallpaperFilter
from .core.maintenance import cleanup_missing_files, delete_image, prune_oldest, remove_duplicates
from .core.models import DownloadResult, ImageRecord
from .core.preview import PreviewManager, detect_image_viewer, open_with_viewer, read_image_info
from .logging_utils import setup_logging
from .storage.database import CatalogError, ImageNotFoundError, WallpaperDatabase

SUPPORTED_SOURCES = ("wallhaven",)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def fail(message: str) -> None:
    print(f"Error: {message}")
    sys.exit(1)


def open_database(args) -> WallpaperDatabase:
    try:
        return WallpaperDatabase(args.database or args.config.database.path)
    except CatalogError as e:
        fail(str(e))


def confirm(prompt: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question; an empty answer means no."""
    if assume_yes:
        return True
    while True:
        try:
            response = input(f"{prompt} [y/N] ").strip().lower()
        except EOFError:
            return False
        if response in ("y", "yes"):
            return True
        if response in ("n", "no", ""):
            return False
        print("Please enter 'y' or 'n'")


def format_size(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.2f} MB"


def print_result(result: DownloadResult) -> None:
    wallpaper_id = result.wallpaper.id
    if result.is_downloaded:
        print(f"  [ok]   {wallpaper_id} - Downloaded to {result.local_path}")
    elif result.is_skipped:
        print(f"  [skip] {wallpaper_id} - Skipped: {result.reason}")
    else:
        print(f"  [fail] {wallpaper_id} - Error: {result.reason}")


def print_record(record: ImageRecord, verbose: bool = False) -> None:
    exists = Path(record.local_path).exists()
    downloaded = record.downloaded_at.strftime("%Y-%m-%d %H:%M") if record.downloaded_at else "N/A"
    if not verbose:
        status = " " if exists else "!"
        star = "*" if record.favorite else " "
        print(f"{status}{star} {record.id:>5} | {record.source_id:<8} | {record.resolution:<12} | {downloaded:<16} | {record.local_path}")
        return
    print(f"ID: {record.id}{'  (favorite)' if record.favorite else ''}")
    print(f"Source: {record.source} ({record.source_id})")
    print(f"Resolution: {record.resolution}")
    print(f"File Size: {format_size(record.file_size)}")
    print(f"Local Path: {record.local_path}{'' if exists else '  (FILE MISSING)'}")
    print(f"Tags: {record.tags}")
    print(f"Downloaded: {downloaded}")
    print(f"Checksum: {record.checksum[:16]}...")
    print("-" * 50)


def _show_paths(paths: list[str], limit: int = 10) -> None:
    for path in paths[:limit]:
        print(f"  - {Path(path).name}")
    if len(paths) > limit:
        print(f"  ... and {len(paths) - limit} more")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def fetch(args):
    """Fetch wallpapers from a source."""
    config: Config = args.config
    source = args.source or config.default_source
    if source not in SUPPORTED_SOURCES:
        fail(f"unsupported source: {source}")

    defaults = config.source_defaults(source)
    limit = args.limit or defaults.limit
    output_dir = args.output or config.download_dir
    params = SearchParams(
        query=args.query or "",
        categories=args.categories or defaults.categories,
        purity=args.purity or "",
        sorting=args.sort or defaults.sort,
        at_least=args.resolution or defaults.resolution,
        ratios=args.ratios or "",
        colors=args.colors or "",
        page=args.page,
        seed=args.seed or "",
    )

    print(f"Fetching wallpapers from {source}...")
    print(f"  Categories: {params.categories}")
    print(f"  Resolution: {params.at_least}")
    print(f"  Sort: {params.sorting}")
    print(f"  Limit: {limit}")
    print(f"  Page: {params.page}")
    print(f"  Output Directory: {output_dir}")

    db = open_database(args)
    api = WallhavenAPI(api_key=config.get_api_key(source))
    downloader = WallpaperDownloader(output_dir, db, max_concurrent=config.max_concurrent, source=source)
    wallpaper_filter = None if args.no_filter else WallpaperFilter(defaults.filter_config())
    fetcher = WallpaperFetcher(api, downloader, wallpaper_filter)

    def on_page(page: int, results: list[DownloadResult]) -> None:
        print(f"\nPage {page}:")
        for result in results:
            print_result(result)
        downloaded = sum(1 for r in results if r.is_downloaded)
        skipped = sum(1 for r in results if r.is_skipped)
        print(f"Page {page} summary: Downloaded: {downloaded}, Skipped: {skipped}, "
              f"Failed: {len(results) - downloaded - skipped}")

    cancel_event = threading.Event()

    def on_sigint(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("\nCancelling, waiting for running downloads (Ctrl+C again to abort)...")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, on_sigint)
    try:
        summary = fetcher.fetch(params, limit, cancel_event=cancel_event, on_page=on_page, progress=True)
    except (WallhavenAPIError, DownloadDirectoryError) as e:
        fail(str(e))
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    print("\n" + "=" * 50)
    print("FINAL SUMMARY:")
    for line in str(summary).splitlines():
        print(f"  {line}")
    if cancel_event.is_set():
        print("\nFetch was cancelled.")
    elif not summary.target_reached:
        print(f"\nCould only download {summary.downloaded} out of {limit} requested wallpapers.")
        print("   This may be due to filters or limited availability.")


def list_records(args):
    """List downloaded wallpapers."""
    db = open_database(args)
    records = db.list_images(source=args.source, limit=args.limit, favorites_only=args.favorites)
    if not records:
        print("No wallpapers found in database.")
        return

    print(f"Showing {len(records)} of {db.count()} wallpapers:\n")
    for record in records:
        print_record(record, verbose=args.verbose)


def _print_details(record: ImageRecord) -> None:
    print("=" * 50)
    print(f"ID: {record.id}")
    print(f"Source: {record.source} ({record.source_id})")
    print(f"URL: {record.url}")
    print(f"Resolution: {record.resolution}")
    print(f"File Size: {format_size(record.file_size)}")
    if record.downloaded_at:
        print(f"Downloaded: {record.downloaded_at.strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"Checksum: {record.checksum}")
    if record.tags:
        print(f"Tags: {record.tags}")
    print(f"Full Path: {record.local_path}")
    info = read_image_info(record.local_path)
    if info:
        print(f"Image: {info}")


def _browse_interactive(
    db: WallpaperDatabase,
    records: list[ImageRecord],
    manager: PreviewManager,
    viewer: Optional[str],
    preview: bool,
) -> None:
    print("Interactive browsing: [n]ext, [p]rev, [o]pen, [i]nfo, [f]avorite, [q]uit, [h]elp")
    index = 0
    while True:
        record = records[index]
        print(f"\n=== Wallpaper {index + 1}/{len(records)} ===")
        if preview:
            try:
                manager.preview_image(record.local_path)
            except Exception as e:
                print(f"Preview failed: {e}")
        print(f"ID: {record.id} | {record.source} ({record.source_id}) | {record.resolution}")
        print(f"File: {Path(record.local_path).name}")

        try:
            command = input("[n]ext [p]rev [o]pen [i]nfo [f]avorite [q]uit [h]elp > ").strip().lower()
        except EOFError:
            return

        if command in ("n", "next", ""):
            index = (index + 1) % len(records)
        elif command in ("p", "prev"):
            index = (index - 1) % len(records)
        elif command in ("o", "open"):
            if not viewer:
                print("No viewer configured.")
                continue
            try:
                open_with_viewer(record.local_path, viewer)
            except Exception as e:
                print(f"Failed to open: {e}")
        elif command in ("i", "info"):
            _print_details(record)
        elif command in ("f", "favorite"):
            try:
                record.favorite = db.toggle_favorite(record.id)
            except CatalogError as e:
                print(f"Failed to update favorite: {e}")
                continue
            print(f"{'Added to' if record.favorite else 'Removed from'} favorites")
        elif command in ("h", "help"):
            print("  n, next, Enter  - Next wallpaper")
            print("  p, prev         - Previous wallpaper")
            print("  o, open         - Open with external viewer")
            print("  i, info         - Show detailed information")
            print("  f, favorite     - Toggle favorite")
            print("  q, quit         - Quit browsing")
        elif command in ("q", "quit"):
            return
        else:
            print(f"Unknown command '{command}'. Type 'h' for help.")


def browse(args):
    """Browse downloaded wallpapers with optional terminal preview."""
    db = open_database(args)
    records = db.list_images(source=args.source, limit=args.limit)
    if not records:
        print("No wallpapers found in your collection.")
        print("Run 'wallfetch fetch' to download some wallpapers first!")
        return

    records = [r for r in records if Path(r.local_path).exists()]
    if not records:
        print("No valid wallpaper files found.")
        print("Run 'wallfetch cleanup' to clean up the database.")
        return

    if args.random:
        random.shuffle(records)

    manager = PreviewManager()
    preview = args.preview
    if preview and not manager.can_preview():
        print("Preview mode requested but no preview tools available.")
        print(manager.install_instructions())
        preview = False
    viewer = args.viewer or detect_image_viewer()

    print(f"Browsing {len(records)} wallpapers{' (random order)' if args.random else ''}")
    if preview:
        print(f"Using {manager.tool_name} for terminal preview")
    if viewer:
        print(f"External viewer: {viewer}")

    if args.interactive:
        _browse_interactive(db, records, manager, viewer, preview)
        return

    for i, record in enumerate(records):
        print(f"\n=== Wallpaper {i + 1}/{len(records)} ===")
        print(f"ID: {record.id} | Source: {record.source} ({record.source_id})")
        print(f"Resolution: {record.resolution} | Size: {format_size(record.file_size)}")
        if record.tags:
            print(f"Tags: {record.tags}")
        print(f"File: {record.local_path}")
        if preview:
            try:
                manager.preview_image(record.local_path)
            except Exception as e:
                print(f"Failed to preview: {e}")
        if viewer and confirm(f"Open with {viewer}?"):
            try:
                open_with_viewer(record.local_path, viewer)
            except Exception as e:
                print(f"Failed to open viewer: {e}")
    print(f"\nFinished browsing {len(records)} wallpapers")


def prune(args):
    """Delete the oldest wallpapers, keeping the most recent ones."""
    db = open_database(args)
    plan = prune_oldest(db, args.keep, dry_run=True)
    if not plan.candidates:
        print(f"Current collection has {plan.total_before} wallpapers (keep target: {args.keep})")
        print("No pruning needed!")
        return

    print("Collection Management:")
    print(f"  Current wallpapers: {plan.total_before}")
    print(f"  Target to keep: {args.keep}")
    print(f"  Will delete: {len(plan.candidates)} oldest wallpapers")

    if args.dry_run:
        print(f"\nDRY RUN - Would delete {len(plan.candidates)} old wallpapers:")
        _show_paths([r.local_path for r in plan.candidates])
        print("\nRun without --dry-run to actually delete these files")
        return

    if not confirm(f"\nPermanently delete {len(plan.candidates)} wallpapers from database and disk?", args.yes):
        print("Operation cancelled")
        return

    report = prune_oldest(db, args.keep)
    for path, error in report.failed.items():
        print(f"  Failed to delete {Path(path).name}: {error}")
    print("\n" + "=" * 50)
    print("PRUNE SUMMARY:")
    for line in str(report).splitlines():
        print(f"  {line}")
    print(f"  Remaining wallpapers: {db.count()}")
    if args.config.database.auto_vacuum:
        db.vacuum()


def dedupe(args):
    """Remove catalog entries and files that share a checksum."""
    db = open_database(args)
    plan = remove_duplicates(db, dry_run=True)
    if not plan.groups:
        print("No duplicates found!")
        return

    print(f"Found {len(plan.groups)} groups of duplicate wallpapers:\n")
    for i, group in enumerate(plan.groups, 1):
        print(f"Duplicate Group {i} ({len(group)} images):")
        print(f"Checksum: {group[0].checksum[:16]}...")
        for j, record in enumerate(group):
            marker = "KEEP" if j == 0 else "DELETE"
            print(f"  ID: {record.id:<4} | {record.source_id} | {record.resolution} | {record.filename} ({marker})")
        print()

    if args.dry_run:
        print(f"DRY RUN - Would delete {len(plan.to_remove)} duplicate files")
        print("Run without --dry-run to actually remove duplicates")
        return

    if not confirm(f"Permanently delete {len(plan.to_remove)} duplicates from database and disk?", args.yes):
        print("Operation cancelled")
        return

    report = remove_duplicates(db)
    for record_id, error in report.failed.items():
        print(f"  Failed to delete ID {record_id}: {error}")
    print("\n" + "=" * 50)
    print("DEDUPE SUMMARY:")
    for line in str(report).splitlines():
        print(f"  {line}")
    if args.config.database.auto_vacuum:
        db.vacuum()


def delete(args):
    """Delete one wallpaper by catalog id or source id."""
    if args.id is None and not args.source_id:
        fail("must provide either wallpaper ID or --source-id")
    db = open_database(args)
    try:
        result = delete_image(
            db,
            image_id=args.id,
            source_id=args.source_id,
            source=args.config.default_source,
            delete_file=args.file,
        )
    except ImageNotFoundError as e:
        fail(str(e))
    except OSError as e:
        fail(f"record deleted but file could not be removed: {e}")

    label = args.source_id or f"ID {args.id}"
    print(f"Deleted wallpaper {label} from database")
    if result.file_deleted:
        print(f"Deleted file: {result.local_path}")
    elif result.file_was_missing:
        print(f"File {result.local_path} was already missing")
    else:
        print(f"File preserved: {result.local_path}")
        print("Use --file to also delete the file from disk")


def cleanup(args):
    """Remove catalog entries whose files no longer exist."""
    db = open_database(args)
    report = cleanup_missing_files(db, dry_run=args.dry_run)
    print(report)
    for path in report.removed_paths:
        print(f"  - {path}")
    if report.dry_run and report.removed_paths:
        print("\nRun without --dry-run to actually clean up")


def favorite(args):
    """Toggle or set the favorite flag of a wallpaper."""
    db = open_database(args)
    try:
        if args.unset:
            db.set_favorite(args.id, False)
            state = False
        elif args.set:
            db.set_favorite(args.id, True)
            state = True
        else:
            state = db.toggle_favorite(args.id)
    except ImageNotFoundError as e:
        fail(str(e))
    print(f"Wallpaper {args.id} {'added to' if state else 'removed from'} favorites "
          f"({db.count_favorites()} favorites)")


def config_show(args):
    """Show the current configuration."""
    config: Config = args.config
    print("Configuration:")
    print(f"  Config File: {args.config_path or get_config_path()}")
    print(f"  Default Source: {config.default_source}")
    print(f"  Download Directory: {config.download_dir}")
    print(f"  Max Concurrent: {config.max_concurrent}")
    print(f"  Database Path: {args.database or config.database.path}")
    api_key = config.get_api_key("wallhaven")
    if api_key and len(api_key) > 12:
        print(f"  Wallhaven API Key: {api_key[:8]}...{api_key[-4:]}")
    else:
        print(f"  Wallhaven API Key: {'set' if api_key else 'Not set'}")


def config_init(args):
    """Write the current configuration to the config file."""
    path = Path(args.config_path) if args.config_path else get_config_path()
    if path.exists() and not args.force:
        fail(f"{path} already exists (use --force to overwrite)")
    try:
        save_config(args.config, path)
    except ConfigError as e:
        fail(str(e))
    print(f"Configuration file created: {path}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wallfetch",
        description="Fetch wallpapers and manage a local wallpaper library",
        epilog="Environment variables: WALLHAVEN_API_KEY, XDG_CONFIG_HOME",
    )
    parser.add_argument("--config", "-C", dest="config_path", help="Path to config file")
    parser.add_argument("--database", "-d", help="Path to SQLite database (overrides config)")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    parser.add_argument("--log-file", help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- fetch ---
    fetch_parser = subparsers.add_parser("fetch", help="Fetch wallpapers from a source")
    fetch_parser.add_argument("source", nargs="?", help="Source to fetch from (default: from config)")
    fetch_parser.add_argument("--categories", "-c", help="Categories (e.g. general,anime)")
    fetch_parser.add_argument("--resolution", "-r", help="Minimum resolution (e.g. 1920x1080)")
    fetch_parser.add_argument("--sort", "-s", help="date_added, relevance, random, views, favorites, toplist")
    fetch_parser.add_argument("--limit", "-l", type=int, default=0, help="Number of wallpapers to download")
    fetch_parser.add_argument("--page", "-p", type=int, default=1, help="First page to fetch (default: 1)")
    fetch_parser.add_argument("--output", "-o", help="Output directory")
    fetch_parser.add_argument("--query", "-q", help="Search query")
    fetch_parser.add_argument("--purity", help="Content purity (sfw, sketchy, nsfw)")
    fetch_parser.add_argument("--ratios", help="Aspect ratios sent to the API (e.g. 16x9,21x9)")
    fetch_parser.add_argument("--colors", help="Color filter (hex, e.g. 663399)")
    fetch_parser.add_argument("--seed", help="Seed for random sorting")
    fetch_parser.add_argument("--no-filter", action="store_true", help="Skip the local resolution filter")
    fetch_parser.set_defaults(func=fetch)

    # --- list ---
    list_parser = subparsers.add_parser("list", help="List downloaded wallpapers")
    list_parser.add_argument("--source", "-s", help="Filter by source")
    list_parser.add_argument("--limit", "-l", type=int, default=50, help="Limit number of results (default: 50)")
    list_parser.add_argument("--favorites", "-f", action="store_true", help="Only show favorites")
    list_parser.add_argument("--verbose", "-v", action="store_true", help="Show detailed information")
    list_parser.set_defaults(func=list_records)

    # --- browse ---
    browse_parser = subparsers.add_parser("browse", help="Browse wallpapers")
    browse_parser.add_argument("source", nargs="?", help="Only browse this source")
    browse_parser.add_argument("--limit", "-l", type=int, default=10, help="Number of wallpapers (default: 10)")
    browse_parser.add_argument("--random", "-r", action="store_true", help="Random order")
    browse_parser.add_argument("--preview", "-p", action="store_true", help="Show image preview in terminal")
    browse_parser.add_argument("--viewer", help="External image viewer command (e.g. feh, eog, open)")
    browse_parser.add_argument("--interactive", "-i", action="store_true", help="Interactive browsing mode")
    browse_parser.set_defaults(func=browse)

    # --- prune ---
    prune_parser = subparsers.add_parser("prune", help="Delete old wallpapers, keeping the most recent")
    prune_parser.add_argument("--keep", "-k", type=int, default=100, help="Number of wallpapers to keep (default: 100)")
    prune_parser.add_argument("--dry-run", action="store_true", help="Show what would be deleted")
    prune_parser.add_argument("--yes", "-y", action="store_true", help="Don't ask for confirmation")
    prune_parser.set_defaults(func=prune)

    # --- dedupe ---
    dedupe_parser = subparsers.add_parser("dedupe", help="Remove duplicate wallpapers by checksum")
    dedupe_parser.add_argument("--dry-run", action="store_true", help="Show what would be deleted")
    dedupe_parser.add_argument("--yes", "-y", action="store_true", help="Don't ask for confirmation")
    dedupe_parser.set_defaults(func=dedupe)

    # --- delete ---
    delete_parser = subparsers.add_parser("delete", help="Delete a wallpaper")
    delete_parser.add_argument("id", nargs="?", type=int, help="Catalog ID of the wallpaper")
    delete_parser.add_argument("--source-id", "-s", help="Delete by source ID (e.g. Wallhaven ID)")
    delete_parser.add_argument("--file", action="store_true", help="Also delete the file from disk")
    delete_parser.set_defaults(func=delete)

    # --- cleanup ---
    cleanup_parser = subparsers.add_parser("cleanup", help="Remove entries whose files are missing")
    cleanup_parser.add_argument("--dry-run", action="store_true", help="Show what would be cleaned")
    cleanup_parser.set_defaults(func=cleanup)

    # --- favorite ---
    favorite_parser = subparsers.add_parser("favorite", help="Toggle the favorite flag of a wallpaper")
    favorite_parser.add_argument("id", type=int, help="Catalog ID of the wallpaper")
    group = favorite_parser.add_mutually_exclusive_group()
    group.add_argument("--set", action="store_true", help="Mark as favorite")
    group.add_argument("--unset", action="store_true", help="Remove favorite mark")
    favorite_parser.set_defaults(func=favorite)

    # --- config ---
    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_sub = config_parser.add_subparsers(dest="config_command", required=True)
    show_parser = config_sub.add_parser("show", help="Show current configuration")
    show_parser.set_defaults(func=config_show)
    init_parser = config_sub.add_parser("init", help="Write the configuration file")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite an existing file")
    init_parser.set_defaults(func=config_init)

    return parser


def main(argv: Optional[list[str]] = None):
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(args.log_level, args.log_file)
    except ValueError as e:
        fail(str(e))

    try:
        args.config = load_config(args.config_path)
    except ConfigError as e:
        fail(str(e))

    args.func(args)


if __name__ == "__main__":
    main()
