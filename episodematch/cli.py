#!/usr/bin/env python3
"""
EpisodeMatch - episode recognition for TV show folders

A CLI tool for matching video files to TMDB episodes and reviewing
staged plans.
"""
import argparse
import logging
import sys
from pathlib import Path

from .archive import PlanArchive
from .batch import BatchMatcher
from .cache import Cache
from .channels import ConsoleConfirmation, StaticConfirmation
from .config import SettingsManager, configure_logging, load_api_key
from .metadata import MetadataStore
from .models import MediaMetadata
from .paths import basename, list_files, to_posix
from .patterns import is_video_file
from .recognizer import recognize_media_files
from .staging import StagingError, TaskStore
from .tmdb import TMDBClient, TMDBError

log = logging.getLogger(__name__)


def _folder(path: Path) -> str | None:
    """Canonical form of an existing directory, or None."""
    resolved = path.expanduser().resolve()
    if not resolved.is_dir():
        print(f"Error: Not a directory: {path}")
        return None
    return to_posix(str(resolved))


def cmd_init(settings: SettingsManager, args: argparse.Namespace) -> int:
    """Create (or refresh) the metadata record of a folder from TMDB."""
    folder = _folder(args.path)
    if folder is None:
        return 1

    try:
        client = TMDBClient(
            load_api_key(settings),
            cache=Cache(settings.path("cache_dir")),
            language=args.language or settings.get("tmdb_language"),
        )
        tv_show = client.get_tv_show(args.tmdb_id)
    except TMDBError as e:
        print(f"Error: {e}")
        return 1

    if tv_show is None:
        print(f"Error: TMDB TV show {args.tmdb_id} not found")
        return 1

    store = MetadataStore(settings.path("metadata_dir"))
    media_files = []
    if store.exists(folder):
        try:
            media_files = store.read(folder).media_files
        except (OSError, ValueError) as e:
            log.warning("Replacing unreadable metadata for %s: %s", folder, e)

    store.write(MediaMetadata(
        media_folder_path=folder,
        tv_show=tv_show,
        media_files=media_files,
    ))
    episode_count = sum(len(s.episodes or []) for s in tv_show.seasons)
    print(f"{tv_show.name}: {len(tv_show.seasons)} season(s), {episode_count} episode(s)")
    print(f"Managing {folder}")
    return 0


def cmd_recognize(settings: SettingsManager, args: argparse.Namespace) -> int:
    """Show recognized episodes and optionally commit them."""
    folder = _folder(args.path)
    if folder is None:
        return 1

    store = MetadataStore(settings.path("metadata_dir"))
    if not store.exists(folder):
        print(f"Error: {folder} is not managed. Run 'episodematch init' first.")
        return 1
    try:
        metadata = store.read(folder)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    files = [f for f in list_files(folder) if is_video_file(f)]
    assignments = recognize_media_files(files, metadata.tv_show)
    if not assignments:
        print("No episodes recognized.")
        return 0

    print(f"Recognized {len(assignments)} of {len(files)} video file(s):")
    for a in assignments:
        print(f"  S{a.season:02d}E{a.episode:02d}  {basename(a.path)}")

    if not args.apply:
        return 0

    confirmation = StaticConfirmation(True) if args.yes else ConsoleConfirmation()
    matcher = BatchMatcher(store, confirmation)
    result = matcher.match_episodes(folder, assignments)
    if not result.is_valid:
        print(result.error)
        return 1
    print(f"Updated metadata for {len(assignments)} file(s).")
    return 0


def _open_store(settings: SettingsManager) -> TaskStore:
    return TaskStore.create(archive=PlanArchive(settings.path("plans_db")))


def cmd_plans(settings: SettingsManager, args: argparse.Namespace) -> int:
    """List pending plans from the archive."""
    store = _open_store(settings)
    try:
        plans = store.list_pending_plans()
    finally:
        store.shutdown()

    if not plans:
        print("No pending plans.")
        return 0

    for plan in plans:
        print(f"{plan.task_id}  {plan.kind:<9}  {plan.created_at}  {plan.media_folder_path}")
        for item in plan.items:
            data = item.to_dict()
            if plan.kind == "rename":
                print(f"    {data['from']}")
                print(f"      -> {data['to']}")
            else:
                print(f"    S{data['season']:02d}E{data['episode']:02d}  {data['path']}")
    return 0


def cmd_plan_status(settings: SettingsManager, args: argparse.Namespace) -> int:
    """Mark a pending plan rejected or completed."""
    store = _open_store(settings)
    try:
        store.update_plan_status(args.plan_id, args.status)
    except StagingError as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.shutdown()
    print(f"Plan {args.plan_id} marked {args.status}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="episodematch",
        description="Match TV show video files to TMDB episodes."
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for settings, metadata and plans (default: app-data dir)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed debug information"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init", help="Start managing a folder as a TMDB TV show"
    )
    init_parser.add_argument("path", type=Path, help="Media folder")
    init_parser.add_argument(
        "--tmdb-id",
        type=int,
        required=True,
        help="TMDB TV series ID"
    )
    init_parser.add_argument(
        "--language",
        type=str,
        default=None,
        help="Language for TMDB results (default: tmdb_language setting)"
    )
    init_parser.set_defaults(func=cmd_init)

    recognize_parser = subparsers.add_parser(
        "recognize", help="Recognize episodes in a managed folder"
    )
    recognize_parser.add_argument("path", type=Path, help="Media folder")
    recognize_parser.add_argument(
        "--apply",
        action="store_true",
        help="Commit the recognized episodes to the folder's metadata"
    )
    recognize_parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Do not ask for confirmation with --apply"
    )
    recognize_parser.set_defaults(func=cmd_recognize)

    plans_parser = subparsers.add_parser("plans", help="List pending plans")
    plans_parser.set_defaults(func=cmd_plans)

    status_parser = subparsers.add_parser(
        "plan-status", help="Mark a pending plan rejected or completed"
    )
    status_parser.add_argument("plan_id", help="Plan (task) ID")
    status_parser.add_argument("status", choices=["rejected", "completed"])
    status_parser.set_defaults(func=cmd_plan_status)

    parsed_args = parser.parse_args(args)
    configure_logging(parsed_args.verbose)

    settings = SettingsManager(parsed_args.data_dir)
    try:
        return parsed_args.func(settings, parsed_args)
    except KeyboardInterrupt:
        print("\nAborted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
