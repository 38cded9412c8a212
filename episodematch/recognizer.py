"""Recognize which files in a media folder belong to which episode."""
import logging

from .models import FileAssignment, TMDBTvShow
from .patterns import lookup

log = logging.getLogger(__name__)


def recognize_media_files(
    files: list[str] | None,
    catalog: TMDBTvShow | None,
) -> list[FileAssignment]:
    """
    Match every catalog episode against a folder's file list.

    Args:
        files: File paths of the media folder
        catalog: TV show with its season/episode tree

    Returns:
        One FileAssignment per catalog episode that has a matching file,
        in catalog order.  Empty if either input is missing.
    """
    if files is None or catalog is None:
        return []

    assignments = []
    for season in catalog.seasons:
        for episode in season.episodes or []:
            path = lookup(files, season.season_number, episode.episode_number)
            if path is None:
                continue
            assignments.append(FileAssignment(
                season=season.season_number,
                episode=episode.episode_number,
                path=path,
            ))

    log.debug(
        "Recognized %d episode file(s) for '%s' among %d file(s)",
        len(assignments), catalog.name, len(files),
    )
    return assignments
