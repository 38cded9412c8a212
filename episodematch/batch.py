"""Validate, confirm and commit batches of episode assignments.

``BatchMatcher.match_episodes`` runs the whole protocol:

  1. the folder must be managed (a metadata record exists);
  2. the record must load, belong to the same folder and carry a TV
     show catalog;
  3. the folder is listed from the live filesystem;
  4. every assignment is validated against the listing and the catalog,
     collecting *all* errors;
  5. any error rejects the whole batch, nothing is written;
  6. the user confirms a summary of the batch;
  7. assignments are applied to the record's file list in order;
  8. the record is written and observers are notified.

Every failure is returned as a ``ValidationResult`` so callers can show
the exact message for each offending file.
"""
from __future__ import annotations

import logging
from typing import Callable

from .channels import (
    METADATA_UPDATED, Broadcaster, CancelToken, ConfirmationChannel,
)
from .metadata import MetadataStore
from .models import FileAssignment, MediaFile, MediaMetadata, TMDBTvShow, ValidationResult
from .paths import basename, list_files, same_path, to_posix

log = logging.getLogger(__name__)

ERROR_PREFIX = "Error Reason: "
USER_CANCELLED = "User cancelled the operation"


def _posix_or_raw(path: str) -> str:
    try:
        return to_posix(path)
    except ValueError:
        return path


# ---------------------------------------------------------------------------
# Folder-level validators
# ---------------------------------------------------------------------------

def validate_metadata_exists(store: MetadataStore, folder_path: str) -> ValidationResult:
    """The folder must have a metadata record."""
    folder = _posix_or_raw(folder_path)
    if not store.exists(folder):
        return ValidationResult.fail(
            f'{ERROR_PREFIX}folderPath "{folder}" is not managed'
        )
    return ValidationResult.ok()


def validate_and_load_metadata(store: MetadataStore, folder_path: str) -> ValidationResult:
    """Load the record; the loaded MediaMetadata is the result value."""
    try:
        metadata = store.read(to_posix(folder_path))
    except (OSError, ValueError) as e:
        return ValidationResult.fail(
            f"{ERROR_PREFIX}Failed to read media metadata: {e}"
        )
    return ValidationResult.ok(metadata)


def validate_folder_path_match(folder_path: str, metadata: MediaMetadata) -> ValidationResult:
    """The record must describe the folder it was looked up for."""
    folder = _posix_or_raw(folder_path)
    if _posix_or_raw(metadata.media_folder_path) != folder:
        return ValidationResult.fail(
            f'{ERROR_PREFIX}folderPath "{folder}" does not match metadata '
            f'folder path "{metadata.media_folder_path}"'
        )
    return ValidationResult.ok()


def validate_tv_show_exists(metadata: MediaMetadata) -> ValidationResult:
    if metadata.tv_show is None:
        return ValidationResult.fail(
            f"{ERROR_PREFIX}TMDB TV show data is not available for this media folder"
        )
    return ValidationResult.ok(metadata.tv_show)


# ---------------------------------------------------------------------------
# Per-file validators
# ---------------------------------------------------------------------------

def validate_file_exists(file_path: str, filesystem_files: list[str]) -> ValidationResult:
    """*file_path* must be in the live listing (canonical comparison)."""
    path = _posix_or_raw(file_path)
    for candidate in filesystem_files:
        if same_path(candidate, path):
            return ValidationResult.ok()
    return ValidationResult.fail(f'Path "{path}" is not a file in the media folder')


def validate_season_exists(
    season_number: int,
    tv_show: TMDBTvShow,
    file_path: str,
) -> ValidationResult:
    season = tv_show.find_season(season_number)
    if season is None:
        return ValidationResult.fail(
            f"Season {season_number} does not exist in TMDB TV show "
            f'for file "{_posix_or_raw(file_path)}"'
        )
    return ValidationResult.ok(season)


def validate_episode_exists(
    season_number: int,
    episode_number: int,
    tv_show: TMDBTvShow,
    file_path: str,
) -> ValidationResult:
    result = validate_season_exists(season_number, tv_show, file_path)
    if not result.is_valid:
        return result

    episode = result.value.find_episode(episode_number)
    if episode is None:
        return ValidationResult.fail(
            f"Episode {episode_number} does not exist in season {season_number} "
            f'for file "{_posix_or_raw(file_path)}"'
        )
    return ValidationResult.ok(episode)


def validate_file(
    assignment: FileAssignment,
    filesystem_files: list[str],
    tv_show: TMDBTvShow,
) -> ValidationResult:
    """Validate one assignment; the normalized assignment is the value."""
    path = _posix_or_raw(assignment.path)

    result = validate_file_exists(assignment.path, filesystem_files)
    if not result.is_valid:
        log.warning(
            "File not found in media folder: %s (%d files listed)",
            path, len(filesystem_files),
        )
        return result

    result = validate_season_exists(assignment.season, tv_show, assignment.path)
    if not result.is_valid:
        log.warning(
            "Season %d not found in TMDB for %s; available: %s",
            assignment.season, path, [s.season_number for s in tv_show.seasons],
        )
        return result

    result = validate_episode_exists(
        assignment.season, assignment.episode, tv_show, assignment.path,
    )
    if not result.is_valid:
        log.warning(
            "Episode S%dE%d not found in TMDB for %s",
            assignment.season, assignment.episode, path,
        )
        return result

    return ValidationResult.ok(FileAssignment(assignment.season, assignment.episode, path))


def validate_all_files(
    assignments: list[FileAssignment],
    filesystem_files: list[str],
    tv_show: TMDBTvShow,
) -> tuple[list[FileAssignment], list[str]]:
    """Validate every assignment, never stopping at the first failure.

    Returns:
        Tuple of (validated_assignments, error_messages)
    """
    validated = []
    errors = []
    for assignment in assignments:
        result = validate_file(assignment, filesystem_files, tv_show)
        if result.is_valid:
            validated.append(result.value)
        else:
            errors.append(result.error)
    return validated, errors


# ---------------------------------------------------------------------------
# Commit helpers
# ---------------------------------------------------------------------------

def update_media_files(
    media_files: list[MediaFile],
    video_file_path: str,
    season_number: int,
    episode_number: int,
) -> list[MediaFile]:
    """Assign *video_file_path* to an episode.

    Any entry for the same episode or the same file is dropped first, so
    each episode has at most one file and each file at most one episode.
    """
    kept = [
        f for f in media_files
        if (f.season_number, f.episode_number) != (season_number, episode_number)
        and not same_path(f.absolute_path, video_file_path)
    ]
    log.info(
        'Add media file "%s" season %d episode %d',
        video_file_path, season_number, episode_number,
    )
    kept.append(MediaFile(
        absolute_path=video_file_path,
        season_number=season_number,
        episode_number=episode_number,
    ))
    return kept


def build_confirmation_message(assignments: list[FileAssignment]) -> str:
    lines = [
        f"  • {basename(a.path)} → S{a.season}E{a.episode}"
        for a in assignments
    ]
    return f"Match {len(assignments)} file(s) to episodes?\n\n" + "\n".join(lines)


# ---------------------------------------------------------------------------
# BatchMatcher
# ---------------------------------------------------------------------------

class BatchMatcher:
    """Validate -> confirm -> commit for episode assignments.

    Usage::

        matcher = BatchMatcher(store, ConsoleConfirmation(), Broadcaster())
        result = matcher.match_episodes("/media/Show", assignments)
        if not result.is_valid:
            print(result.error)
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        confirmation: ConfirmationChannel,
        broadcaster: Broadcaster | None = None,
        file_lister: Callable[[str], list[str]] = list_files,
    ):
        self.metadata_store = metadata_store
        self.confirmation = confirmation
        self.broadcaster = broadcaster or Broadcaster()
        self.file_lister = file_lister

    def match_episodes(
        self,
        folder_path: str,
        assignments: list[FileAssignment],
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ValidationResult:
        """
        Validate, confirm and commit *assignments* for *folder_path*.

        Returns:
            ValidationResult; on success ``value`` is the updated record
        """
        log.info("Matching %d file(s) in folder %s", len(assignments), folder_path)

        result = validate_metadata_exists(self.metadata_store, folder_path)
        if not result.is_valid:
            return result
        folder = to_posix(folder_path)

        result = validate_and_load_metadata(self.metadata_store, folder)
        if not result.is_valid:
            return result
        metadata: MediaMetadata = result.value

        for result in (
            validate_folder_path_match(folder, metadata),
            validate_tv_show_exists(metadata),
        ):
            if not result.is_valid:
                return result
        tv_show = metadata.tv_show

        try:
            filesystem_files = self.file_lister(folder)
        except OSError as e:
            log.error("Failed to list files in %s: %s", folder, e)
            return ValidationResult.fail(
                f"{ERROR_PREFIX}Failed to list files from folder: {e}"
            )
        log.info("Listed %d file(s) from %s", len(filesystem_files), folder)

        validated, errors = validate_all_files(assignments, filesystem_files, tv_show)
        log.info(
            "Validation complete: %d valid, %d error(s)", len(validated), len(errors),
        )
        if errors:
            return ValidationResult.fail(
                f"{ERROR_PREFIX}Validation failed:\n" + "\n".join(errors)
            )
        if not validated:
            return ValidationResult.fail(f"{ERROR_PREFIX}No valid files to match")

        result = self._confirm(build_confirmation_message(validated), client_id, cancel_token)
        if not result.is_valid:
            return result

        media_files = list(metadata.media_files)
        for assignment in validated:
            media_files = update_media_files(
                media_files, assignment.path, assignment.season, assignment.episode,
            )
        updated = MediaMetadata(
            media_folder_path=metadata.media_folder_path,
            tv_show=metadata.tv_show,
            media_files=media_files,
        )

        try:
            self.metadata_store.write(updated)
            self.broadcaster.broadcast(
                METADATA_UPDATED, {"folderPath": folder}, client_id,
            )
        except Exception as e:
            log.error("Failed to commit metadata for %s: %s", folder, e)
            return ValidationResult.fail(
                f"{ERROR_PREFIX}Failed to write media metadata: {e}"
            )

        log.info("Updated media metadata for %d file(s) in %s", len(validated), folder)
        return ValidationResult.ok(updated)

    def _confirm(
        self,
        message: str,
        client_id: str | None,
        cancel_token: CancelToken | None,
    ) -> ValidationResult:
        if cancel_token is not None and cancel_token.cancelled:
            return ValidationResult.fail(USER_CANCELLED)

        log.info("Asking for confirmation (client %s)", client_id)
        try:
            confirmed = self.confirmation.ask(
                message, client_id=client_id, cancel_token=cancel_token,
            )
        except TimeoutError:
            log.info("Confirmation timed out; treating as declined")
            return ValidationResult.fail(USER_CANCELLED)
        except Exception as e:
            log.error("Error getting confirmation: %s", e)
            return ValidationResult.fail(
                f"{ERROR_PREFIX}Failed to get user confirmation: {e}"
            )

        if not confirmed or (cancel_token is not None and cancel_token.cancelled):
            log.info("User declined the batch")
            return ValidationResult.fail(USER_CANCELLED)
        return ValidationResult.ok()
