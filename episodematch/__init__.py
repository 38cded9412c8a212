"""
EpisodeMatch - episode recognition for TV show folders

Matches video files to TMDB episodes and stages batch operations for
user confirmation.
"""
from .models import (
    FileAssignment,
    RenameOperation,
    ValidationResult,
    Task,
    PendingPlan,
    TMDBTvShow,
    TMDBSeason,
    TMDBEpisode,
    MediaFile,
    MediaMetadata,
)
from .patterns import matches_episode_pattern, lookup, is_video_file
from .recognizer import recognize_media_files
from .batch import BatchMatcher
from .staging import TaskStore, StagingError
from .tools import EpisodeTools
from .tmdb import TMDBClient, TMDBError

__version__ = "0.1.0"
__all__ = [
    "FileAssignment",
    "RenameOperation",
    "ValidationResult",
    "Task",
    "PendingPlan",
    "TMDBTvShow",
    "TMDBSeason",
    "TMDBEpisode",
    "MediaFile",
    "MediaMetadata",
    "matches_episode_pattern",
    "lookup",
    "is_video_file",
    "recognize_media_files",
    "BatchMatcher",
    "TaskStore",
    "StagingError",
    "EpisodeTools",
    "TMDBClient",
    "TMDBError",
]
