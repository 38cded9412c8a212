"""Data models for the episodematch package."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

TaskKind = Literal["rename", "recognize"]
PlanStatus = Literal["pending", "rejected", "completed"]


def non_negative_int(value: Any, name: str) -> int:
    """Return *value* if it is a non-negative int (bools and floats rejected)."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


@dataclass(frozen=True)
class FileAssignment:
    """Claims that *path* is the video file for *season*/*episode*."""
    season: int
    episode: int
    path: str

    def to_dict(self) -> dict[str, Any]:
        return {"season": self.season, "episode": self.episode, "path": self.path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileAssignment:
        return cls(
            season=non_negative_int(data["season"], "season"),
            episode=non_negative_int(data["episode"], "episode"),
            path=str(data["path"]),
        )


@dataclass(frozen=True)
class RenameOperation:
    """A proposed filesystem rename."""
    from_path: str
    to_path: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_path, "to": self.to_path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenameOperation:
        return cls(from_path=str(data["from"]), to_path=str(data["to"]))


StagedItem = FileAssignment | RenameOperation


@dataclass
class ValidationResult:
    """Outcome of a validation step, returned rather than raised."""
    is_valid: bool
    error: str | None = None
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None) -> ValidationResult:
        return cls(is_valid=True, value=value)

    @classmethod
    def fail(cls, error: str) -> ValidationResult:
        return cls(is_valid=False, error=error)


@dataclass
class Task:
    """An in-progress batch; the staging store drops it once sealed."""
    task_id: str
    media_folder_path: str
    kind: TaskKind
    items: list[StagedItem] = field(default_factory=list)


@dataclass(frozen=True)
class PendingPlan:
    """Immutable snapshot of a sealed task."""
    task_id: str
    media_folder_path: str
    kind: TaskKind
    items: tuple[StagedItem, ...]
    created_at: str
    status: PlanStatus = "pending"

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "mediaFolderPath": self.media_folder_path,
            "kind": self.kind,
            "items": [item.to_dict() for item in self.items],
            "createdAt": self.created_at,
            "status": self.status,
        }


# ---------------------------------------------------------------------------
# Catalog (TMDB)
# ---------------------------------------------------------------------------

@dataclass
class TMDBEpisode:
    """Represents an episode from TMDB."""
    series_id: int
    season_number: int
    episode_number: int
    name: str
    overview: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "series_id": self.series_id,
            "season_number": self.season_number,
            "episode_number": self.episode_number,
            "name": self.name,
            "overview": self.overview,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TMDBEpisode:
        return cls(
            series_id=data.get("series_id", 0),
            season_number=data["season_number"],
            episode_number=data["episode_number"],
            name=data.get("name", ""),
            overview=data.get("overview", ""),
        )


@dataclass
class TMDBSeason:
    """A season and, when fetched, its episodes."""
    season_number: int
    name: str = ""
    episodes: list[TMDBEpisode] | None = None

    def find_episode(self, episode_number: int) -> TMDBEpisode | None:
        for episode in self.episodes or []:
            if episode.episode_number == episode_number:
                return episode
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "season_number": self.season_number,
            "name": self.name,
            "episodes": (
                None if self.episodes is None
                else [ep.to_dict() for ep in self.episodes]
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TMDBSeason:
        episodes = data.get("episodes")
        return cls(
            season_number=data["season_number"],
            name=data.get("name", ""),
            episodes=(
                None if episodes is None
                else [TMDBEpisode.from_dict(ep) for ep in episodes]
            ),
        )


@dataclass
class TMDBTvShow:
    """Represents a TV series from TMDB together with its season tree."""
    id: int
    name: str
    original_name: str = ""
    first_air_year: int | None = None
    overview: str = ""
    seasons: list[TMDBSeason] = field(default_factory=list)

    def find_season(self, season_number: int) -> TMDBSeason | None:
        for season in self.seasons:
            if season.season_number == season_number:
                return season
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "original_name": self.original_name,
            "first_air_year": self.first_air_year,
            "overview": self.overview,
            "seasons": [season.to_dict() for season in self.seasons],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TMDBTvShow:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            original_name=data.get("original_name", ""),
            first_air_year=data.get("first_air_year"),
            overview=data.get("overview", ""),
            seasons=[TMDBSeason.from_dict(s) for s in data.get("seasons") or []],
        )


# ---------------------------------------------------------------------------
# Per-folder metadata record
# ---------------------------------------------------------------------------

@dataclass
class MediaFile:
    """One committed file-to-episode assignment."""
    absolute_path: str
    season_number: int
    episode_number: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "absolute_path": self.absolute_path,
            "season_number": self.season_number,
            "episode_number": self.episode_number,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaFile:
        return cls(
            absolute_path=data["absolute_path"],
            season_number=data["season_number"],
            episode_number=data["episode_number"],
        )


@dataclass
class MediaMetadata:
    """The metadata record kept for one managed media folder."""
    media_folder_path: str
    tv_show: TMDBTvShow | None = None
    media_files: list[MediaFile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "media_folder_path": self.media_folder_path,
            "tv_show": self.tv_show.to_dict() if self.tv_show else None,
            "media_files": [f.to_dict() for f in self.media_files],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaMetadata:
        tv_show = data.get("tv_show")
        return cls(
            media_folder_path=data["media_folder_path"],
            tv_show=TMDBTvShow.from_dict(tv_show) if tv_show else None,
            media_files=[MediaFile.from_dict(f) for f in data.get("media_files") or []],
        )
