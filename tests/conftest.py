"""
Pytest configuration and fixtures for episodematch tests.
"""
import pytest

from episodematch.channels import Broadcaster, StaticConfirmation
from episodematch.metadata import MetadataStore
from episodematch.models import (
    MediaMetadata, TMDBEpisode, TMDBSeason, TMDBTvShow,
)
from episodematch.paths import to_posix


def make_show(seasons: dict[int, int], show_id: int = 100, name: str = "Test Show") -> TMDBTvShow:
    """Build a catalog with ``{season_number: episode_count}``."""
    return TMDBTvShow(
        id=show_id,
        name=name,
        seasons=[
            TMDBSeason(
                season_number=s,
                name=f"Season {s}",
                episodes=[
                    TMDBEpisode(series_id=show_id, season_number=s, episode_number=e, name=f"Episode {e}")
                    for e in range(1, count + 1)
                ],
            )
            for s, count in seasons.items()
        ],
    )


class RecordingObserver:
    """Broadcast observer that remembers every event."""

    def __init__(self):
        self.events = []

    def __call__(self, event, data, client_id):
        self.events.append((event, data, client_id))


@pytest.fixture
def show() -> TMDBTvShow:
    """Two seasons: S1 with 3 episodes, S2 with 2."""
    return make_show({1: 3, 2: 2})


@pytest.fixture
def media_folder(tmp_path):
    """A real folder with a few video files and some noise."""
    folder = tmp_path / "Show"
    (folder / "Season 1").mkdir(parents=True)
    (folder / "Season 2").mkdir()
    for name in ("Show S01E01.mkv", "Show S01E02.mkv", "Show S01E03.mkv"):
        (folder / "Season 1" / name).write_bytes(b"")
    (folder / "Season 2" / "Show S02E01.mp4").write_bytes(b"")
    (folder / "Season 2" / ".DS_Store").write_bytes(b"")
    (folder / "notes.txt").write_text("hello")
    return folder


@pytest.fixture
def folder_path(media_folder) -> str:
    return to_posix(str(media_folder))


@pytest.fixture
def metadata_store(tmp_path) -> MetadataStore:
    return MetadataStore(tmp_path / "metadata")


@pytest.fixture
def managed_folder(metadata_store, folder_path, show) -> str:
    """The media folder, with a metadata record carrying *show*."""
    metadata_store.write(MediaMetadata(media_folder_path=folder_path, tv_show=show))
    return folder_path


@pytest.fixture
def confirm_yes() -> StaticConfirmation:
    return StaticConfirmation(True)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def broadcaster(observer) -> Broadcaster:
    b = Broadcaster()
    b.subscribe(observer)
    return b
