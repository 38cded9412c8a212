"""
Tests for episodematch.cli.
"""
import pytest
from conftest import make_show

from episodematch import cli
from episodematch.archive import PlanArchive
from episodematch.metadata import MetadataStore
from episodematch.models import FileAssignment, MediaMetadata, PendingPlan
from episodematch.paths import to_posix


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def resolved_folder(media_folder):
    return to_posix(str(media_folder.resolve()))


class FakeTMDBClient:
    def __init__(self, api_key, cache=None, language=None):
        self.language = language

    def get_tv_show(self, tv_id):
        return make_show({1: 3, 2: 2}, show_id=tv_id) if tv_id == 100 else None


class TestInit:
    def test_creates_record(self, monkeypatch, capsys, data_dir, media_folder, resolved_folder):
        monkeypatch.setattr(cli, "TMDBClient", FakeTMDBClient)
        monkeypatch.setenv("TMDB_API_KEY", "key")

        assert cli.main(["--data-dir", str(data_dir), "init", str(media_folder), "--tmdb-id", "100"]) == 0

        record = MetadataStore(data_dir / "metadata").read(resolved_folder)
        assert record.tv_show.id == 100
        assert "2 season(s), 5 episode(s)" in capsys.readouterr().out

    def test_unknown_show(self, monkeypatch, data_dir, media_folder):
        monkeypatch.setattr(cli, "TMDBClient", FakeTMDBClient)
        monkeypatch.setenv("TMDB_API_KEY", "key")
        assert cli.main(["--data-dir", str(data_dir), "init", str(media_folder), "--tmdb-id", "7"]) == 1

    def test_missing_folder(self, data_dir, tmp_path):
        assert cli.main(["--data-dir", str(data_dir), "init", str(tmp_path / "nope"), "--tmdb-id", "1"]) == 1


class TestRecognize:
    def _manage(self, data_dir, folder):
        MetadataStore(data_dir / "metadata").write(
            MediaMetadata(media_folder_path=folder, tv_show=make_show({1: 3, 2: 2}))
        )

    def test_preview_only(self, capsys, data_dir, media_folder, resolved_folder):
        self._manage(data_dir, resolved_folder)
        assert cli.main(["--data-dir", str(data_dir), "recognize", str(media_folder)]) == 0

        out = capsys.readouterr().out
        assert "Recognized 4 of 4 video file(s):" in out
        assert "S02E01  Show S02E01.mp4" in out
        assert MetadataStore(data_dir / "metadata").read(resolved_folder).media_files == []

    def test_apply(self, data_dir, media_folder, resolved_folder):
        self._manage(data_dir, resolved_folder)
        args = ["--data-dir", str(data_dir), "recognize", str(media_folder), "--apply", "--yes"]
        assert cli.main(args) == 0

        files = MetadataStore(data_dir / "metadata").read(resolved_folder).media_files
        assert [(f.season_number, f.episode_number) for f in files] == [(1, 1), (1, 2), (1, 3), (2, 1)]

    def test_unmanaged(self, capsys, data_dir, media_folder):
        assert cli.main(["--data-dir", str(data_dir), "recognize", str(media_folder)]) == 1
        assert "is not managed" in capsys.readouterr().out


class TestPlans:
    def _archive_plan(self, data_dir):
        archive = PlanArchive(data_dir / "plans.db")
        archive.save_plan(PendingPlan(
            task_id="T1",
            media_folder_path="/show",
            kind="recognize",
            items=(FileAssignment(1, 1, "/show/e1.mkv"),),
            created_at="2026-01-01T00:00:00+00:00",
        ))
        archive.close()

    def test_list(self, capsys, data_dir):
        self._archive_plan(data_dir)
        assert cli.main(["--data-dir", str(data_dir), "plans"]) == 0
        out = capsys.readouterr().out
        assert "T1" in out
        assert "S01E01  /show/e1.mkv" in out

    def test_empty(self, capsys, data_dir):
        assert cli.main(["--data-dir", str(data_dir), "plans"]) == 0
        assert "No pending plans." in capsys.readouterr().out

    def test_plan_status(self, capsys, data_dir):
        self._archive_plan(data_dir)
        assert cli.main(["--data-dir", str(data_dir), "plan-status", "T1", "completed"]) == 0
        assert cli.main(["--data-dir", str(data_dir), "plans"]) == 0
        assert "No pending plans." in capsys.readouterr().out

    def test_plan_status_unknown(self, data_dir):
        assert cli.main(["--data-dir", str(data_dir), "plan-status", "nope", "rejected"]) == 1
