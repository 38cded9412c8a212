"""
Tests for episodematch.staging: the task staging store.
"""
import sqlite3
import threading

import pytest

from episodematch.archive import PlanArchive
from episodematch.models import FileAssignment, RenameOperation
from episodematch.staging import (
    FolderNotManagedError,
    PlanArchiveError,
    StagingError,
    TaskKindError,
    TaskSealedError,
    TaskStore,
    UnknownPlanError,
    UnknownTaskError,
)


def sequential_ids(*ids):
    it = iter(ids)
    return lambda: next(it)


@pytest.fixture
def store():
    s = TaskStore.create(id_factory=sequential_ids("T1", "T2", "T3"))
    yield s
    s.shutdown()


class TestTaskLifecycle:
    def test_begin_add_end(self, store):
        task_id = store.begin_task("/show", "recognize")
        assert task_id == "T1"
        assert store.add_item(task_id, FileAssignment(1, 1, "/show/S01/e1.mkv")) == 1
        assert store.add_item(task_id, FileAssignment(1, 2, "/show/S01/e2.mkv")) == 2
        assert store.end_task(task_id) == 2

        plans = store.list_pending_plans()
        assert len(plans) == 1
        assert plans[0].task_id == "T1"
        assert plans[0].items == (
            FileAssignment(1, 1, "/show/S01/e1.mkv"),
            FileAssignment(1, 2, "/show/S01/e2.mkv"),
        )

    def test_folder_path_is_normalized(self, store):
        task_id = store.begin_task("C:\\Media\\Show\\", "rename")
        assert store.get_task(task_id).media_folder_path == "/C/Media/Show"

    def test_ids_are_fresh_uuids_by_default(self):
        store = TaskStore.create()
        first = store.begin_task("/show", "recognize")
        second = store.begin_task("/show", "recognize")
        assert first != second
        assert len(first) == 36

    def test_reused_id_rejected(self):
        store = TaskStore.create(id_factory=lambda: "same")
        store.begin_task("/show", "recognize")
        with pytest.raises(StagingError):
            store.begin_task("/show", "recognize")

    def test_invalid_kind(self, store):
        with pytest.raises(ValueError):
            store.begin_task("/show", "delete")


class TestTaskErrors:
    def test_unknown_task(self, store):
        with pytest.raises(UnknownTaskError, match='unknown task "nope"'):
            store.add_item("nope", FileAssignment(1, 1, "/show/e1.mkv"))
        with pytest.raises(UnknownTaskError):
            store.end_task("nope")

    def test_add_after_end(self, store):
        task_id = store.begin_task("/show", "recognize")
        store.add_item(task_id, FileAssignment(1, 1, "/show/e1.mkv"))
        store.end_task(task_id)
        with pytest.raises(TaskSealedError, match="task already sealed"):
            store.add_item(task_id, FileAssignment(1, 2, "/show/e2.mkv"))

    def test_double_end_does_not_duplicate_plan(self, store):
        task_id = store.begin_task("/show", "recognize")
        store.end_task(task_id)
        with pytest.raises(TaskSealedError):
            store.end_task(task_id)
        assert len(store.list_pending_plans()) == 1

    def test_sealed_task_is_released(self, store):
        task_id = store.begin_task("/show", "recognize")
        store.add_item(task_id, FileAssignment(1, 1, "/show/e1.mkv"))
        assert not store.is_sealed(task_id)
        store.end_task(task_id)
        assert store.get_task(task_id) is None
        assert store.is_sealed(task_id)
        assert not store.is_sealed("nope")

    def test_item_kind_mismatch(self, store):
        task_id = store.begin_task("/show", "recognize")
        with pytest.raises(TaskKindError):
            store.add_item(task_id, RenameOperation("/show/a.mkv", "/show/b.mkv"))

    def test_unmanaged_folder(self):
        store = TaskStore.create(is_managed=lambda folder: folder == "/managed")
        assert store.begin_task("/managed", "recognize")
        with pytest.raises(FolderNotManagedError, match='folderPath "/other" is not managed'):
            store.begin_task("/other", "recognize")

    def test_relative_folder(self, store):
        with pytest.raises(FolderNotManagedError):
            store.begin_task("show", "recognize")

    def test_store_must_be_started(self):
        with pytest.raises(StagingError, match="not running"):
            TaskStore().begin_task("/show", "recognize")


class TestSnapshots:
    def test_plan_does_not_follow_task_copies(self, store):
        task_id = store.begin_task("/show", "recognize")
        store.add_item(task_id, FileAssignment(1, 1, "/show/e1.mkv"))

        task = store.get_task(task_id)
        task.items.append(FileAssignment(9, 9, "/show/e9.mkv"))
        assert store.get_task(task_id).items == [FileAssignment(1, 1, "/show/e1.mkv")]

        store.end_task(task_id)
        assert store.list_pending_plans()[0].items == (FileAssignment(1, 1, "/show/e1.mkv"),)

    def test_list_filters_by_kind(self, store):
        rename_id = store.begin_task("/show", "rename")
        store.add_item(rename_id, RenameOperation("/show/a.mkv", "/show/b.mkv"))
        store.end_task(rename_id)
        recognize_id = store.begin_task("/show", "recognize")
        store.end_task(recognize_id)

        assert [p.task_id for p in store.list_pending_plans("rename")] == [rename_id]
        assert [p.task_id for p in store.list_pending_plans("recognize")] == [recognize_id]

    def test_concurrent_adds(self):
        store = TaskStore.create()
        task_id = store.begin_task("/show", "recognize")

        def worker(n):
            for e in range(50):
                store.add_item(task_id, FileAssignment(n, e, f"/show/{n}-{e}.mkv"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.end_task(task_id) == 400


class TestPlanStatus:
    def test_completed_plan_leaves_pending_list(self, store):
        task_id = store.begin_task("/show", "recognize")
        store.end_task(task_id)
        plan = store.update_plan_status(task_id, "completed")
        assert plan.status == "completed"
        assert store.list_pending_plans() == []

    def test_unknown_plan(self, store):
        with pytest.raises(UnknownPlanError):
            store.update_plan_status("nope", "rejected")

    def test_invalid_status(self, store):
        with pytest.raises(ValueError):
            store.update_plan_status("T1", "pending")


class TestShutdown:
    def test_operations_fail_after_shutdown(self):
        store = TaskStore.create()
        store.begin_task("/show", "recognize")
        store.shutdown()
        assert not store.running
        with pytest.raises(StagingError):
            store.begin_task("/show", "recognize")

    def test_sealed_plans_survive_restart(self, tmp_path):
        db = tmp_path / "plans.db"
        store = TaskStore.create(archive=PlanArchive(db), id_factory=sequential_ids("T1", "T2"))
        sealed = store.begin_task("/show", "recognize")
        store.add_item(sealed, FileAssignment(1, 1, "/show/e1.mkv"))
        store.end_task(sealed)
        store.begin_task("/show", "recognize")  # never ended
        store.shutdown()

        restarted = TaskStore.create(archive=PlanArchive(db), id_factory=sequential_ids("T1", "T3"))
        try:
            plans = restarted.list_pending_plans()
            assert [p.task_id for p in plans] == ["T1"]
            assert plans[0].items == (FileAssignment(1, 1, "/show/e1.mkv"),)
            assert restarted.get_task("T2") is None
            with pytest.raises(StagingError):
                restarted.begin_task("/show", "recognize")
        finally:
            restarted.shutdown()

    def test_status_change_is_archived(self, tmp_path):
        db = tmp_path / "plans.db"
        store = TaskStore.create(archive=PlanArchive(db), id_factory=sequential_ids("T1"))
        store.end_task(store.begin_task("/show", "rename"))
        store.update_plan_status("T1", "rejected")
        store.shutdown()

        archive = PlanArchive(db)
        try:
            assert archive.load_pending() == []
        finally:
            archive.close()

    def test_reloaded_plans_count_as_sealed(self, tmp_path):
        db = tmp_path / "plans.db"
        store = TaskStore.create(archive=PlanArchive(db), id_factory=sequential_ids("T1"))
        store.end_task(store.begin_task("/show", "rename"))
        store.shutdown()

        restarted = TaskStore.create(archive=PlanArchive(db))
        try:
            assert restarted.is_sealed("T1")
            with pytest.raises(TaskSealedError):
                restarted.add_item("T1", RenameOperation("/show/a.mkv", "/show/b.mkv"))
        finally:
            restarted.shutdown()


class FlakyArchive(PlanArchive):
    """Fails the first write of each kind, then behaves."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.failures = {"save_plan", "mark_status"}

    def save_plan(self, plan):
        if "save_plan" in self.failures:
            self.failures.discard("save_plan")
            raise sqlite3.OperationalError("database is locked")
        super().save_plan(plan)

    def mark_status(self, plan_id, status):
        if "mark_status" in self.failures:
            self.failures.discard("mark_status")
            raise sqlite3.OperationalError("database is locked")
        super().mark_status(plan_id, status)


class TestArchiveErrors:
    @pytest.fixture
    def flaky_store(self, tmp_path):
        s = TaskStore.create(archive=FlakyArchive(tmp_path / "plans.db"), id_factory=sequential_ids("T1"))
        yield s
        s.shutdown()

    def test_failed_end_leaves_task_open(self, flaky_store):
        task_id = flaky_store.begin_task("/show", "recognize")
        flaky_store.add_item(task_id, FileAssignment(1, 1, "/show/e1.mkv"))

        with pytest.raises(PlanArchiveError, match="database is locked"):
            flaky_store.end_task(task_id)
        assert flaky_store.list_pending_plans() == []
        assert not flaky_store.is_sealed(task_id)

        assert flaky_store.end_task(task_id) == 1
        assert [p.task_id for p in flaky_store.list_pending_plans()] == [task_id]

    def test_failed_status_keeps_plan_pending(self, flaky_store):
        task_id = flaky_store.begin_task("/show", "rename")
        flaky_store.add_item(task_id, RenameOperation("/show/a.mkv", "/show/b.mkv"))
        with pytest.raises(PlanArchiveError):
            flaky_store.end_task(task_id)
        flaky_store.end_task(task_id)

        with pytest.raises(PlanArchiveError, match="database is locked"):
            flaky_store.update_plan_status(task_id, "completed")
        assert len(flaky_store.list_pending_plans()) == 1

        flaky_store.update_plan_status(task_id, "completed")
        assert flaky_store.list_pending_plans() == []
