"""Task staging store: accumulate items, seal, publish pending plans.

A caller opens a task for a media folder, adds items one call at a
time, then ends the task.  Ending seals it for good and publishes an
immutable :class:`PendingPlan` snapshot that the UI (or any external
committer) reads later.  Items are never validated here; the store only
enforces the lifecycle.

Open tasks live in memory only.  Sealed plans are also written to a
:class:`PlanArchive` when one is attached, so they survive a restart.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from .archive import PlanArchive
from .models import (
    FileAssignment, PendingPlan, PlanStatus, RenameOperation, StagedItem, Task, TaskKind,
)
from .paths import to_posix

log = logging.getLogger(__name__)

ITEM_TYPES: dict[str, type] = {
    "rename": RenameOperation,
    "recognize": FileAssignment,
}


class StagingError(Exception):
    """Base class for staging store errors."""
    pass


class UnknownTaskError(StagingError):
    def __init__(self, task_id: str):
        super().__init__(f'unknown task "{task_id}"')
        self.task_id = task_id


class TaskSealedError(StagingError):
    def __init__(self, task_id: str):
        super().__init__(f'task already sealed "{task_id}"')
        self.task_id = task_id


class TaskKindError(StagingError):
    def __init__(self, task_id: str, kind: str, item: object):
        super().__init__(
            f'task "{task_id}" is a {kind} task and cannot hold '
            f'{type(item).__name__} items'
        )


class FolderNotManagedError(StagingError):
    def __init__(self, folder_path: str):
        super().__init__(f'folderPath "{folder_path}" is not managed')
        self.folder_path = folder_path


class UnknownPlanError(StagingError):
    def __init__(self, plan_id: str):
        super().__init__(f'plan "{plan_id}" not found')
        self.plan_id = plan_id


class PlanArchiveError(StagingError):
    """The plan archive could not be written."""

    def __init__(self, plan_id: str, error: Exception):
        super().__init__(f'failed to archive plan "{plan_id}": {error}')
        self.plan_id = plan_id


def _new_uuid() -> str:
    return str(uuid.uuid4())


class TaskStore:
    """Keyed store of open tasks and the list of sealed plans.

    One writer at a time: every mutation holds ``_lock``.

    Usage::

        store = TaskStore.create(archive=PlanArchive(db_path))
        task_id = store.begin_task("/media/Show", "recognize")
        store.add_item(task_id, FileAssignment(1, 1, "/media/Show/e1.mkv"))
        store.end_task(task_id)
        store.list_pending_plans()
        store.shutdown()
    """

    def __init__(
        self,
        archive: PlanArchive | None = None,
        is_managed: Callable[[str], bool] | None = None,
        id_factory: Callable[[], str] = _new_uuid,
    ):
        self._archive = archive
        self._is_managed = is_managed
        self._id_factory = id_factory
        # Open tasks only; sealed ones are dropped and remembered by id.
        self._tasks: dict[str, Task] = {}
        self._issued_ids: set[str] = set()
        self._sealed_ids: set[str] = set()
        self._plans: list[PendingPlan] = []
        self._lock = threading.Lock()
        self._running = False

    # -- lifecycle -------------------------------------------------

    @classmethod
    def create(
        cls,
        archive: PlanArchive | None = None,
        is_managed: Callable[[str], bool] | None = None,
        id_factory: Callable[[], str] = _new_uuid,
    ) -> TaskStore:
        """Build a running store, reloading archived pending plans."""
        store = cls(archive=archive, is_managed=is_managed, id_factory=id_factory)
        if archive is not None:
            store._plans = archive.load_pending()
            store._issued_ids.update(plan.task_id for plan in store._plans)
            store._sealed_ids.update(plan.task_id for plan in store._plans)
            log.info("Loaded %d pending plan(s) from archive", len(store._plans))
        store._running = True
        return store

    def shutdown(self) -> None:
        """Stop the store; open tasks are discarded."""
        with self._lock:
            if self._tasks:
                log.warning("Discarding %d open task(s) on shutdown", len(self._tasks))
            self._tasks.clear()
            self._running = False
        if self._archive is not None:
            self._archive.close()

    @property
    def running(self) -> bool:
        return self._running

    def _check_running(self) -> None:
        if not self._running:
            raise StagingError("task store is not running")

    # -- tasks -----------------------------------------------------

    def begin_task(self, media_folder_path: str, kind: TaskKind) -> str:
        """
        Open a new, empty task.

        Returns:
            The fresh task id

        Raises:
            FolderNotManagedError: if the folder is invalid or not managed
        """
        if kind not in ITEM_TYPES:
            raise ValueError(f"Invalid task kind: {kind}")
        try:
            folder = to_posix(media_folder_path)
        except ValueError:
            raise FolderNotManagedError(media_folder_path) from None
        if self._is_managed is not None and not self._is_managed(folder):
            raise FolderNotManagedError(folder)

        with self._lock:
            self._check_running()
            task_id = self._id_factory()
            if task_id in self._issued_ids:
                raise StagingError(f'task id "{task_id}" was already issued')
            self._issued_ids.add(task_id)
            self._tasks[task_id] = Task(
                task_id=task_id,
                media_folder_path=folder,
                kind=kind,
            )

        log.info("Began %s task %s for %s", kind, task_id, folder)
        return task_id

    def _open_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is not None:
            return task
        if task_id in self._sealed_ids:
            raise TaskSealedError(task_id)
        raise UnknownTaskError(task_id)

    def add_item(self, task_id: str, item: StagedItem) -> int:
        """
        Append *item* to an open task.

        Returns:
            Number of items staged so far

        Raises:
            UnknownTaskError: no task with that id
            TaskSealedError: the task was already ended
            TaskKindError: *item* does not fit the task kind
        """
        with self._lock:
            self._check_running()
            task = self._open_task(task_id)
            if not isinstance(item, ITEM_TYPES[task.kind]):
                raise TaskKindError(task_id, task.kind, item)
            task.items.append(item)
            count = len(task.items)

        log.debug("Task %s: staged item %d: %s", task_id, count, item)
        return count

    def end_task(self, task_id: str) -> int:
        """
        Seal a task and publish it as a pending plan.

        The task is dropped once sealed; its id stays reserved.  It stays
        open if the archive cannot store the plan.

        Returns:
            Number of items in the published plan

        Raises:
            UnknownTaskError: no task with that id
            TaskSealedError: the task was already ended
            PlanArchiveError: the archive write failed
        """
        with self._lock:
            self._check_running()
            task = self._open_task(task_id)

            plan = PendingPlan(
                task_id=task.task_id,
                media_folder_path=task.media_folder_path,
                kind=task.kind,
                items=tuple(task.items),
                created_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            )
            if self._archive is not None:
                try:
                    self._archive.save_plan(plan)
                except sqlite3.Error as e:
                    log.error("Could not archive plan %s: %s", task_id, e)
                    raise PlanArchiveError(task_id, e) from e
            del self._tasks[task_id]
            self._sealed_ids.add(task_id)
            self._plans.append(plan)

        log.info("Sealed %s task %s with %d item(s)", plan.kind, task_id, len(plan.items))
        return len(plan.items)

    def get_task(self, task_id: str) -> Task | None:
        """Return a copy of an open task, or None if unknown or sealed."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            return replace(task, items=list(task.items))

    def is_sealed(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._sealed_ids

    # -- plans -----------------------------------------------------

    def list_pending_plans(self, kind: TaskKind | None = None) -> list[PendingPlan]:
        """Snapshot of sealed plans not yet rejected or completed."""
        with self._lock:
            return [p for p in self._plans if kind is None or p.kind == kind]

    def update_plan_status(self, plan_id: str, status: PlanStatus) -> PendingPlan:
        """
        Mark a pending plan as rejected or completed.

        The plan leaves the pending list; nothing is applied here.

        Raises:
            UnknownPlanError: no pending plan with that id
            PlanArchiveError: the archive write failed
        """
        if status not in ("rejected", "completed"):
            raise ValueError(f"Invalid plan status: {status}")

        with self._lock:
            self._check_running()
            for index, plan in enumerate(self._plans):
                if plan.task_id == plan_id:
                    break
            else:
                raise UnknownPlanError(plan_id)

            if self._archive is not None:
                try:
                    self._archive.mark_status(plan_id, status)
                except sqlite3.Error as e:
                    log.error("Could not archive status of plan %s: %s", plan_id, e)
                    raise PlanArchiveError(plan_id, e) from e
            del self._plans[index]

        log.info("Plan %s marked %s", plan_id, status)
        return replace(plan, status=status)
