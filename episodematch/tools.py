"""Tool surface: JSON-shaped operations for remote callers.

Every method takes plain values and returns a plain ``dict`` that can
be serialized as-is.  Exceptions from the staging store and malformed
payloads never escape; they come back as ``{"success": False,
"error": "Error Reason: ..."}``.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable

from .batch import ERROR_PREFIX, BatchMatcher
from .channels import RECOGNIZE_PLAN_READY, RENAME_PLAN_READY, Broadcaster, CancelToken
from .models import FileAssignment, RenameOperation, Task, TaskKind, non_negative_int
from .paths import to_posix
from .staging import (
    FolderNotManagedError, StagingError, TaskSealedError, TaskStore, UnknownTaskError,
)

log = logging.getLogger(__name__)

REQUEST_ABORTED = "Request was aborted"

EMPTY_TASK_ERRORS: dict[str, str] = {
    "recognize": "No recognized files in task",
    "rename": "No rename entries in task",
}

PLAN_READY_EVENTS: dict[str, str] = {
    "recognize": RECOGNIZE_PLAN_READY,
    "rename": RENAME_PLAN_READY,
}

# Wire names of the tools, as remote callers know them.
TOOL_NAMES: dict[str, str] = {
    "beginRecognizeTask": "begin_recognize_task",
    "addRecognizedFile": "add_recognized_file",
    "endRecognizeTask": "end_recognize_task",
    "beginRenameTask": "begin_rename_task",
    "addRenameFile": "add_rename_file",
    "endRenameTask": "end_rename_task",
    "getPendingPlans": "get_pending_plans",
    "matchEpisodesInBatch": "match_episodes_in_batch",
    "updatePlan": "update_plan",
}

# Tools that receive the caller's client id.
_CLIENT_SCOPED = {"end_recognize_task", "end_rename_task", "match_episodes_in_batch"}

_ARGUMENT_ALIASES = {"from": "from_path", "to": "to_path"}
_CAMEL_RE = re.compile(r'(?<!^)(?=[A-Z])')


def _snake(name: str) -> str:
    return _ARGUMENT_ALIASES.get(name) or _CAMEL_RE.sub('_', name).lower()


def _failure(message: str) -> dict[str, Any]:
    return {"success": False, "error": f"{ERROR_PREFIX}{message}"}


class EpisodeTools:
    """The tool operations, bound to one task store and batch matcher.

    A task can only be opened on a managed folder.  With a matcher, the
    matcher's metadata store decides which folders are managed and its
    broadcaster announces sealed plans.

    Usage::

        tools = EpisodeTools(store, matcher)
        task = tools.begin_recognize_task("/media/Show")
        tools.add_recognized_file(task["taskId"], 1, 1, "/media/Show/e1.mkv")
        tools.end_recognize_task(task["taskId"])
    """

    def __init__(
        self,
        store: TaskStore,
        matcher: BatchMatcher | None = None,
        broadcaster: Broadcaster | None = None,
        is_managed: Callable[[str], bool] | None = None,
    ):
        self.store = store
        self.matcher = matcher
        if broadcaster is None and matcher is not None:
            broadcaster = matcher.broadcaster
        self.broadcaster = broadcaster
        if is_managed is None and matcher is not None:
            is_managed = matcher.metadata_store.exists
        self.is_managed = is_managed

    def call(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        """Invoke a tool by its wire name with camelCase arguments."""
        method_name = TOOL_NAMES.get(tool_name)
        if method_name is None:
            return _failure(f'Unknown tool "{tool_name}"')
        method: Callable[..., dict[str, Any]] = getattr(self, method_name)
        kwargs = {_snake(key): value for key, value in (arguments or {}).items()}
        if method_name in _CLIENT_SCOPED:
            kwargs["client_id"] = client_id
        try:
            return method(cancel_token=cancel_token, **kwargs)
        except TypeError as e:
            log.warning("[tool][%s] bad arguments: %s", tool_name, e)
            return _failure(f"Invalid arguments: {e}")

    # -- staging ---------------------------------------------------

    def _check_managed(self, media_folder_path: str) -> None:
        if self.is_managed is None:
            return
        try:
            folder = to_posix(media_folder_path)
        except ValueError:
            raise FolderNotManagedError(media_folder_path) from None
        if not self.is_managed(folder):
            raise FolderNotManagedError(folder)

    def _begin(
        self, tool: str, kind: TaskKind, media_folder_path: str,
        cancel_token: CancelToken | None,
    ) -> dict[str, Any]:
        if cancel_token is not None and cancel_token.cancelled:
            return {"success": False, "error": REQUEST_ABORTED}
        log.info("[tool][%s] Starting new task for %s", tool, media_folder_path)
        try:
            self._check_managed(media_folder_path)
            task_id = self.store.begin_task(media_folder_path, kind)
        except StagingError as e:
            log.error("[tool][%s] Failed to create task: %s", tool, e)
            return _failure(f"Failed to create task: {e}")
        log.info("[tool][%s] Task %s created", tool, task_id)
        return {"success": True, "taskId": task_id}

    def _add(
        self, tool: str, task_id: str, build: Callable[[], Any],
        cancel_token: CancelToken | None,
    ) -> dict[str, Any]:
        if cancel_token is not None and cancel_token.cancelled:
            return {"success": False, "error": REQUEST_ABORTED}
        try:
            item = build()
        except (ValueError, TypeError) as e:
            log.warning("[tool][%s] Rejected item for task %s: %s", tool, task_id, e)
            return _failure(str(e))
        try:
            count = self.store.add_item(task_id, item)
        except StagingError as e:
            log.error("[tool][%s] Failed to add item to task %s: %s", tool, task_id, e)
            return _failure(str(e))
        log.info("[tool][%s] Task %s now holds %d item(s)", tool, task_id, count)
        return {"success": True}

    def _end(
        self, tool: str, kind: TaskKind, task_id: str,
        client_id: str | None, cancel_token: CancelToken | None,
    ) -> dict[str, Any]:
        if cancel_token is not None and cancel_token.cancelled:
            return {"success": False, "error": REQUEST_ABORTED}
        log.info("[tool][%s] Ending task %s", tool, task_id)
        try:
            task = self.store.get_task(task_id)
            if task is None:
                if self.store.is_sealed(task_id):
                    raise TaskSealedError(task_id)
                raise UnknownTaskError(task_id)
            if task.kind != kind:
                return _failure(f'task "{task_id}" is not a {kind} task')
            # Empty tasks stay open so the caller can still add items.
            if not task.items:
                log.warning("[tool][%s] No items in task %s", tool, task_id)
                return _failure(EMPTY_TASK_ERRORS[kind])
            count = self.store.end_task(task_id)
        except StagingError as e:
            log.error("[tool][%s] Failed to end task %s: %s", tool, task_id, e)
            return _failure(str(e))
        log.info("[tool][%s] Task %s sealed with %d item(s)", tool, task_id, count)
        self._announce_plan(tool, task, client_id)
        return {"success": True, "taskId": task_id, "fileCount": count}

    def _announce_plan(self, tool: str, task: Task, client_id: str | None) -> None:
        if self.broadcaster is None:
            return
        # The plan is already sealed, so a failing observer cannot undo it.
        try:
            self.broadcaster.broadcast(
                PLAN_READY_EVENTS[task.kind],
                {
                    "taskId": task.task_id,
                    "kind": task.kind,
                    "mediaFolderPath": task.media_folder_path,
                },
                client_id=client_id,
            )
        except Exception as e:
            log.error("[tool][%s] Failed to announce plan %s: %s", tool, task.task_id, e)

    def begin_recognize_task(
        self, media_folder_path: str, cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        return self._begin("beginRecognizeTask", "recognize", media_folder_path, cancel_token)

    def add_recognized_file(
        self,
        task_id: str,
        season: int,
        episode: int,
        path: str,
        cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        return self._add(
            "addRecognizedFile", task_id,
            lambda: FileAssignment(
                season=non_negative_int(season, "season"),
                episode=non_negative_int(episode, "episode"),
                path=to_posix(path),
            ),
            cancel_token,
        )

    def end_recognize_task(
        self,
        task_id: str,
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        return self._end("endRecognizeTask", "recognize", task_id, client_id, cancel_token)

    def begin_rename_task(
        self, media_folder_path: str, cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        return self._begin("beginRenameTask", "rename", media_folder_path, cancel_token)

    def add_rename_file(
        self,
        task_id: str,
        from_path: str,
        to_path: str,
        cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        return self._add(
            "addRenameFile", task_id,
            lambda: RenameOperation(from_path=to_posix(from_path), to_path=to_posix(to_path)),
            cancel_token,
        )

    def end_rename_task(
        self,
        task_id: str,
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        return self._end("endRenameTask", "rename", task_id, client_id, cancel_token)

    # -- plans -----------------------------------------------------

    def get_pending_plans(self, cancel_token: CancelToken | None = None) -> dict[str, Any]:
        """Rename plans and recognize plans, reported separately."""
        if cancel_token is not None and cancel_token.cancelled:
            return {"renamePlans": [], "data": [], "error": REQUEST_ABORTED}
        return {
            "renamePlans": [p.to_dict() for p in self.store.list_pending_plans("rename")],
            "data": [p.to_dict() for p in self.store.list_pending_plans("recognize")],
        }

    def update_plan(
        self, plan_id: str, status: str, cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        if cancel_token is not None and cancel_token.cancelled:
            return {"error": REQUEST_ABORTED}
        if status not in ("rejected", "completed"):
            return {"error": f'{ERROR_PREFIX}Invalid status "{status}"'}
        try:
            self.store.update_plan_status(plan_id, status)
        except StagingError as e:
            log.error("[tool][updatePlan] %s", e)
            return {"error": f"{ERROR_PREFIX}{e}"}
        return {"data": {"success": True}}

    # -- batch -----------------------------------------------------

    def match_episodes_in_batch(
        self,
        folder_path: str,
        files: list[dict[str, Any]],
        client_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> dict[str, Any]:
        """Validate, confirm and commit a batch of assignments."""
        if cancel_token is not None and cancel_token.cancelled:
            return {"error": REQUEST_ABORTED}
        if self.matcher is None:
            return {"error": f"{ERROR_PREFIX}Episode matching is not available"}
        try:
            assignments = [FileAssignment.from_dict(f) for f in files]
        except (KeyError, TypeError, ValueError) as e:
            log.warning("[tool][matchEpisodesInBatch] Invalid files payload: %s", e)
            return {"error": f"{ERROR_PREFIX}Invalid files payload: {e}"}

        result = self.matcher.match_episodes(
            folder_path, assignments, client_id=client_id, cancel_token=cancel_token,
        )
        if not result.is_valid:
            log.info("[tool][matchEpisodesInBatch] %s", result.error)
            return {"error": result.error}
        return {"error": None}
