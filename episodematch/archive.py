"""Persistent archive of sealed plans backed by SQLite.

Only sealed plans are archived.  Open tasks are never written here and
do not survive a restart.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from .models import FileAssignment, PendingPlan, PlanStatus, RenameOperation, StagedItem

log = logging.getLogger(__name__)

PLAN_STATUSES = ("pending", "rejected", "completed")


def _decode_item(kind: str, payload: str) -> StagedItem:
    data = json.loads(payload)
    if kind == "rename":
        return RenameOperation.from_dict(data)
    return FileAssignment.from_dict(data)


class PlanArchive:
    """SQLite-backed store of sealed plans.

    Usage::

        archive = PlanArchive(db_path)
        archive.save_plan(plan)
        plans = archive.load_pending()
        archive.mark_status(plan.task_id, "completed")
    """

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._ensure_schema()

    # -- connection management -------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
        return self._conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS plans (
                task_id           TEXT PRIMARY KEY,
                media_folder_path TEXT NOT NULL,
                kind              TEXT NOT NULL,
                created_at        TEXT NOT NULL,
                status            TEXT NOT NULL DEFAULT 'pending'
            );

            CREATE TABLE IF NOT EXISTS plan_items (
                id       INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id  TEXT NOT NULL,
                payload  TEXT NOT NULL,
                FOREIGN KEY (task_id) REFERENCES plans(task_id)
            );

            CREATE INDEX IF NOT EXISTS idx_plan_items_task
                ON plan_items(task_id);
        """)
        conn.commit()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -- public API ------------------------------------------------

    def save_plan(self, plan: PendingPlan) -> None:
        """Persist a sealed plan and its items in insertion order."""
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT INTO plans (task_id, media_folder_path, kind, created_at, status) "
                "VALUES (?, ?, ?, ?, ?)",
                (plan.task_id, plan.media_folder_path, plan.kind,
                 plan.created_at, plan.status),
            )
            conn.executemany(
                "INSERT INTO plan_items (task_id, payload) VALUES (?, ?)",
                [
                    (plan.task_id, json.dumps(item.to_dict(), ensure_ascii=False))
                    for item in plan.items
                ],
            )
        log.debug("Archived plan %s with %d item(s)", plan.task_id, len(plan.items))

    def load_pending(self) -> list[PendingPlan]:
        """Return all plans still pending, oldest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT task_id, media_folder_path, kind, created_at, status "
            "FROM plans WHERE status = 'pending' ORDER BY created_at, rowid"
        ).fetchall()

        plans = []
        for task_id, folder, kind, created_at, status in rows:
            item_rows = conn.execute(
                "SELECT payload FROM plan_items WHERE task_id = ? ORDER BY id",
                (task_id,),
            ).fetchall()
            plans.append(PendingPlan(
                task_id=task_id,
                media_folder_path=folder,
                kind=kind,
                items=tuple(_decode_item(kind, r[0]) for r in item_rows),
                created_at=created_at,
                status=status,
            ))
        return plans

    def mark_status(self, task_id: str, status: PlanStatus) -> bool:
        """Set a plan's status; returns False if the plan is unknown."""
        if status not in PLAN_STATUSES:
            raise ValueError(f"Invalid plan status: {status}")
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                "UPDATE plans SET status = ? WHERE task_id = ?",
                (status, task_id),
            )
        return cursor.rowcount > 0
