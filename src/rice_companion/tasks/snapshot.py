# src/rice_companion/tasks/snapshot.py

"""
Local session snapshot (JSON file).

Format:
  {
    "version": 1,
    "session_id": "...",
    "focus_id": "task_..." | null,
    "backlog": ["task_...", ...],
    "tasks": {"task_...": {...}, ...},   # creation order
    "saved_at": 1700000000.0
  }

Writes are atomic (tmp file + os.replace). Reads raise CorruptSnapshotError
for anything that cannot be decoded; the store turns that into a fresh state.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..core.errors import CorruptSnapshotError
from .scoring import compute_score, validate_parameters
from .task_models import PARAMETER_NAMES, RiceParameters, SyncStatus, Task, TaskMetadata, TaskStatus

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


@dataclass(slots=True)
class SessionSnapshot:
    session_id: str
    tasks: dict[str, Task] = field(default_factory=dict)
    focus_id: str | None = None
    backlog: list[str] = field(default_factory=list)


def _opt_float(v: Any) -> float | None:
    if v is None:
        return None
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"expected number, got {v!r}")
    return float(v)


def task_to_dict(task: Task) -> dict[str, Any]:
    md = task.metadata
    return {
        "id": task.id,
        "description": task.description,
        "created_at": task.created_at,
        "last_updated": task.last_updated,
        "parameters": task.parameters.as_dict(),
        "metadata": {
            "status": md.status.value,
            "category": md.category,
            "deadline": md.deadline,
            "project": md.project,
            "dependencies": list(md.dependencies),
            "should_split": md.should_split,
            "parent_id": md.parent_id,
            "extra": dict(md.extra),
        },
        "sync_status": task.sync_status.value,
        "record_id": task.record_id,
        "synced_at": task.synced_at,
    }


def task_from_dict(data: dict[str, Any]) -> Task:
    if not isinstance(data, dict):
        raise ValueError("task entry must be an object")

    task_id = data.get("id")
    description = data.get("description")
    if not isinstance(task_id, str) or not task_id:
        raise ValueError("task id missing")
    if not isinstance(description, str):
        raise ValueError(f"task {task_id}: description missing")

    raw_params = data.get("parameters") or {}
    if not isinstance(raw_params, dict):
        raise ValueError(f"task {task_id}: parameters must be an object")
    try:
        params = RiceParameters(**validate_parameters({name: raw_params.get(name) for name in PARAMETER_NAMES}))
        compute_score(params)
    except ValueError as e:
        raise ValueError(f"task {task_id}: {e}") from e

    raw_md = data.get("metadata") or {}
    if not isinstance(raw_md, dict):
        raise ValueError(f"task {task_id}: metadata must be an object")
    deps = raw_md.get("dependencies") or []
    extra = raw_md.get("extra") or {}
    metadata = TaskMetadata(
        status=TaskStatus(raw_md.get("status") or TaskStatus.PENDING),
        category=raw_md.get("category"),
        deadline=raw_md.get("deadline"),
        project=raw_md.get("project"),
        dependencies=[str(d) for d in deps] if isinstance(deps, list) else [],
        should_split=bool(raw_md.get("should_split", False)),
        parent_id=raw_md.get("parent_id"),
        extra=dict(extra) if isinstance(extra, dict) else {},
    )

    created_at = _opt_float(data.get("created_at")) or 0.0
    return Task(
        id=task_id,
        description=description,
        created_at=created_at,
        last_updated=_opt_float(data.get("last_updated")) or created_at,
        parameters=params,
        metadata=metadata,
        sync_status=SyncStatus.from_raw(data.get("sync_status")),
        record_id=data.get("record_id"),
        synced_at=_opt_float(data.get("synced_at")),
    )


class SnapshotFile:
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def read(self) -> SessionSnapshot | None:
        """Return the stored snapshot, None if there is none yet."""
        if not self._path.exists():
            return None

        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            raise CorruptSnapshotError(f"unreadable snapshot {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise CorruptSnapshotError(f"snapshot {self._path} is not an object")

        session_id = data.get("session_id")
        if not isinstance(session_id, str) or not session_id:
            raise CorruptSnapshotError(f"snapshot {self._path} has no session_id")

        raw_tasks = data.get("tasks") or {}
        if not isinstance(raw_tasks, dict):
            raise CorruptSnapshotError(f"snapshot {self._path}: tasks must be an object")

        tasks: dict[str, Task] = {}
        try:
            for raw in raw_tasks.values():
                task = task_from_dict(raw)
                tasks[task.id] = task
        except (TypeError, ValueError) as e:
            raise CorruptSnapshotError(f"snapshot {self._path}: {e}") from e

        focus_id = data.get("focus_id")
        if focus_id not in tasks:
            focus_id = None

        raw_backlog = data.get("backlog") or []
        backlog: list[str] = []
        if isinstance(raw_backlog, list):
            for tid in raw_backlog:
                # Drop ids of tasks that no longer exist.
                if isinstance(tid, str) and tid in tasks and tid not in backlog:
                    backlog.append(tid)

        return SessionSnapshot(session_id=session_id, tasks=tasks, focus_id=focus_id, backlog=backlog)

    def write(self, snapshot: SessionSnapshot) -> None:
        payload = {
            "version": SNAPSHOT_VERSION,
            "session_id": snapshot.session_id,
            "focus_id": snapshot.focus_id,
            "backlog": list(snapshot.backlog),
            "tasks": {tid: task_to_dict(t) for tid, t in snapshot.tasks.items()},
            "saved_at": time.time(),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(Exception):
            # Task descriptions may be personal; keep the file private on disk.
            os.chmod(self._path, 0o600)
        logger.debug("Snapshot written: %d tasks to %s", len(snapshot.tasks), self._path)

    def remove(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path.unlink()
