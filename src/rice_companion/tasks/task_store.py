# src/rice_companion/tasks/task_store.py

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..core.errors import CorruptSnapshotError, TaskNotFoundError
from .focus_queue import FocusQueue
from .scoring import compute_score, priority_order, validate_parameters
from .snapshot import SessionSnapshot, SnapshotFile
from .task_models import SyncStatus, Task, new_session_id, new_task_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoreEvent:
    kind: str  # created | updated | metadata | renamed | synced | deleted | focus | cleared
    task_id: str | None
    task_count: int


StoreListener = Callable[[StoreEvent], None]


class TaskStore:
    """
    In-memory task map for one session, snapshotted to a local JSON file.

    - Every mutation writes a snapshot (tasks + session id + focus + backlog)
      and notifies listeners.
    - Snapshot write failures are logged; the in-memory mutation stands.
    - A missing snapshot starts a new session; a corrupt one starts an empty
      store with a warning (never raises).
    - Returned Task objects are copies: mutate through the store API only.

    Not thread-safe: the orchestrator processes one turn at a time per session.
    """

    def __init__(
        self,
        snapshot: SnapshotFile | None = None,
        *,
        session_id: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._snapshot = snapshot
        self._clock = clock
        self._tasks: dict[str, Task] = {}
        self._listeners: list[StoreListener] = []
        self._session_id = session_id or new_session_id()
        self.focus = FocusQueue(self._peek, on_change=self._focus_changed)

        restored = self._restore()
        logger.info(
            "TaskStore ready session=%s tasks=%d restored=%s snapshot=%s",
            self._session_id,
            len(self._tasks),
            restored,
            snapshot.path if snapshot is not None else None,
        )

    # ---- snapshot / notifications ----

    def _restore(self) -> bool:
        if self._snapshot is None:
            return False
        try:
            snap = self._snapshot.read()
        except CorruptSnapshotError:
            logger.warning("Snapshot is corrupt; starting with an empty store.", exc_info=True)
            return False
        except Exception:
            logger.exception("Snapshot read failed; starting with an empty store.")
            return False

        if snap is None:
            return False

        self._session_id = snap.session_id
        self._tasks = dict(snap.tasks)
        self.focus.reset(focus_id=snap.focus_id, backlog=snap.backlog)
        return True

    def _to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self._session_id,
            tasks=self._tasks,
            focus_id=self.focus.focus_id,
            backlog=self.focus.backlog,
        )

    def _save(self) -> None:
        if self._snapshot is None:
            return
        try:
            self._snapshot.write(self._to_snapshot())
        except Exception:
            logger.exception("Snapshot write failed (%s)", self._snapshot.path)

    def _notify(self, kind: str, task_id: str | None) -> None:
        event = StoreEvent(kind=kind, task_id=task_id, task_count=len(self._tasks))
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Store listener failed event=%s", event)

    def _changed(self, kind: str, task_id: str | None) -> None:
        self._save()
        self._notify(kind, task_id)

    def _focus_changed(self, focus_id: str | None) -> None:
        self._changed("focus", focus_id)

    def _peek(self, task_id: str) -> Task | None:
        task = self._tasks.get(task_id)
        return copy.deepcopy(task) if task is not None else None

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- public API ----

    @property
    def session_id(self) -> str:
        return self._session_id

    def count(self) -> int:
        return len(self._tasks)

    def create(self, description: str) -> Task:
        if not description or not description.strip():
            raise ValueError("description is required")

        now = self._clock()
        task = Task(
            id=new_task_id(),
            description=description.strip(),
            created_at=now,
            last_updated=now,
        )
        while task.id in self._tasks:
            task.id = new_task_id()

        self._tasks[task.id] = task
        logger.debug("Task created id=%s description=%r", task.id, task.description)
        self._changed("created", task.id)
        return copy.deepcopy(task)

    def get(self, task_id: str) -> Task | None:
        return self._peek(task_id)

    def update_parameters(self, task_id: str, updates: dict[str, Any]) -> Task:
        """
        Merge a partial parameter update.

        Keys missing from `updates` (or set to None) keep their value.
        Invalid values raise ValueError and leave the task untouched.
        """
        task = self._require(task_id)
        clean = validate_parameters(updates)
        merged = task.parameters.merged(clean)
        # Score the merged set before committing; an overflowing product raises here.
        score = compute_score(merged)

        task.parameters = merged
        task.last_updated = self._clock()
        logger.debug(
            "Task %s parameters=%s complete=%s score=%s",
            task_id,
            merged.as_dict(),
            score is not None,
            score,
        )
        self._changed("updated", task_id)
        return copy.deepcopy(task)

    def update_metadata(self, task_id: str, updates: dict[str, Any]) -> Task:
        task = self._require(task_id)
        task.metadata = task.metadata.merged(updates)
        task.last_updated = self._clock()
        self._changed("metadata", task_id)
        return copy.deepcopy(task)

    def rename(self, task_id: str, description: str) -> Task:
        if not description or not description.strip():
            raise ValueError("description is required")
        task = self._require(task_id)
        task.description = description.strip()
        task.last_updated = self._clock()
        self._changed("renamed", task_id)
        return copy.deepcopy(task)

    def mark_synced(self, task_id: str, record_id: str | None = None) -> Task:
        task = self._require(task_id)
        now = self._clock()
        task.sync_status = SyncStatus.SYNCED
        if record_id:
            task.record_id = record_id
        task.synced_at = now
        task.last_updated = now
        self._changed("synced", task_id)
        return copy.deepcopy(task)

    def mark_partially_synced(self, task_id: str) -> Task:
        """not_synced -> partially_synced; any other status is left as is."""
        task = self._require(task_id)
        if task.sync_status == SyncStatus.NOT_SYNCED:
            task.sync_status = SyncStatus.PARTIALLY_SYNCED
            task.last_updated = self._clock()
            self._changed("synced", task_id)
        return copy.deepcopy(task)

    def delete(self, task_id: str) -> bool:
        """Remove the task from the map, the focus pointer and the backlog in one step."""
        if task_id not in self._tasks:
            return False
        del self._tasks[task_id]
        self.focus.forget(task_id)
        logger.debug("Task deleted id=%s", task_id)
        self._changed("deleted", task_id)
        return True

    def clear(self) -> None:
        self._tasks.clear()
        self.focus.reset()
        self._changed("cleared", None)

    def list_all(self) -> list[Task]:
        return [copy.deepcopy(t) for t in self._tasks.values()]

    def list_complete(self) -> list[Task]:
        return [copy.deepcopy(t) for t in self._tasks.values() if t.is_complete]

    def list_incomplete(self) -> list[Task]:
        return [copy.deepcopy(t) for t in self._tasks.values() if not t.is_complete]

    def priority_queue(self) -> list[Task]:
        return [copy.deepcopy(t) for t in priority_order(self._tasks.values())]
