# src/rice_companion/tasks/focus_queue.py

"""
Focus pointer + backlog.

State machine over {no focus, focused(task_id)}:
- set_focus(id): id must exist; becomes the sole focus.
- enqueue(id):   append to the backlog if not already there.
- advance():     promote the first incomplete backlog task (other than the
                 current focus). Complete tasks are skipped and stay in the
                 backlog, so readers of "next work" must filter by completeness.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.errors import TaskNotFoundError
from .task_models import Task

logger = logging.getLogger(__name__)

TaskLookup = Callable[[str], Task | None]
ChangeHook = Callable[[str | None], None]


class FocusQueue:
    def __init__(
        self,
        lookup: TaskLookup,
        *,
        on_change: ChangeHook | None = None,
        focus_id: str | None = None,
        backlog: list[str] | None = None,
    ) -> None:
        self._lookup = lookup
        self._on_change = on_change
        self._focus_id = focus_id
        self._backlog: list[str] = list(backlog or [])

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self._focus_id)

    # ---- read ----

    @property
    def focus_id(self) -> str | None:
        return self._focus_id

    @property
    def backlog(self) -> list[str]:
        return list(self._backlog)

    def has_focus(self) -> bool:
        return self._focus_id is not None

    def focus_task(self) -> Task | None:
        if self._focus_id is None:
            return None
        return self._lookup(self._focus_id)

    def next_queued(self) -> Task | None:
        """First incomplete backlog task that is not the current focus."""
        for task_id in self._backlog:
            if task_id == self._focus_id:
                continue
            task = self._lookup(task_id)
            if task is not None and not task.is_complete:
                return task
        return None

    # ---- transitions ----

    def set_focus(self, task_id: str) -> None:
        if self._lookup(task_id) is None:
            raise TaskNotFoundError(task_id)
        if self._focus_id == task_id:
            return
        self._focus_id = task_id
        logger.debug("Focus -> %s", task_id)
        self._changed()

    def clear_focus(self) -> None:
        if self._focus_id is None:
            return
        logger.debug("Focus cleared (was %s)", self._focus_id)
        self._focus_id = None
        self._changed()

    def enqueue(self, task_id: str) -> bool:
        """Append to the backlog. Returns False if it was already queued."""
        if task_id in self._backlog:
            return False
        self._backlog.append(task_id)
        logger.debug("Enqueued %s (backlog=%d)", task_id, len(self._backlog))
        self._changed()
        return True

    def advance(self) -> Task | None:
        """Promote the next incomplete backlog task; None when there is nothing to advance to."""
        nxt = self.next_queued()
        if nxt is None:
            return None
        self._focus_id = nxt.id
        logger.info("Advanced focus to %s", nxt.id)
        self._changed()
        return nxt

    def forget(self, task_id: str) -> bool:
        """Drop a task id from focus and backlog without emitting a change (caller snapshots)."""
        removed = False
        if self._focus_id == task_id:
            self._focus_id = None
            removed = True
        if task_id in self._backlog:
            self._backlog.remove(task_id)
            removed = True
        return removed

    def reset(self, *, focus_id: str | None = None, backlog: list[str] | None = None) -> None:
        self._focus_id = focus_id
        self._backlog = list(backlog or [])
