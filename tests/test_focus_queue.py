# tests/test_focus_queue.py

from __future__ import annotations

import pytest

from rice_companion.core.errors import TaskNotFoundError
from rice_companion.tasks.task_store import TaskStore

COMPLETE = {"reach": 10, "impact": 2, "confidence": 0.5, "effort": 1}


def test_set_focus_requires_existing_task(store: TaskStore) -> None:
    with pytest.raises(TaskNotFoundError):
        store.focus.set_focus("task_nope")
    assert store.focus.focus_id is None


def test_set_focus_is_independent_of_backlog(store: TaskStore) -> None:
    a = store.create("a")
    store.focus.enqueue(a.id)
    store.focus.set_focus(a.id)

    assert store.focus.focus_id == a.id
    assert store.focus.backlog == [a.id]


def test_enqueue_is_idempotent(store: TaskStore) -> None:
    a = store.create("a")
    assert store.focus.enqueue(a.id) is True
    assert store.focus.enqueue(a.id) is False
    assert store.focus.backlog == [a.id]


def test_advance_skips_complete_tasks_and_leaves_them_queued(store: TaskStore) -> None:
    a = store.create("a")
    b = store.create("b")
    c = store.create("c")
    store.update_parameters(b.id, COMPLETE)
    store.focus.set_focus(a.id)
    store.focus.enqueue(b.id)
    store.focus.enqueue(c.id)

    nxt = store.focus.advance()
    assert nxt is not None
    assert nxt.id == c.id
    assert store.focus.focus_id == c.id

    # Only the complete task and the current focus are left.
    assert store.focus.advance() is None
    assert store.focus.advance() is None
    assert store.focus.focus_id == c.id
    assert store.focus.backlog == [b.id, c.id]


def test_advance_with_empty_backlog_keeps_focus(store: TaskStore) -> None:
    a = store.create("a")
    store.focus.set_focus(a.id)

    assert store.focus.advance() is None
    assert store.focus.focus_id == a.id


def test_next_queued_peeks_without_moving(store: TaskStore) -> None:
    a = store.create("a")
    b = store.create("b")
    store.focus.set_focus(a.id)
    store.focus.enqueue(b.id)

    peek = store.focus.next_queued()
    assert peek is not None and peek.id == b.id
    assert store.focus.focus_id == a.id


def test_clear_focus(store: TaskStore) -> None:
    a = store.create("a")
    store.focus.set_focus(a.id)
    store.focus.clear_focus()

    assert not store.focus.has_focus()
    assert store.focus.focus_task() is None
