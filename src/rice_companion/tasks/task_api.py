# src/rice_companion/tasks/task_api.py

from __future__ import annotations

from dataclasses import dataclass

from .scoring import count_set
from .task_models import PARAMETER_NAMES, Task
from .task_store import TaskStore


def _format_score(score: float | None) -> str:
    return "-" if score is None else f"{score:.2f}"


def format_task_line(task: Task) -> str:
    """One-line task description used by prompts and console output."""
    if task.is_complete:
        tail = f"score {_format_score(task.score)}, {task.sync_status.value}"
        if task.edited_since_sync:
            tail += ", edited after sync"
    else:
        missing = ", ".join(task.missing_parameters)
        tail = f"{count_set(task.parameters)}/{len(PARAMETER_NAMES)} parameters, missing: {missing}"
    return f"- [{task.id}] {task.description} ({tail})"


def build_state_summary(store: TaskStore) -> str:
    """
    Textual digest of the session for the extraction prompt.

    Contains the focus task with its missing parameters, counts of
    complete/incomplete tasks, and one line per task with its id.
    """
    incomplete = store.list_incomplete()
    complete = store.list_complete()

    lines: list[str] = []

    focus = store.focus.focus_task()
    if focus is not None:
        lines.append(f"CURRENT FOCUS: [{focus.id}] {focus.description}")
        missing = focus.missing_parameters
        lines.append(f"Missing: {', '.join(missing) if missing else 'nothing (complete)'}")
        lines.append("")

    lines.append(f"Session: {store.session_id}")
    lines.append(f"Active Tasks: {len(incomplete)}")
    lines.append(f"Completed Tasks: {len(complete)}")

    queued = store.focus.next_queued()
    if queued is not None:
        lines.append(f"Next in queue: [{queued.id}] {queued.description}")

    if incomplete:
        lines.extend(["", "Incomplete Tasks:"])
        lines.extend(format_task_line(t) for t in incomplete)

    if complete:
        lines.extend(["", "Complete Tasks:"])
        lines.extend(format_task_line(t) for t in complete)

    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class TaskProgress:
    task: Task
    missing_parameters: list[str]
    progress: float
    score: float | None
    can_sync: bool


def task_progress(store: TaskStore, task_id: str) -> TaskProgress | None:
    task = store.get(task_id)
    if task is None:
        return None
    missing = task.missing_parameters
    return TaskProgress(
        task=task,
        missing_parameters=missing,
        progress=(len(PARAMETER_NAMES) - len(missing)) / len(PARAMETER_NAMES),
        score=task.score,
        can_sync=task.is_complete,
    )
