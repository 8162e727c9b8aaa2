# src/rice_companion/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from ..core.errors import CollaboratorUnreachableError, TaskNotFoundError
from ..core.orchestrator import ActionOutcome
from ..core.ports import RecordQuery
from ..core.state import AppState
from ..tasks.task_api import format_task_line, task_progress
from ..tasks.task_models import TaskStatus

CommandHandler = Callable[[AppState, list[str]], str | Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        result = handler(state, args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _describe_outcome(o: ActionOutcome, ok_text: str) -> str:
    if o.ok:
        return ok_text
    return f"Failed ({o.error_kind}): {o.detail}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.task_store
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    extractor = "offline demo" if state.offline else "online"
    gateway = state.gateway.__class__.__name__
    focus = store.focus.focus_task()
    return (
        "Status:\n"
        f"  Session: {store.session_id}\n"
        f"  Tasks: {store.count()} ({len(store.list_complete())} complete)\n"
        f"  Focus: {focus.description if focus else '-'}\n"
        f"  Auto-persist: {'ON' if state.orchestrator.auto_persist else 'OFF'}\n"
        f"  Dialog history: {'ON' if state.save_history else 'OFF'}\n"
        f"  Extraction: {extractor}; models (priority -> fallback): {models}\n"
        f"  Gateway: {gateway}"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    store = state.task_store
    tasks = store.list_all()
    if not tasks:
        return "No tasks yet. Describe something you need to prioritize."
    focus_id = store.focus.focus_id
    lines = [f"Tasks ({len(tasks)}):"]
    for t in tasks:
        marker = "* " if t.id == focus_id else "  "
        lines.append(marker + format_task_line(t))
    return "\n".join(lines)


def cmd_queue(state: AppState, args: list[str]) -> str:
    queue = state.task_store.priority_queue()
    if not queue:
        return "Priority queue is empty (no incomplete tasks)."
    lines = ["Priority queue (closest to complete first):"]
    for i, t in enumerate(queue, start=1):
        lines.append(f"{i}. {format_task_line(t)}")
    return "\n".join(lines)


def cmd_focus(state: AppState, args: list[str]) -> str:
    """
    /focus       -> show the focus task
    /focus <id>  -> make <id> the focus task
    """
    focus = state.task_store.focus
    if args:
        try:
            focus.set_focus(args[0])
        except TaskNotFoundError as e:
            return str(e)
    task = focus.focus_task()
    if task is None:
        return "No focus task."
    return "Focus:\n" + format_task_line(task)


def cmd_next(state: AppState, args: list[str]) -> str:
    nxt = state.task_store.focus.advance()
    if nxt is None:
        return "Nothing left to move to (no incomplete tasks in the backlog)."
    return "Moved focus to:\n" + format_task_line(nxt)


def cmd_task(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /task <id>"
    p = task_progress(state.task_store, args[0])
    if p is None:
        return f"Task {args[0]} not found"
    t = p.task
    meta = t.metadata
    lines = [
        format_task_line(t),
        f"  progress: {p.progress:.0%}",
        f"  parameters: {', '.join(f'{k}={v}' for k, v in t.parameters.as_dict().items() if v is not None) or '-'}",
        f"  status: {meta.status.value}  category: {meta.category or '-'}  project: {meta.project or '-'}  deadline: {meta.deadline or '-'}",
        f"  sync: {t.sync_status.value}  record: {t.record_id or '-'}  synced at: {_fmt_ts(t.synced_at)}",
        f"  can sync: {'yes' if p.can_sync else 'no'}",
    ]
    if meta.parent_id:
        lines.append(f"  split from: {meta.parent_id}")
    return "\n".join(lines)


async def cmd_persist(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /persist <id>"
    o = await state.orchestrator.persist_task(args[0])
    if o.ok and o.data.get("already_synced"):
        return f"Task {args[0]} is already saved (record {o.data.get('record_id') or '-'})."
    return _describe_outcome(o, f"Saved task {args[0]} (score {o.data.get('score')}).")


async def cmd_sync(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /sync <id>"
    o = await state.orchestrator.sync_edits(args[0])
    if o.ok and o.detail:
        return f"Task {args[0]}: {o.detail}."
    return _describe_outcome(o, f"Pushed current values of task {args[0]}.")


def cmd_rename(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /rename <id> <new description>"
    try:
        task = state.task_store.rename(args[0], " ".join(args[1:]))
    except TaskNotFoundError as e:
        return str(e)
    return "Renamed:\n" + format_task_line(task)


def cmd_mark(state: AppState, args: list[str]) -> str:
    """/mark <id> <status> -> set the workflow status (pending, in_progress, completed, ...)."""
    if len(args) != 2:
        return f"Usage: /mark <id> <{'|'.join(s.value for s in TaskStatus)}>"
    try:
        task = state.task_store.update_metadata(args[0], {"status": args[1].lower()})
    except TaskNotFoundError as e:
        return str(e)
    except ValueError:
        return f"Unknown status: {args[1]}"
    hint = " Use /sync to push it to the saved record." if task.edited_since_sync else ""
    return f"Task {task.id} is now {task.metadata.status.value}.{hint}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <id>"
    if not state.task_store.delete(args[0]):
        return f"Task {args[0]} not found"
    return f"Deleted task {args[0]}."


async def cmd_records(state: AppState, args: list[str]) -> str:
    """/records [status] -> read saved tasks from the remote store."""
    status = args[0].lower() if args else None
    try:
        records = await state.orchestrator.read_records(RecordQuery(status=status))
    except CollaboratorUnreachableError as e:
        return f"Could not read records: {e}"
    if not records:
        return "No saved records."
    lines = [f"Saved records ({len(records)}):"]
    for r in records:
        score = r.get("rice_score")
        score_s = f"{score:.2f}" if isinstance(score, (int, float)) else "-"
        lines.append(f"- {r.get('name')} (score {score_s}, {r.get('status') or '-'}, {r.get('project') or '-'})")
    return "\n".join(lines)


async def cmd_ping(state: AppState, args: list[str]) -> str:
    result = await state.orchestrator.test_connections()
    return "Connections:\n" + "\n".join(f"  {k}: {'OK' if v else 'FAILED'}" for k, v in result.items())


def cmd_reset(state: AppState, args: list[str]) -> str:
    state.orchestrator.reset()
    return "Session cleared: all tasks and the conversation history were removed."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session and collaborator status.")
registry.register("tasks", cmd_tasks, help_text="List all tasks in this session.", aliases=["ls"])
registry.register("queue", cmd_queue, help_text="Show incomplete tasks in priority order.")
registry.register("focus", cmd_focus, help_text="Show the focus task or set it: /focus <id>.")
registry.register("next", cmd_next, help_text="Move focus to the next incomplete backlog task.")
registry.register("task", cmd_task, help_text="Show task details and progress: /task <id>.")
registry.register("persist", cmd_persist, help_text="Save a complete task to the record store: /persist <id>.")
registry.register("sync", cmd_sync, help_text="Push edits of a saved task: /sync <id>.")
registry.register("rename", cmd_rename, help_text="Rename a task: /rename <id> <text>.")
registry.register("mark", cmd_mark, help_text="Set task status: /mark <id> <status>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("records", cmd_records, help_text="Read saved records: /records [status].")
registry.register("ping", cmd_ping, help_text="Test connections to the LLM and the record store.")
registry.register("reset", cmd_reset, help_text="Clear all tasks and the conversation history.")
