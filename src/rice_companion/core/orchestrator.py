# src/rice_companion/core/orchestrator.py

"""
Conversation orchestration.

One turn:
1) build the extraction prompt (persona + session digest) and call the extractor,
2) on success, record the user turn and apply every returned action in order,
3) record the assistant turn and return a TurnResult.

Key invariants:
- an extractor failure changes nothing (no task mutation, no history entry),
- each action fails on its own; later actions in the same turn still run,
- a task that failed to persist is not retried in the same turn,
- turns are serialized per orchestrator (asyncio.Lock).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ..llm.tools import TOOL_DEFINITIONS
from ..tasks.scoring import compute_score
from ..tasks.task_api import build_state_summary
from ..tasks.task_models import RiceParameters, SyncStatus, Task
from ..tasks.task_store import TaskStore
from .actions import (
    Action,
    ActionKind,
    CreateOrUpdate,
    RequestPersist,
    RequestRead,
    Split,
    action_to_dict,
    parse_action,
)
from .errors import (
    CollaboratorUnreachableError,
    InvalidActionError,
    PreconditionFailedError,
    RiceError,
    TaskNotFoundError,
)
from .persona import get_system_prompt
from .ports import ChatMessage, ExtractionClient, PersistenceGateway, RecordQuery, ToolCall

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_REPLY = "I'm having trouble connecting right now. Please try again in a moment."


@dataclass(slots=True)
class ConversationTurn:
    role: str  # "user" | "assistant"
    content: str
    timestamp: float
    actions: list[dict[str, Any]] | None = None

    def as_message(self) -> ChatMessage:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    action: str
    ok: bool
    task_id: str | None = None
    error_kind: str | None = None
    detail: str = ""
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TurnResult:
    reply: str
    outcomes: list[ActionOutcome] = field(default_factory=list)
    incomplete_tasks: list[Task] = field(default_factory=list)
    completed_tasks: list[Task] = field(default_factory=list)
    read_results: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class _TurnContext:
    failed_persist: set[str] = field(default_factory=set)
    read_results: list[dict[str, Any]] = field(default_factory=list)


def _failure(tag: str, err: Exception, task_id: str | None = None) -> ActionOutcome:
    kind = err.kind if isinstance(err, RiceError) else InvalidActionError.kind
    return ActionOutcome(action=tag, ok=False, task_id=task_id, error_kind=kind, detail=str(err))


class ConversationOrchestrator:
    def __init__(
        self,
        store: TaskStore,
        extractor: ExtractionClient,
        gateway: PersistenceGateway,
        *,
        auto_persist: bool = True,
        extraction_timeout: float = 30.0,
        gateway_timeout: float = 15.0,
        tools: list[dict[str, Any]] | None = None,
        history: list[ConversationTurn] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.gateway = gateway
        self.auto_persist = auto_persist
        self.extraction_timeout = extraction_timeout
        self.gateway_timeout = gateway_timeout
        self._tools = list(tools if tools is not None else TOOL_DEFINITIONS)
        self._history: list[ConversationTurn] = list(history or [])
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def history(self) -> list[ConversationTurn]:
        return list(self._history)

    # ---- turn ----

    async def process_turn(self, user_text: str) -> TurnResult:
        text = (user_text or "").strip()
        if not text:
            raise ValueError("user_text is empty")

        async with self._lock:
            messages = [t.as_message() for t in self._history]
            messages.append({"role": "user", "content": text})
            system_prompt = get_system_prompt(build_state_summary(self.store))

            try:
                extraction = await asyncio.wait_for(
                    self.extractor.extract(messages, system_prompt, self._tools),
                    timeout=self.extraction_timeout,
                )
            except TimeoutError:
                logger.warning("Extraction timed out after %.1fs", self.extraction_timeout)
                return self._fallback("Extraction timed out.")
            except Exception as e:
                logger.warning("Extraction failed: %s", e)
                return self._fallback(str(e) or e.__class__.__name__)

            self._history.append(ConversationTurn(role="user", content=text, timestamp=self._clock()))

            ctx = _TurnContext()
            outcomes: list[ActionOutcome] = []
            payloads: list[dict[str, Any]] = []
            for call in extraction.tool_calls:
                action_outcomes, action = await self._apply_call(call, ctx)
                outcomes.extend(action_outcomes)
                if action is not None:
                    payloads.append(action_to_dict(action))

            reply = (extraction.reply or "").strip() or compose_reply(outcomes, self.store)
            self._history.append(
                ConversationTurn(
                    role="assistant",
                    content=reply,
                    timestamp=self._clock(),
                    actions=payloads or None,
                )
            )

            logger.info(
                "Turn done: actions=%d failed=%d tasks=%d focus=%s",
                len(outcomes),
                sum(1 for o in outcomes if not o.ok),
                self.store.count(),
                self.store.focus.focus_id,
            )
            return TurnResult(
                reply=reply,
                outcomes=outcomes,
                incomplete_tasks=self.store.list_incomplete(),
                completed_tasks=self.store.list_complete(),
                read_results=ctx.read_results,
            )

    def _fallback(self, error: str) -> TurnResult:
        return TurnResult(
            reply=FALLBACK_REPLY,
            incomplete_tasks=self.store.list_incomplete(),
            completed_tasks=self.store.list_complete(),
            error=error,
        )

    async def _apply_call(self, call: ToolCall, ctx: _TurnContext) -> tuple[list[ActionOutcome], Action | None]:
        try:
            action = parse_action(call)
        except InvalidActionError as e:
            logger.info("Rejected action %r: %s", call.name, e)
            return [_failure(call.name, e)], None

        if isinstance(action, CreateOrUpdate):
            return await self._create_or_update(action, ctx), action
        if isinstance(action, RequestPersist):
            return [await self._persist(action.task_id, ctx)], action
        if isinstance(action, RequestRead):
            return [await self._read(action, ctx)], action
        return [self._split(action)], action

    # ---- actions ----

    def _register(self, task_id: str) -> None:
        """New tasks take the focus when it is free, otherwise they join the backlog."""
        if not self.store.focus.has_focus():
            self.store.focus.set_focus(task_id)
        else:
            self.store.focus.enqueue(task_id)

    async def _create_or_update(self, action: CreateOrUpdate, ctx: _TurnContext) -> list[ActionOutcome]:
        tag = ActionKind.CREATE_OR_UPDATE.value
        created = False
        try:
            if action.task_id is not None:
                task_id = action.task_id
                if self.store.get(task_id) is None:
                    raise TaskNotFoundError(task_id)
            else:
                # Reject an unscorable parameter set before the task exists.
                compute_score(RiceParameters().merged(action.parameter_updates))
                task_id = self.store.create(action.description or "").id
                created = True
                self._register(task_id)

            if action.parameter_updates:
                self.store.update_parameters(task_id, action.parameter_updates)
            if action.metadata_updates:
                self.store.update_metadata(task_id, action.metadata_updates)
        except (RiceError, ValueError) as e:
            return [_failure(tag, e, action.task_id)]

        task = self.store.get(task_id)
        assert task is not None
        outcomes = [
            ActionOutcome(
                action=tag,
                ok=True,
                task_id=task_id,
                data={
                    "created": created,
                    "description": task.description,
                    "missing": task.missing_parameters,
                    "score": task.score,
                },
            )
        ]

        if (
            self.auto_persist
            and task.is_complete
            and task.sync_status != SyncStatus.SYNCED
            and task_id not in ctx.failed_persist
        ):
            outcomes.append(await self._persist(task_id, ctx))
        return outcomes

    async def _persist(self, task_id: str, ctx: _TurnContext) -> ActionOutcome:
        tag = ActionKind.REQUEST_PERSIST.value

        task = self.store.get(task_id)
        if task is None:
            return _failure(tag, TaskNotFoundError(task_id), task_id)

        rice = task.rice
        if rice is None:
            err = PreconditionFailedError(
                f"Task {task_id} is not complete (missing: {', '.join(task.missing_parameters)})"
            )
            return _failure(tag, err, task_id)

        if task.sync_status == SyncStatus.SYNCED:
            return ActionOutcome(
                action=tag,
                ok=True,
                task_id=task_id,
                detail="already synced",
                data={"already_synced": True, "record_id": task.record_id, "score": rice.score},
            )

        if task_id in ctx.failed_persist:
            err = CollaboratorUnreachableError(f"Persisting {task_id} already failed this turn")
            return _failure(tag, err, task_id)

        try:
            record_id = await self._gateway_call(
                "create_record", lambda: self.gateway.create_record(task, rice, self.store.session_id)
            )
            self.store.mark_synced(task_id, record_id)
        except (CollaboratorUnreachableError, TaskNotFoundError) as e:
            ctx.failed_persist.add(task_id)
            logger.warning("Persist failed task=%s: %s", task_id, e)
            return _failure(tag, e, task_id)

        parent_id = task.metadata.parent_id
        if parent_id and self.store.get(parent_id) is not None:
            self.store.mark_partially_synced(parent_id)

        next_focus: str | None = None
        if self.store.focus.focus_id == task_id:
            nxt = self.store.focus.advance()
            if nxt is None:
                self.store.focus.clear_focus()
            else:
                next_focus = nxt.id

        logger.info("Persisted task=%s record=%s score=%.2f", task_id, record_id, rice.score)
        return ActionOutcome(
            action=tag,
            ok=True,
            task_id=task_id,
            data={
                "record_id": record_id,
                "score": rice.score,
                "description": task.description,
                "next_focus": next_focus,
            },
        )

    async def _read(self, action: RequestRead, ctx: _TurnContext) -> ActionOutcome:
        tag = ActionKind.REQUEST_READ.value
        query = RecordQuery(status=action.status, sort_by=action.sort_by, limit=action.limit)
        try:
            records = await self._gateway_call("list_records", lambda: self.gateway.list_records(query))
        except CollaboratorUnreachableError as e:
            return _failure(tag, e)

        ctx.read_results.extend(records)
        return ActionOutcome(
            action=tag,
            ok=True,
            data={"count": len(records), "filter": action.status or "all"},
        )

    def _split(self, action: Split) -> ActionOutcome:
        tag = ActionKind.SPLIT.value
        parent = self.store.get(action.task_id)
        if parent is None:
            return _failure(tag, TaskNotFoundError(action.task_id), action.task_id)

        subtasks: list[dict[str, str]] = []
        for description in action.subtasks:
            sub = self.store.create(f"{description} (from: {parent.description})")
            meta: dict[str, Any] = {"parent_id": parent.id}
            if parent.metadata.project:
                meta["project"] = parent.metadata.project
            self.store.update_metadata(sub.id, meta)
            self._register(sub.id)
            subtasks.append({"id": sub.id, "description": sub.description})

        self.store.update_metadata(parent.id, {"should_split": True})
        logger.info("Split task=%s into %d subtasks", parent.id, len(subtasks))
        return ActionOutcome(action=tag, ok=True, task_id=parent.id, data={"subtasks": subtasks})

    async def _gateway_call(self, op: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(call(), timeout=self.gateway_timeout)
        except CollaboratorUnreachableError:
            raise
        except TimeoutError as e:
            raise CollaboratorUnreachableError(f"{op} timed out after {self.gateway_timeout:.0f}s") from e
        except Exception as e:
            logger.debug("Gateway %s failed", op, exc_info=True)
            raise CollaboratorUnreachableError(f"{op} failed: {e.__class__.__name__}: {e}") from e

    # ---- direct operations (commands) ----

    async def persist_task(self, task_id: str) -> ActionOutcome:
        async with self._lock:
            return await self._persist(task_id, _TurnContext())

    async def sync_edits(self, task_id: str) -> ActionOutcome:
        """Push the current values of an already persisted task to its remote record."""
        tag = "sync_edits"
        async with self._lock:
            task = self.store.get(task_id)
            if task is None:
                return _failure(tag, TaskNotFoundError(task_id), task_id)
            if task.sync_status != SyncStatus.SYNCED or not task.record_id:
                return _failure(tag, PreconditionFailedError(f"Task {task_id} has no remote record yet"), task_id)
            if task.rice is None:
                return _failure(tag, PreconditionFailedError(f"Task {task_id} is not complete"), task_id)
            if not task.edited_since_sync:
                return ActionOutcome(action=tag, ok=True, task_id=task_id, detail="nothing to sync")

            record_id = task.record_id
            fields: dict[str, Any] = {
                "description": task.description,
                **task.parameters.as_dict(),
                "status": task.metadata.status.value,
                "category": task.metadata.category,
                "project": task.metadata.project,
                "deadline": task.metadata.deadline,
            }
            try:
                await self._gateway_call("update_record", lambda: self.gateway.update_record(record_id, fields))
            except CollaboratorUnreachableError as e:
                return _failure(tag, e, task_id)

            self.store.mark_synced(task_id, record_id)
            return ActionOutcome(
                action=tag, ok=True, task_id=task_id, data={"record_id": record_id, "score": task.score}
            )

    async def read_records(self, query: RecordQuery | None = None) -> list[dict[str, Any]]:
        q = query or RecordQuery()
        return await self._gateway_call("list_records", lambda: self.gateway.list_records(q))

    async def test_connections(self) -> dict[str, bool]:
        async def _probe(name: str, call: Callable[[], Awaitable[bool]]) -> bool:
            try:
                return bool(await asyncio.wait_for(call(), timeout=self.gateway_timeout))
            except Exception:
                logger.info("Connection test failed for %s", name, exc_info=True)
                return False

        return {
            "extraction": await _probe("extraction", self.extractor.test_connection),
            "gateway": await _probe("gateway", self.gateway.test_connection),
        }

    def reset(self) -> None:
        """Drop every task and the conversation history (the session id is kept)."""
        self.store.clear()
        self._history.clear()
        logger.info("Session %s reset", self.store.session_id)


def compose_reply(outcomes: list[ActionOutcome], store: TaskStore) -> str:
    """Short reply for turns where the model returned actions but no text."""
    parts: list[str] = []

    for o in outcomes:
        if o.action == ActionKind.REQUEST_PERSIST.value and o.ok and not o.data.get("already_synced"):
            parts.append(f"Saved \"{o.data.get('description', o.task_id)}\" with a RICE score of {o.data['score']:.2f}.")
        elif o.action == ActionKind.CREATE_OR_UPDATE.value and o.ok and o.data.get("created"):
            parts.append(f"Noted \"{o.data.get('description')}\".")
        elif o.action == ActionKind.SPLIT.value and o.ok:
            parts.append(f"Split it into {len(o.data.get('subtasks', []))} smaller tasks.")
        elif o.action == ActionKind.REQUEST_READ.value and o.ok:
            parts.append(f"Found {o.data.get('count', 0)} saved tasks.")
        elif not o.ok and o.error_kind == CollaboratorUnreachableError.kind:
            parts.append("I couldn't reach the task database, so that's kept locally for now.")

    focus = store.focus.focus_task()
    if focus is not None and not focus.is_complete:
        parts.append(f"For \"{focus.description}\" I still need: {', '.join(focus.missing_parameters)}.")

    return " ".join(parts) or "Got it."
