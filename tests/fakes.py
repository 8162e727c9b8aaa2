# tests/fakes.py

from __future__ import annotations

import asyncio
from typing import Any

from rice_companion.core.ports import ChatMessage, Extraction, RecordQuery, ToolCall
from rice_companion.persistence.offline import InMemoryGateway
from rice_companion.tasks.task_models import RiceScore, Task


def call(name: str, **arguments: Any) -> ToolCall:
    """Build a tool call the way the model would return it."""
    return ToolCall(name=name, arguments=arguments)


class FakeClock:
    """Deterministic clock: every reading is one second after the previous one."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


class ScriptedExtractor:
    """
    Deterministic extraction client for unit tests.

    - Returns queued Extractions (or raises queued exceptions) in order
    - Captures calls for assertions
    - Returns a plain "ok" reply when nothing is queued
    """

    def __init__(self) -> None:
        self.script: list[Extraction | Exception] = []
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def push(self, reply: str = "", *tool_calls: ToolCall) -> None:
        self.script.append(Extraction(reply=reply, tool_calls=list(tool_calls)))

    def push_error(self, exc: Exception) -> None:
        self.script.append(exc)

    async def extract(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        tools: list[dict[str, Any]],
    ) -> Extraction:
        self.calls.append((list(messages), system_prompt))
        if not self.script:
            return Extraction(reply="ok")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def test_connection(self) -> bool:
        return True


class SlowExtractor(ScriptedExtractor):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def extract(self, messages, system_prompt, tools) -> Extraction:
        await asyncio.sleep(self.delay)
        return await super().extract(messages, system_prompt, tools)


class FakeGateway(InMemoryGateway):
    """
    InMemoryGateway that records calls and can be told to fail.
    """

    def __init__(self) -> None:
        super().__init__()
        self.create_calls: list[tuple[str, RiceScore, str]] = []
        self.update_calls: list[tuple[str, dict[str, Any]]] = []
        self.list_calls: list[RecordQuery] = []
        self.fail_create: Exception | None = None
        self.fail_list: Exception | None = None

    async def create_record(self, task: Task, score: RiceScore, session_id: str) -> str:
        self.create_calls.append((task.id, score, session_id))
        if self.fail_create is not None:
            raise self.fail_create
        return await super().create_record(task, score, session_id)

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        self.update_calls.append((record_id, dict(fields)))
        await super().update_record(record_id, fields)

    async def list_records(self, query: RecordQuery) -> list[dict[str, Any]]:
        self.list_calls.append(query)
        if self.fail_list is not None:
            raise self.fail_list
        return await super().list_records(query)
