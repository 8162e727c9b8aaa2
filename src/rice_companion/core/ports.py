# src/rice_companion/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the LLM provider and the remote record store swappable
and makes testing easier.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..tasks.task_models import RiceScore, Task

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


@dataclass(frozen=True, slots=True)
class ToolCall:
    """One structured action as returned by the model (not validated yet)."""

    name: str
    arguments: dict[str, Any] | str
    id: str | None = None


@dataclass(frozen=True, slots=True)
class Extraction:
    reply: str
    tool_calls: list[ToolCall] = field(default_factory=list)


class ExtractionClient(Protocol):
    """
    Chat completion with tool calling.

    Either returns a complete Extraction or raises; there are no partial results.
    """

    async def extract(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        tools: list[dict[str, Any]],
    ) -> Extraction: ...

    async def test_connection(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class RecordQuery:
    status: str | None = None  # None or "all" -> no status filter
    sort_by: str = "rice_score"
    limit: int = 20
    session_id: str | None = None


class PersistenceGateway(Protocol):
    """Remote record store for completed tasks. Credentials are configured out of band."""

    async def create_record(self, task: Task, score: RiceScore, session_id: str) -> str: ...

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None: ...

    async def list_records(self, query: RecordQuery) -> list[dict[str, Any]]: ...

    async def delete_record(self, record_id: str) -> None: ...

    async def test_connection(self) -> bool: ...

    async def aclose(self) -> None: ...
