# src/rice_companion/tasks/task_models.py

from __future__ import annotations

import secrets
import time
from dataclasses import asdict, dataclass, field, fields
from enum import StrEnum
from typing import Any

PARAMETER_NAMES: tuple[str, ...] = ("reach", "impact", "confidence", "effort")
# Canonical order; reports and prompts list parameters in this order.


class SyncStatus(StrEnum):
    """
    Remote persistence status.

    Transitions only move forward:
      not_synced -> partially_synced -> synced
      not_synced -> synced
    """

    NOT_SYNCED = "not_synced"
    PARTIALLY_SYNCED = "partially_synced"
    SYNCED = "synced"

    @classmethod
    def from_raw(cls, raw: str | None) -> SyncStatus:
        if not raw:
            return cls.NOT_SYNCED
        try:
            return cls(raw)
        except ValueError:
            return cls.NOT_SYNCED


class TaskStatus(StrEnum):
    """Workflow status of a task; written to the remote record and used by read filters."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DEFERRED = "deferred"
    BLOCKED = "blocked"


@dataclass(slots=True)
class RiceParameters:
    reach: float | None = None
    impact: float | None = None
    confidence: float | None = None
    effort: float | None = None

    def as_dict(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in PARAMETER_NAMES}

    def merged(self, updates: dict[str, float]) -> RiceParameters:
        """Return a copy with `updates` applied; keys not in `updates` are kept."""
        values = self.as_dict()
        for name, value in updates.items():
            if name in values and value is not None:
                values[name] = value
        return RiceParameters(**values)


@dataclass(frozen=True, slots=True)
class Completeness:
    has_reach: bool
    has_impact: bool
    has_confidence: bool
    has_effort: bool

    @property
    def is_complete(self) -> bool:
        return self.has_reach and self.has_impact and self.has_confidence and self.has_effort


@dataclass(frozen=True, slots=True)
class RiceScore:
    reach: float
    impact: float
    confidence: float
    effort: float
    score: float


@dataclass(slots=True)
class TaskMetadata:
    status: TaskStatus = TaskStatus.PENDING
    category: str | None = None
    deadline: str | None = None  # ISO date (YYYY-MM-DD)
    project: str | None = None
    dependencies: list[str] = field(default_factory=list)
    should_split: bool = False
    parent_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def merged(self, updates: dict[str, Any]) -> TaskMetadata:
        known = {f.name for f in fields(self)} - {"extra"}
        data = asdict(self)
        extra = dict(data.pop("extra"))
        for key, value in updates.items():
            if key == "status":
                data[key] = TaskStatus(value)  # ValueError for unknown statuses
            elif key in known:
                data[key] = value
            else:
                extra[key] = value
        return TaskMetadata(**data, extra=extra)


def new_task_id() -> str:
    return f"task_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


@dataclass(slots=True)
class Task:
    id: str
    description: str
    created_at: float
    last_updated: float

    parameters: RiceParameters = field(default_factory=RiceParameters)
    metadata: TaskMetadata = field(default_factory=TaskMetadata)

    sync_status: SyncStatus = SyncStatus.NOT_SYNCED
    record_id: str | None = None
    synced_at: float | None = None

    # Derived values are computed from `parameters` on every access,
    # so completeness and score can never disagree with each other.

    @property
    def completeness(self) -> Completeness:
        from .scoring import completeness  # local import to avoid cycles

        return completeness(self.parameters)

    @property
    def is_complete(self) -> bool:
        return self.completeness.is_complete

    @property
    def score(self) -> float | None:
        from .scoring import compute_score

        return compute_score(self.parameters)

    @property
    def rice(self) -> RiceScore | None:
        from .scoring import rice_score

        return rice_score(self.parameters)

    @property
    def missing_parameters(self) -> list[str]:
        from .scoring import missing_parameters

        return missing_parameters(self.parameters)

    @property
    def edited_since_sync(self) -> bool:
        return (
            self.sync_status == SyncStatus.SYNCED
            and self.synced_at is not None
            and self.last_updated > self.synced_at
        )
