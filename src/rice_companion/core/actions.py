# src/rice_companion/core/actions.py

"""
Structured actions produced by the extraction collaborator.

The vocabulary is closed: create_or_update, request_persist, request_read, split.
parse_action() validates a raw tool call into one of these variants and raises
InvalidActionError for anything else (unknown tag, bad JSON, wrong types).
Tags are never guessed or aliased.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from ..tasks.scoring import validate_parameters
from ..tasks.task_models import PARAMETER_NAMES, TaskStatus
from .errors import InvalidActionError
from .ports import ToolCall


class ActionKind(StrEnum):
    CREATE_OR_UPDATE = "create_or_update"
    REQUEST_PERSIST = "request_persist"
    REQUEST_READ = "request_read"
    SPLIT = "split"


READ_STATUSES = (*(s.value for s in TaskStatus), "all")
READ_SORT_FIELDS = ("rice_score", "effort", "status", "created_at")
READ_MAX_LIMIT = 100

_METADATA_KEYS = ("status", "category", "deadline", "project", "dependencies")


@dataclass(frozen=True, slots=True)
class CreateOrUpdate:
    task_id: str | None = None
    description: str | None = None
    parameter_updates: dict[str, float] = field(default_factory=dict)
    metadata_updates: dict[str, Any] = field(default_factory=dict)

    kind = ActionKind.CREATE_OR_UPDATE


@dataclass(frozen=True, slots=True)
class RequestPersist:
    task_id: str

    kind = ActionKind.REQUEST_PERSIST


@dataclass(frozen=True, slots=True)
class RequestRead:
    status: str | None = None
    sort_by: str = "rice_score"
    limit: int = 20

    kind = ActionKind.REQUEST_READ


@dataclass(frozen=True, slots=True)
class Split:
    task_id: str
    subtasks: tuple[str, ...]

    kind = ActionKind.SPLIT


Action = CreateOrUpdate | RequestPersist | RequestRead | Split


def _decode_arguments(raw: dict[str, Any] | str | None) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InvalidActionError(f"arguments are not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidActionError("arguments must be a JSON object")
    return data


def _opt_str(args: dict[str, Any], key: str) -> str | None:
    v = args.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise InvalidActionError(f"{key} must be a string")
    v = v.strip()
    return v or None


def _req_str(args: dict[str, Any], key: str) -> str:
    v = _opt_str(args, key)
    if v is None:
        raise InvalidActionError(f"{key} is required")
    return v


def _parse_deadline(raw: Any) -> str:
    if not isinstance(raw, str):
        raise InvalidActionError("deadline must be a YYYY-MM-DD string")
    try:
        return date.fromisoformat(raw.strip()[:10]).isoformat()
    except ValueError as e:
        raise InvalidActionError(f"deadline is not a date: {raw!r}") from e


def _parse_create_or_update(args: dict[str, Any]) -> CreateOrUpdate:
    task_id = _opt_str(args, "task_id")
    description = _opt_str(args, "task_description") or _opt_str(args, "description")
    if task_id is None and description is None:
        raise InvalidActionError("either task_id or task_description is required")

    updates = args.get("updates") or {}
    if not isinstance(updates, dict):
        raise InvalidActionError("updates must be an object")

    try:
        params = validate_parameters({k: updates.get(k) for k in PARAMETER_NAMES})
    except ValueError as e:
        raise InvalidActionError(str(e)) from e

    metadata: dict[str, Any] = {}
    for key in _METADATA_KEYS:
        value = updates.get(key)
        if value is None or value == "":
            continue
        if key == "status":
            try:
                metadata[key] = TaskStatus(value)
            except ValueError as e:
                raise InvalidActionError(f"unknown status {value!r}") from e
        elif key == "deadline":
            metadata[key] = _parse_deadline(value)
        elif key == "dependencies":
            if not isinstance(value, list):
                raise InvalidActionError("dependencies must be a list of task ids")
            metadata[key] = [str(v) for v in value]
        else:
            if not isinstance(value, str):
                raise InvalidActionError(f"{key} must be a string")
            metadata[key] = value.strip()

    return CreateOrUpdate(
        task_id=task_id,
        description=description,
        parameter_updates=params,
        metadata_updates=metadata,
    )


def _parse_request_read(args: dict[str, Any]) -> RequestRead:
    status = _opt_str(args, "filter_status")
    if status is not None and status not in READ_STATUSES:
        raise InvalidActionError(f"unknown filter_status {status!r}")
    if status == "all":
        status = None

    sort_by = _opt_str(args, "sort_by") or "rice_score"
    if sort_by not in READ_SORT_FIELDS:
        raise InvalidActionError(f"unknown sort_by {sort_by!r}")

    limit_raw = args.get("limit", 20)
    if isinstance(limit_raw, bool) or not isinstance(limit_raw, (int, float)):
        raise InvalidActionError("limit must be a number")
    limit = max(1, min(READ_MAX_LIMIT, int(limit_raw)))

    return RequestRead(status=status, sort_by=sort_by, limit=limit)


def _parse_split(args: dict[str, Any]) -> Split:
    task_id = _opt_str(args, "parent_task_id") or _req_str(args, "task_id")
    raw = args.get("subtasks")
    if not isinstance(raw, list) or not raw:
        raise InvalidActionError("subtasks must be a non-empty list of descriptions")
    subtasks = tuple(s.strip() for s in raw if isinstance(s, str) and s.strip())
    if len(subtasks) != len(raw):
        raise InvalidActionError("every subtask must be a non-empty string")
    return Split(task_id=task_id, subtasks=subtasks)


def parse_action(call: ToolCall) -> Action:
    """Validate one tool call into an Action (raises InvalidActionError)."""
    try:
        kind = ActionKind(call.name)
    except ValueError as e:
        raise InvalidActionError(f"unknown action {call.name!r}") from e

    args = _decode_arguments(call.arguments)

    if kind == ActionKind.CREATE_OR_UPDATE:
        return _parse_create_or_update(args)
    if kind == ActionKind.REQUEST_PERSIST:
        return RequestPersist(task_id=_req_str(args, "task_id"))
    if kind == ActionKind.REQUEST_READ:
        return _parse_request_read(args)
    return _parse_split(args)


def action_to_dict(action: Action) -> dict[str, Any]:
    """Plain payload stored on the assistant turn."""
    if isinstance(action, CreateOrUpdate):
        return {
            "action": action.kind.value,
            "task_id": action.task_id,
            "description": action.description,
            "parameter_updates": dict(action.parameter_updates),
            "metadata_updates": dict(action.metadata_updates),
        }
    if isinstance(action, RequestPersist):
        return {"action": action.kind.value, "task_id": action.task_id}
    if isinstance(action, RequestRead):
        return {
            "action": action.kind.value,
            "status": action.status,
            "sort_by": action.sort_by,
            "limit": action.limit,
        }
    return {"action": action.kind.value, "task_id": action.task_id, "subtasks": list(action.subtasks)}
