# src/rice_companion/core/errors.py

"""
Error taxonomy shared by the store, the orchestrator and the collaborators.

Each class carries a short `kind` string; the orchestrator reports it per
action so callers can tell a skipped action from a rejected or failed one.
"""

from __future__ import annotations


class RiceError(Exception):
    kind = "error"


class TaskNotFoundError(RiceError, KeyError):
    """An operation referenced an unknown task id."""

    kind = "not_found"

    def __init__(self, task_id: str) -> None:
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task {self.task_id} not found"


class PreconditionFailedError(RiceError):
    """E.g. persist requested for a task that is not complete yet."""

    kind = "precondition_failed"


class InvalidActionError(RiceError, ValueError):
    """Unknown action tag or malformed action payload."""

    kind = "invalid_action"


class CollaboratorUnreachableError(RiceError, RuntimeError):
    """Extraction or persistence collaborator failed or timed out."""

    kind = "collaborator_unreachable"


class GatewayError(CollaboratorUnreachableError):
    """Remote record store returned an error or could not be reached."""


class CorruptSnapshotError(RiceError):
    """Local snapshot exists but cannot be decoded."""

    kind = "corrupt_snapshot"
