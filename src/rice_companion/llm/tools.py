# src/rice_companion/llm/tools.py

"""
Function/tool schema sent with every extraction request.

Tool names are the action tags understood by core.actions.parse_action().
"""

from __future__ import annotations

from typing import Any, Final

from ..core.actions import READ_SORT_FIELDS, READ_STATUSES, ActionKind
from ..tasks.task_models import TaskStatus


def _function(name: str, description: str, parameters: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


TOOL_DEFINITIONS: Final[list[dict[str, Any]]] = [
    _function(
        ActionKind.CREATE_OR_UPDATE.value,
        "Create a new task or update an existing task with RICE parameters and metadata.",
        {
            "type": "object",
            "properties": {
                "task_id": {
                    "type": "string",
                    "description": "Id of the task to update (omit for new tasks).",
                },
                "task_description": {
                    "type": "string",
                    "description": "Short description of the task (required for new tasks).",
                },
                "updates": {
                    "type": "object",
                    "properties": {
                        "reach": {"type": "number", "description": "How many people are affected."},
                        "impact": {"type": "number", "description": "Scale of effect (1-10)."},
                        "confidence": {"type": "number", "description": "Confidence level (0.1-1.0)."},
                        "effort": {"type": "number", "description": "Time required, in hours."},
                        "status": {
                            "type": "string",
                            "description": "Workflow status of the task.",
                            "enum": [s.value for s in TaskStatus],
                        },
                        "category": {
                            "type": "string",
                            "description": "Task category: work, personal, home, business, etc.",
                        },
                        "deadline": {"type": "string", "description": "Deadline date, YYYY-MM-DD."},
                        "project": {"type": "string", "description": "Project name or grouping."},
                        "dependencies": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Ids of tasks that must be finished first.",
                        },
                    },
                },
            },
            "required": ["updates"],
        },
    ),
    _function(
        ActionKind.REQUEST_PERSIST.value,
        "Write a completed task (all four RICE parameters known) to the task database.",
        {
            "type": "object",
            "properties": {
                "task_id": {"type": "string", "description": "Id of the task to write."},
            },
            "required": ["task_id"],
        },
    ),
    _function(
        ActionKind.REQUEST_READ.value,
        "Read tasks from the task database to answer questions about current priorities or status.",
        {
            "type": "object",
            "properties": {
                "filter_status": {
                    "type": "string",
                    "description": "Filter by status (omit or 'all' to get every task).",
                    "enum": list(READ_STATUSES),
                },
                "sort_by": {
                    "type": "string",
                    "description": "Sort results by field.",
                    "enum": list(READ_SORT_FIELDS),
                    "default": "rice_score",
                },
                "limit": {
                    "type": "number",
                    "description": "Maximum number of tasks to return (default 20).",
                    "default": 20,
                },
            },
        },
    ),
    _function(
        ActionKind.SPLIT.value,
        "Split a large task into smaller subtasks.",
        {
            "type": "object",
            "properties": {
                "parent_task_id": {"type": "string", "description": "Id of the task to split."},
                "subtasks": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Subtask descriptions.",
                },
            },
            "required": ["parent_task_id", "subtasks"],
        },
    ),
]
