# src/rice_companion/persistence/offline.py

from __future__ import annotations

import secrets
from datetime import UTC, datetime
from typing import Any

from ..core.errors import GatewayError
from ..core.ports import RecordQuery
from ..tasks.scoring import round_half_up
from ..tasks.task_models import RiceScore, Task


class InMemoryGateway:
    """
    Dict-backed PersistenceGateway used when no remote store is configured.

    Records use the same shape that AirtableGateway returns from list_records(),
    including a computed rice_score.
    """

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}

    def _new_id(self) -> str:
        return f"rec{secrets.token_hex(7)}"

    async def create_record(self, task: Task, score: RiceScore, session_id: str) -> str:
        record_id = self._new_id()
        meta = task.metadata
        self.records[record_id] = {
            "id": record_id,
            "name": task.description,
            "task_id": task.id,
            "rice_score": score.score,
            "reach": score.reach,
            "impact": score.impact,
            "confidence": score.confidence,
            "effort": score.effort,
            "status": meta.status.value,
            "category": meta.category or "work",
            "due_date": meta.deadline,
            "project": meta.project or "General",
            "session_id": session_id,
            "created_at": datetime.now(UTC).isoformat(),
        }
        return record_id

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        rec = self.records.get(record_id)
        if rec is None:
            raise GatewayError(f"Record {record_id} not found")
        for key, value in fields.items():
            if value is None:
                continue
            if key == "description":
                rec["name"] = value
            elif key == "deadline":
                rec["due_date"] = value
            else:
                rec[key] = value
        try:
            rec["rice_score"] = round_half_up(rec["reach"] * rec["impact"] * rec["confidence"] / rec["effort"])
        except (TypeError, ValueError, ZeroDivisionError):
            rec["rice_score"] = None

    async def list_records(self, query: RecordQuery) -> list[dict[str, Any]]:
        out = list(self.records.values())
        if query.status and query.status != "all":
            out = [r for r in out if r.get("status") == query.status]
        if query.session_id:
            out = [r for r in out if r.get("session_id") == query.session_id]

        key = query.sort_by

        def _sort_key(r: dict[str, Any]) -> tuple[bool, Any]:
            v = r.get(key)
            return (v is not None, v if v is not None else 0)

        out.sort(key=_sort_key, reverse=True)
        return [dict(r) for r in out[: max(1, int(query.limit))]]

    async def delete_record(self, record_id: str) -> None:
        if self.records.pop(record_id, None) is None:
            raise GatewayError(f"Record {record_id} not found")

    async def test_connection(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None
