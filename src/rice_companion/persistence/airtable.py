# src/rice_companion/persistence/airtable.py

"""
Airtable-backed PersistenceGateway.

Record layout (one row per completed task):
- Name: task description (the primary field)
- task_id, session_id: local identifiers
- reach, impact, confidence, effort: RICE inputs
- rice_score: formula column on the Airtable side (read, never written)
- status, category, project, due_date, extraction_confidence

All failures (non-2xx, network, timeouts) surface as GatewayError.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..core.errors import GatewayError
from ..core.ports import RecordQuery
from ..tasks.task_models import RiceScore, Task

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.airtable.com/v0"

SORTABLE_FIELDS = frozenset({"rice_score", "effort", "status", "created_at"})

DEFAULT_CATEGORY = "work"
DEFAULT_PROJECT = "General"

# Local field name -> Airtable column.
_COLUMN_FOR_FIELD = {
    "description": "Name",
    "task_id": "task_id",
    "reach": "reach",
    "impact": "impact",
    "confidence": "confidence",
    "effort": "effort",
    "status": "status",
    "category": "category",
    "project": "project",
    "deadline": "due_date",
    "session_id": "session_id",
}


def _quote_formula_value(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_filter_formula(status: str | None, session_id: str | None) -> str | None:
    clauses: list[str] = []
    if status and status != "all":
        clauses.append(f"{{status}}={_quote_formula_value(status)}")
    if session_id:
        clauses.append(f"{{session_id}}={_quote_formula_value(session_id)}")
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return f"AND({','.join(clauses)})"


def record_fields(task: Task, score: RiceScore, session_id: str) -> dict[str, Any]:
    """Columns written when a task is first persisted."""
    meta = task.metadata
    fields: dict[str, Any] = {
        "Name": task.description,
        "task_id": task.id,
        "reach": score.reach,
        "impact": score.impact,
        "confidence": score.confidence,
        "effort": score.effort,
        "status": meta.status.value,
        "category": meta.category or DEFAULT_CATEGORY,
        "project": meta.project or DEFAULT_PROJECT,
        "session_id": session_id,
        "extraction_confidence": "explicit",
    }
    if meta.deadline:
        fields["due_date"] = meta.deadline
    return fields


def record_from_api(raw: dict[str, Any]) -> dict[str, Any]:
    f = raw.get("fields") or {}
    return {
        "id": raw.get("id"),
        "name": f.get("Name"),
        "task_id": f.get("task_id"),
        "rice_score": f.get("rice_score"),
        "reach": f.get("reach"),
        "impact": f.get("impact"),
        "confidence": f.get("confidence"),
        "effort": f.get("effort"),
        "status": f.get("status"),
        "category": f.get("category"),
        "due_date": f.get("due_date"),
        "project": f.get("project"),
        "session_id": f.get("session_id"),
        "created_at": raw.get("createdTime"),
    }


class AirtableGateway:
    """
    Async Airtable REST client for the tasks table.

    `transport` lets tests plug in httpx.MockTransport; production uses the default.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_id: str,
        table_id: str = "Tasks",
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise RuntimeError("Airtable API key is not set. Set RICE_AIRTABLE_API_KEY in your .env.")
        if not base_id or not base_id.strip():
            raise RuntimeError("Airtable base id is not set. Set RICE_AIRTABLE_BASE_ID in your .env.")

        self._table_path = f"/{quote(base_id.strip())}/{quote(table_id.strip())}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key.strip()}"},
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings, *, transport: httpx.AsyncBaseTransport | None = None) -> AirtableGateway:
        return cls(
            api_key=str(getattr(settings, "airtable_api_key", "") or ""),
            base_id=str(getattr(settings, "airtable_base_id", "") or ""),
            table_id=str(getattr(settings, "airtable_table_id", "Tasks") or "Tasks"),
            base_url=str(getattr(settings, "airtable_base_url", DEFAULT_BASE_URL) or DEFAULT_BASE_URL),
            timeout_seconds=float(getattr(settings, "gateway_timeout_seconds", 15.0)),
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.info("Airtable %s %s failed: %s", method, path, e.__class__.__name__)
            raise GatewayError(f"Airtable request failed: {e.__class__.__name__}") from e

        if resp.status_code >= 400:
            body = resp.text[:300]
            logger.warning("Airtable %s %s -> %s %s", method, path, resp.status_code, body)
            raise GatewayError(f"Airtable API error: {resp.status_code} {body}".strip())
        return resp

    async def create_record(self, task: Task, score: RiceScore, session_id: str) -> str:
        resp = await self._request(
            "POST",
            self._table_path,
            json={"fields": record_fields(task, score, session_id)},
        )
        record_id = resp.json().get("id")
        if not record_id:
            raise GatewayError("Airtable response has no record id")
        logger.info("Airtable record created id=%s task=%s", record_id, task.id)
        return str(record_id)

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        columns = {_COLUMN_FOR_FIELD.get(k, k): v for k, v in fields.items() if v is not None}
        await self._request("PATCH", f"{self._table_path}/{quote(record_id)}", json={"fields": columns})
        logger.info("Airtable record updated id=%s fields=%s", record_id, sorted(columns))

    async def list_records(self, query: RecordQuery) -> list[dict[str, Any]]:
        sort_by = query.sort_by if query.sort_by in SORTABLE_FIELDS else "rice_score"
        params: dict[str, Any] = {
            "maxRecords": max(1, int(query.limit)),
            "sort[0][field]": sort_by,
            "sort[0][direction]": "desc",
        }
        formula = build_filter_formula(query.status, query.session_id)
        if formula:
            params["filterByFormula"] = formula

        resp = await self._request("GET", self._table_path, params=params)
        records = resp.json().get("records") or []
        return [record_from_api(r) for r in records if isinstance(r, dict)]

    async def delete_record(self, record_id: str) -> None:
        await self._request("DELETE", f"{self._table_path}/{quote(record_id)}")
        logger.info("Airtable record deleted id=%s", record_id)

    async def test_connection(self) -> bool:
        try:
            await self._request("GET", self._table_path, params={"maxRecords": 1})
        except GatewayError:
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
