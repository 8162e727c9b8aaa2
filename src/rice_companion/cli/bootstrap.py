# src/rice_companion/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (extractor/gateway/store/orchestrator),
- persists the conversation history as JSON (optional).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..config import get_settings
from ..core.orchestrator import ConversationOrchestrator, ConversationTurn
from ..core.ports import ExtractionClient, PersistenceGateway
from ..core.state import AppState
from ..llm.client import OpenAIExtractionClient
from ..llm.offline import OfflineExtractionClient
from ..persistence.airtable import AirtableGateway
from ..persistence.offline import InMemoryGateway
from ..tasks.snapshot import SnapshotFile
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    settings.dialog_history_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    extractor: ExtractionClient | None = None,
    gateway: PersistenceGateway | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Collaborators can be injected (tests); otherwise they are built from settings,
    falling back to offline implementations when credentials are missing.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    offline = False
    if extractor is None:
        try:
            extractor = OpenAIExtractionClient(settings)
        except RuntimeError as e:
            logger.info("Extraction client unavailable (%s); using offline mode.", e)
            extractor = OfflineExtractionClient()
            offline = True

    if gateway is None:
        try:
            gateway = AirtableGateway.from_settings(settings)
        except RuntimeError as e:
            logger.info("Airtable gateway unavailable (%s); records are kept in memory.", e)
            gateway = InMemoryGateway()

    store = TaskStore(SnapshotFile(settings.snapshot_path))

    save_history = bool(getattr(settings, "save_history", False))
    history = load_conversation_history(settings) if save_history else []

    orchestrator = ConversationOrchestrator(
        store,
        extractor,
        gateway,
        auto_persist=bool(getattr(settings, "auto_persist", True)),
        extraction_timeout=float(getattr(settings, "extraction_timeout_seconds", 30.0)),
        gateway_timeout=float(getattr(settings, "gateway_timeout_seconds", 15.0)),
        history=history,
    )

    return AppState(
        settings=settings,
        extractor=extractor,
        gateway=gateway,
        task_store=store,
        orchestrator=orchestrator,
        save_history=save_history,
        offline=offline,
    )


def load_conversation_history(settings) -> list[ConversationTurn]:
    raw_path = getattr(settings, "dialog_history_path", None)
    if not raw_path:
        return []
    path = Path(raw_path)
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, list):
            return []
        out: list[ConversationTurn] = []
        for m in data:
            if not isinstance(m, dict):
                continue
            role = m.get("role")
            if role not in ("user", "assistant"):
                continue
            actions = m.get("actions")
            out.append(
                ConversationTurn(
                    role=role,
                    content=str(m.get("content", "")),
                    timestamp=float(m.get("timestamp") or 0.0),
                    actions=actions if isinstance(actions, list) else None,
                )
            )
        logger.info("Loaded conversation history: %d turns from %s", len(out), path)
        return out
    except Exception:
        logger.exception("Failed to load conversation history from %s", path)
        return []


def save_conversation_history(state: AppState) -> None:
    if not state.save_history:
        return
    raw_path = getattr(state.settings, "dialog_history_path", None)
    if not raw_path:
        return
    path = Path(raw_path)

    limit = int(getattr(state.settings, "max_dialog_messages", 80))
    turns = state.orchestrator.history
    if limit > 0:
        turns = turns[-limit:]

    payload = [
        {"role": t.role, "content": t.content, "timestamp": t.timestamp, "actions": t.actions}
        for t in turns
    ]
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(Exception):
            # History contains what the user said about their work; keep it private on disk.
            os.chmod(path, 0o600)
        logger.info("Saved conversation history: %d turns to %s", len(payload), path)
    except Exception:
        logger.exception("Failed to save conversation history to %s", path)
