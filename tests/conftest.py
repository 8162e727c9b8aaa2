# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from rice_companion.cli.bootstrap import create_initial_state
from rice_companion.core.orchestrator import ConversationOrchestrator
from rice_companion.core.state import AppState
from rice_companion.tasks.snapshot import SnapshotFile
from rice_companion.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeGateway, ScriptedExtractor


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="rice",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        snapshot_path=tmp_path / "session.json",
        dialog_history_path=tmp_path / "conversation.json",
        # No credentials: real collaborators fall back to offline ones
        openai_api_key=None,
        openai_base_url="https://api.openai.com/v1",
        llm_models=["gpt-4o"],
        airtable_api_key=None,
        airtable_base_id="",
        airtable_table_id="Tasks",
        # Timeouts / limits
        extraction_timeout_seconds=1.0,
        gateway_timeout_seconds=1.0,
        max_dialog_messages=80,
        # Features
        save_history=True,
        auto_persist=True,
        console_enabled=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(settings: SimpleNamespace, clock: FakeClock) -> TaskStore:
    return TaskStore(SnapshotFile(settings.snapshot_path), clock=clock)


@pytest.fixture()
def extractor() -> ScriptedExtractor:
    return ScriptedExtractor()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def orchestrator(
    store: TaskStore, extractor: ScriptedExtractor, gateway: FakeGateway
) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        store,
        extractor,
        gateway,
        extraction_timeout=1.0,
        gateway_timeout=1.0,
    )


@pytest.fixture()
def state(settings: SimpleNamespace, extractor: ScriptedExtractor, gateway: FakeGateway) -> AppState:
    """
    AppState wired through the real composition root with deterministic fakes.

    NOTE: The TaskStore is real (snapshot in tmp_path) because its behavior
    is part of what the command tests check.
    """
    return create_initial_state(settings=settings, extractor=extractor, gateway=gateway)
