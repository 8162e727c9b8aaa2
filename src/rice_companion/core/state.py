# src/rice_companion/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.task_store import TaskStore
from .orchestrator import ConversationOrchestrator
from .ports import ExtractionClient, PersistenceGateway


@dataclass
class AppState:
    """Process-wide wiring shared by connectors and commands."""

    settings: Any
    extractor: ExtractionClient
    gateway: PersistenceGateway
    task_store: TaskStore
    orchestrator: ConversationOrchestrator

    save_history: bool = True
    offline: bool = False
