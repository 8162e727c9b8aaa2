# src/rice_companion/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Missing credentials switch the app to offline collaborators instead of failing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "RICE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Local .env never overrides variables already set in the environment.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Switches ----
    console_enabled: bool
    save_history: bool
    auto_persist: bool

    # ---- Extraction collaborator (OpenAI-compatible) ----
    openai_api_key: Optional[str]
    openai_base_url: str
    llm_models: List[str]
    llm_temperature: float
    llm_max_tokens: int
    extraction_timeout_seconds: float

    # ---- Persistence gateway (Airtable) ----
    airtable_api_key: Optional[str]
    airtable_base_id: str
    airtable_table_id: str
    airtable_base_url: str
    gateway_timeout_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    snapshot_path: Path
    dialog_history_path: Path

    # ---- Tuning ----
    max_dialog_messages: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="rice") or "rice"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        save_history = _env_bool(_k("SAVE_HISTORY"), True)
        auto_persist = _env_bool(_k("AUTO_PERSIST"), True)

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o", "gpt-4o-mini"])
        llm_temperature = _env_float(_k("LLM_TEMPERATURE"), 0.7)
        llm_max_tokens = _env_int(_k("LLM_MAX_TOKENS"), 1000)
        extraction_timeout_seconds = _env_float(_k("EXTRACTION_TIMEOUT_SECONDS"), 30.0)

        airtable_api_key = _first_env(_k("AIRTABLE_API_KEY"), "AIRTABLE_API_KEY", default=None)
        airtable_base_id = (_first_env(_k("AIRTABLE_BASE_ID"), "AIRTABLE_BASE_ID", default="") or "").strip()
        airtable_table_id = _env(_k("AIRTABLE_TABLE_ID"), "Tasks").strip()
        airtable_base_url = _env(_k("AIRTABLE_BASE_URL"), "https://api.airtable.com/v0")
        gateway_timeout_seconds = _env_float(_k("GATEWAY_TIMEOUT_SECONDS"), 15.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/rice"))
        snapshot_path = _env_path(_k("SNAPSHOT_PATH"), data_dir / "session.json")
        dialog_history_path = _env_path(_k("DIALOG_HISTORY_PATH"), data_dir / "conversation.json")

        max_dialog_messages = _env_int(_k("MAX_DIALOG_MESSAGES"), 80)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            save_history=save_history,
            auto_persist=auto_persist,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
            llm_temperature=llm_temperature,
            llm_max_tokens=llm_max_tokens,
            extraction_timeout_seconds=extraction_timeout_seconds,
            airtable_api_key=airtable_api_key,
            airtable_base_id=airtable_base_id,
            airtable_table_id=airtable_table_id,
            airtable_base_url=airtable_base_url,
            gateway_timeout_seconds=gateway_timeout_seconds,
            data_dir=data_dir,
            snapshot_path=snapshot_path,
            dialog_history_path=dialog_history_path,
            max_dialog_messages=max_dialog_messages,
        )


SETTINGS = Settings.from_env()

# ---- Optional local overrides (never committed) ----
# Prefer .env for secrets; use config_local.py only for safe overrides.
try:
    import config_local as _config_local  # type: ignore

    # Keep it explicit: only a few switches are overridable from python.
    if hasattr(_config_local, "CONSOLE_ENABLED"):
        object.__setattr__(SETTINGS, "console_enabled", bool(_config_local.CONSOLE_ENABLED))  # type: ignore[misc]
    if hasattr(_config_local, "AUTO_PERSIST"):
        object.__setattr__(SETTINGS, "auto_persist", bool(_config_local.AUTO_PERSIST))  # type: ignore[misc]
    if hasattr(_config_local, "LLM_MODELS"):
        object.__setattr__(SETTINGS, "llm_models", list(_config_local.LLM_MODELS))  # type: ignore[misc]
except Exception:
    pass


def get_settings() -> Settings:
    return SETTINGS
