# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "RICE_APP_NAME": "App display name (default: rice).",
    "RICE_LOG_LEVEL": "Logging level (default: INFO).",
    # Switches
    "RICE_CONSOLE_ENABLED": "Enable console connector (true/false).",
    "RICE_SAVE_HISTORY": "Persist conversation history (true/false).",
    "RICE_AUTO_PERSIST": "Save tasks to the record store as soon as they are complete (true/false).",
    # LLM (OpenAI-compatible)
    "RICE_OPENAI_API_KEY": "API key (OPENAI_API_KEY is accepted too). Without it the app runs offline.",
    "RICE_OPENAI_BASE_URL": "Base URL (default: https://api.openai.com/v1).",
    "RICE_LLM_MODELS": "Comma/space separated list of models to try in order (default: gpt-4o, gpt-4o-mini).",
    "RICE_LLM_TEMPERATURE": "Sampling temperature (default: 0.7).",
    "RICE_LLM_MAX_TOKENS": "Max tokens per reply (default: 1000).",
    "RICE_EXTRACTION_TIMEOUT_SECONDS": "Per-turn LLM timeout (default: 30).",
    # Airtable
    "RICE_AIRTABLE_API_KEY": "Airtable personal access token. Without it records stay in memory.",
    "RICE_AIRTABLE_BASE_ID": "Airtable base id (app...).",
    "RICE_AIRTABLE_TABLE_ID": "Tasks table id or name (default: Tasks).",
    "RICE_AIRTABLE_BASE_URL": "API root (default: https://api.airtable.com/v0).",
    "RICE_GATEWAY_TIMEOUT_SECONDS": "Per-request record store timeout (default: 15).",
    # Paths (gitignored)
    "RICE_DATA_DIR": "Local data directory (default: .local/rice).",
    "RICE_SNAPSHOT_PATH": "Session snapshot JSON path (default: <data_dir>/session.json).",
    "RICE_DIALOG_HISTORY_PATH": "Conversation history JSON path (default: <data_dir>/conversation.json).",
    # Tuning
    "RICE_MAX_DIALOG_MESSAGES": "Max conversation turns kept on disk (default: 80).",
}
