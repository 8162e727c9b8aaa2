# src/rice_companion/llm/offline.py

from __future__ import annotations

from typing import Any

from ..core.ports import ChatMessage, Extraction


class OfflineExtractionClient:
    """
    Offline deterministic extraction client used for demos when no external API is configured.

    It never returns actions, so the task state only changes through console commands.
    """

    async def extract(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        tools: list[dict[str, Any]],
    ) -> Extraction:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        return Extraction(
            reply=(
                "Offline demo mode: no external LLM is configured.\n"
                "Set RICE_OPENAI_API_KEY (and RICE_LLM_MODELS) to enable task extraction.\n\n"
                f"You said: {user_text}"
            )
        )

    async def test_connection(self) -> bool:
        return False
