# src/rice_companion/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..core.ports import ChatMessage, Extraction, ToolCall

logger = logging.getLogger(__name__)

_BAD_MODELS: dict[str, float] = {}  # model -> retry_at (monotonic)
_BAD_MODEL_COOLDOWN_SECONDS = 3600.0


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"AuthenticationError", "PermissionDeniedError", "UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, httpx.TimeoutException)):
        return True
    return exc.__class__.__name__ in {
        "APIConnectionError",
        "APITimeoutError",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
    }


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible servers answer 404 for unknown/unavailable models
    return isinstance(exc, openai.NotFoundError) or exc.__class__.__name__ == "NotFoundError"


def friendly_llm_error_message(err: Exception | str) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "LLM is not configured (missing API key). Set RICE_OPENAI_API_KEY in .env (see config.example.py)."
    if "LLM model list is empty" in msg:
        return "LLM is not configured (no models). Set RICE_LLM_MODELS in .env (see config.example.py)."
    if "LLM base URL is not set" in msg:
        return "LLM is not configured (missing base URL). Set RICE_OPENAI_BASE_URL in .env (see config.example.py)."
    return msg


def _tool_calls_from_message(message: Any) -> list[ToolCall]:
    out: list[ToolCall] = []
    for tc in getattr(message, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        name = getattr(fn, "name", None)
        if not name:
            continue
        out.append(ToolCall(name=name, arguments=getattr(fn, "arguments", "") or "", id=getattr(tc, "id", None)))
    return out


class OpenAIExtractionClient:
    """
    Chat completions with tool calling against an OpenAI-compatible API.

    Behavior:
    - Tries models in the order from settings (RICE_LLM_MODELS).
    - 404 (model not available) -> park the model for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    - Everything else surfaces as RuntimeError once all models failed.

    SDK retries are disabled so fallback across models stays quick.
    """

    def __init__(self, settings, *, client: AsyncOpenAI | None = None) -> None:
        api_key = str(getattr(settings, "openai_api_key", "") or "").strip()
        base_url = str(getattr(settings, "openai_base_url", "") or "").strip()
        self._models: list[str] = [m.strip() for m in getattr(settings, "llm_models", []) or [] if m.strip()]
        self._temperature = float(getattr(settings, "llm_temperature", 0.7))
        self._max_tokens = int(getattr(settings, "llm_max_tokens", 1000))

        if client is None:
            if not api_key:
                raise RuntimeError("LLM API key is not set. Set RICE_OPENAI_API_KEY in your .env.")
            if not base_url:
                raise RuntimeError("LLM base URL is not set. Set RICE_OPENAI_BASE_URL in your .env.")

            read_timeout = float(getattr(settings, "extraction_timeout_seconds", 30.0))
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=httpx.Timeout(connect=5.0, read=read_timeout, write=10.0, pool=5.0),
                max_retries=0,
            )
        self._client = client

    async def extract(
        self,
        messages: list[ChatMessage],
        system_prompt: str,
        tools: list[dict[str, Any]],
    ) -> Extraction:
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set RICE_LLM_MODELS in your .env.")

        payload = [{"role": "system", "content": system_prompt}, *messages]
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = _BAD_MODELS.get(model)
            if retry_at is not None and retry_at > now:
                continue

            t0 = time.monotonic()
            try:
                resp = await self._client.chat.completions.create(
                    model=model,
                    messages=payload,
                    tools=tools or openai.NOT_GIVEN,
                    tool_choice="auto" if tools else openai.NOT_GIVEN,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (RICE_OPENAI_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    _BAD_MODELS[model] = time.monotonic() + _BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            if not resp.choices:
                last_error = RuntimeError(f"Model returned no choices: {model}")
                continue

            message = resp.choices[0].message
            extraction = Extraction(
                reply=(getattr(message, "content", None) or "").strip(),
                tool_calls=_tool_calls_from_message(message),
            )
            logger.info(
                "LLM: model=%s tool_calls=%d (%.2fs)",
                model,
                len(extraction.tool_calls),
                time.monotonic() - t0,
            )
            return extraction

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")

    async def test_connection(self) -> bool:
        try:
            await self._client.models.list()
        except Exception as e:
            logger.info("LLM connection test failed: %s", e.__class__.__name__)
            return False
        return True
