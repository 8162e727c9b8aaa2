# src/rice_companion/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.orchestrator import TurnResult
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message
from ..tasks.task_api import format_task_line

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def render_turn(result: TurnResult, app_name: str) -> list[str]:
    """Lines shown after a chat turn: the reply, then what changed."""
    lines = [f"<<< {app_name}: {result.reply}"]

    if result.error:
        lines.append(f"[LLM] {friendly_llm_error_message(result.error)}")

    for o in result.outcomes:
        if o.ok and o.action == "request_persist" and not o.data.get("already_synced"):
            lines.append(f"[SAVED] {o.data.get('description', o.task_id)} (score {o.data.get('score'):.2f})")
        elif not o.ok:
            lines.append(f"[{o.action}] {o.error_kind}: {o.detail}")

    if result.read_results:
        lines.append(f"[RECORDS] {len(result.read_results)} read")
        for r in result.read_results:
            lines.append(f"  - {r.get('name')} (score {r.get('rice_score')}, {r.get('status') or '-'})")

    if result.incomplete_tasks:
        lines.append("[IN PROGRESS]")
        lines.extend(f"  {format_task_line(t)}" for t in result.incomplete_tasks)

    return lines


async def _read_line(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (offline=%s).", state.offline)
    _print_ts("[CONSOLE] Describe what's on your plate. Use /help for commands. Use /exit to quit.\n")

    app_name = str(getattr(getattr(state, "settings", None), "app_name", "rice"))

    while True:
        try:
            user_input = (await _read_line(">>> You: ")).strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # Commands (/help, /tasks, ...)
        try:
            cmd_response = await command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)
            continue

        try:
            result = await state.orchestrator.process_turn(user_input)
        except Exception:
            logger.exception("Console chat handler crashed.")
            _print_ts("Internal error while processing the message.")
            continue

        for line in render_turn(result, app_name):
            _print_ts(line)
        print()

    logger.info("Console connector finished.")
