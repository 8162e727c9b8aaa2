# src/rice_companion/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL
until /exit, EOF or a termination signal.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state, save_conversation_history
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        save_conversation_history(state)
    except Exception:
        logger.exception("Failed to save conversation history.")

    # TaskStore snapshots on every mutation; nothing to flush here.
    try:
        await state.gateway.aclose()
    except Exception:
        logger.debug("Gateway close failed.", exc_info=True)


async def _run(state: AppState) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            # Some platforms do not support loop signal handlers.
            loop.add_signal_handler(sig, _handle_signal, sig)

    try:
        if state.settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state))
            stopper = asyncio.create_task(stop.wait())
            await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            stopper.cancel()
            if not console.done():
                # input() runs in a worker thread and cannot be interrupted; stop waiting for it.
                console.cancel()
        else:
            logger.info("Console disabled. Nothing to run; press Ctrl+C to stop.")
            await stop.wait()
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/rice")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    logger.info("Starting %s...", getattr(settings, "app_name", "rice"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
