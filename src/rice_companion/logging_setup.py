# src/rice_companion/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Per-mutation debug chatter; the log file keeps it, the console only shows problems.
_QUIET_ON_CONSOLE = ("rice_companion.tasks.task_store", "rice_companion.tasks.snapshot")


class _ConsoleFilter(logging.Filter):
    """App logs pass (store/snapshot only at WARNING+); third-party logs only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(_QUIET_ON_CONSOLE):
            return record.levelno >= logging.WARNING
        if name.startswith("rice_companion."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/rice",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Console handler (filtered, for the REPL) + file handler (everything) at <log_dir>/rice.log.

    Call once from the entry point, before the first log line.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_dir / "rice.log"), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)
