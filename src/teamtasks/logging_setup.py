# src/teamtasks/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Loggers that write on every store operation or snapshot; shown on the console only at WARNING+.
QUIET_PREFIXES = ("teamtasks.storage.", "teamtasks.core.sync")


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' -> logging.DEBUG; unknown names fall back to `default`."""
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


class _ConsoleNoiseFilter(logging.Filter):
    """
    The console shares the terminal with the REPL prompt:
    - teamtasks logs pass, except the per-write chatter in `quiet_prefixes`
    - everything else (py.warnings, pandas, asyncio) needs ERROR+
    """

    def __init__(self, quiet_prefixes: tuple[str, ...] = QUIET_PREFIXES) -> None:
        super().__init__()
        self._quiet = quiet_prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("teamtasks."):
            return record.levelno >= logging.ERROR
        if name.startswith(self._quiet):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_file: str | Path | None = ".local/teamtasks/teamtasks.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path | None:
    """
    Configure the root logger:
    - stderr handler at `console_level`, filtered for interactive use
    - file handler at `file_level` with everything (skipped when log_file is None)

    Call this ONCE, very early (before first logger.info). Returns the log file path.
    """
    root = logging.getLogger()
    root.setLevel(min(console_level, file_level) if log_file else console_level)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    path: Path | None = None
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
    return path
