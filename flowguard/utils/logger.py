# utils/logger.py
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, MutableMapping, Tuple

ROOT_LOGGER = "flowguard"

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_FMT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_COLORS = {
    logging.ERROR: "\033[91m",    # red
    logging.WARNING: "\033[93m",  # yellow
    logging.INFO: "\033[92m",     # green
}


def level_from_name(name: str | None) -> int | None:
    """Logging level for a case-insensitive name ("warn" included); None if unknown."""
    key = (name or "").strip().upper()
    if key == "WARN":
        key = "WARNING"
    return getattr(logging, key) if key in LEVEL_NAMES else None


def _env_level(default: str = "WARNING") -> int:
    """LOG_LEVEL from env; an unknown value falls back to `default`."""
    return level_from_name(os.getenv("LOG_LEVEL")) or level_from_name(default) or logging.WARNING


def _wants_color(stream: Any) -> bool:
    # https://no-color.org
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class _ColorFormatter(logging.Formatter):
    """Colors the whole line by level; DEBUG stays plain."""

    def __init__(self, use_color: bool):
        super().__init__(fmt=_FMT, datefmt=_DATEFMT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base
        for level, color in _COLORS.items():
            if record.levelno >= level:
                return f"{color}{base}\033[0m"
        return base


def _drop_handlers(logger: logging.Logger) -> None:
    # a CLI re-run in the same process must not keep writing to a previous run's stream or file
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def init_logger(
    name: str = ROOT_LOGGER,
    level: int | None = None,
    log_dir: str | Path | None = None,
    file_name: str = "flowguard.log",
    file_max_mb: int = 5,
    file_backup: int = 3,
) -> logging.Logger:
    """
    Configure the project logger for one CLI run.

    Diagnostics go to stderr so that stdout carries only the report; with
    `log_dir` a rotating file receives the same records, uncolored.
    """
    logger = logging.getLogger(name)
    _drop_handlers(logger)
    logger.propagate = False
    logger.setLevel(level if level is not None else _env_level())

    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(_ColorFormatter(use_color=_wants_color(sys.stderr)))
    logger.addHandler(sh)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            filename=str(log_dir / file_name),
            maxBytes=file_max_mb * 1024 * 1024,
            backupCount=file_backup,
            encoding="utf-8",
        )
        fh.setFormatter(logging.Formatter(fmt=_FMT, datefmt=_DATEFMT))
        logger.addHandler(fh)

    return logger


def reset_logger(name: str = ROOT_LOGGER) -> None:
    """Undo `init_logger`: no handlers, records propagate to the root logger again."""
    logger = logging.getLogger(name)
    _drop_handlers(logger)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def get_logger(child: str) -> logging.Logger:
    """Create/get a child logger under the root project logger."""
    return logging.getLogger(ROOT_LOGGER).getChild(child)


class SourceAdapter(logging.LoggerAdapter):
    """Prefixes every message with the workflow file it concerns."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['source']}] {msg}", kwargs


def source_logger(child: str, source: Any) -> SourceAdapter:
    """Child logger whose records name the workflow file being analyzed."""
    return SourceAdapter(get_logger(child), {"source": str(source)})
