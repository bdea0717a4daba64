"""Logger setup and the per-execution run log."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping

LOGGER_NAME = "autoscript_engine"
LOG_FILENAME = "autoscript.log"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(logging_cfg: Mapping[str, Any] | None = None) -> logging.Logger:
    """Apply the ``logging`` settings section to the package logger.

    The level is re-applied on every call. The console handler and the optional
    ``<log_dir>/autoscript.log`` handler are each added at most once.
    """
    cfg = logging_cfg or {}
    logger = logging.getLogger(LOGGER_NAME)
    level = str(cfg.get("level") or "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    installed = {getattr(handler, "autoscript_role", None) for handler in logger.handlers}
    if "console" not in installed:
        console = logging.StreamHandler()
        console.autoscript_role = "console"  # type: ignore[attr-defined]
        console.setFormatter(formatter)
        logger.addHandler(console)

    log_dir = cfg.get("log_dir")
    if log_dir and "file" not in installed:
        target = Path(log_dir)
        target.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target / LOG_FILENAME, encoding="utf-8")
        file_handler.autoscript_role = "file"  # type: ignore[attr-defined]
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger


class ExecutionLog:
    """Appends human-readable lines to a run's log and mirrors them to ``logging``."""

    def __init__(self, lines: List[str], *, execution_id: int | None = None, logger: logging.Logger | None = None) -> None:
        self.lines = lines
        self.execution_id = execution_id
        self._logger = logger or logging.getLogger(f"{LOGGER_NAME}.execution")

    def info(self, message: str) -> None:
        self._emit(logging.INFO, message)

    def warning(self, message: str) -> None:
        self._emit(logging.WARNING, message)

    def error(self, message: str) -> None:
        self._emit(logging.ERROR, message)

    def _emit(self, level: int, message: str) -> None:
        self.lines.append(message)
        self._logger.log(level, "[execution %s] %s", self.execution_id, message)
