from __future__ import annotations

import logging
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "transit_mapper"
LOG_FILE_NAME = "mapper.log.jsonl"


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _resolve_log_dir(out_dir: str) -> Path | None:
    """``<out_dir>/logs``, or a temp directory when that is not writable."""
    for log_dir in (Path(out_dir) / "logs", Path(gettempdir()) / LOGGER_NAME / "logs"):
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        return log_dir
    return None


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    # Worker threads share one logger; configure it once per process.
    if getattr(logger, "_configured", False):
        return logger

    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False
    formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(threadName)s %(message)s")

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    log_dir = _resolve_log_dir(settings.out_dir)
    if log_dir is not None:
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger._configured = True  # type: ignore[attr-defined]
    return logger


_LOGGER: logging.Logger | None = None


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one JSON record whose message and ``event`` key are ``event``."""
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = get_logger()
    _LOGGER.log(level, event, extra={"event": event, **fields})
