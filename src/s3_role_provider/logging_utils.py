"""Logging helpers for the S3 role credential provider."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from s3_role_provider.config import Settings, load_settings

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)


def configure_logging(settings: Settings | None = None) -> None:
    """Install stderr (and optional file) handlers at the configured level."""
    global _logging_configured

    settings = settings or load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    _logging_configured = True


def ensure_logging(settings: Settings | None = None) -> None:
    """Configure logging once per process; later calls are no-ops."""
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging(settings)


def get_logger(name: str) -> logging.Logger:
    ensure_logging()
    return logging.getLogger(name)
