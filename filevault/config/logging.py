"""Structured logging for FileVault.

Log events are structlog key/value pairs. Request handlers bind ``request_id``
through contextvars and every event is tagged with the upload root it
concerns, so logs from several instances on one host can be told apart.
Credentials never reach a log line: known secret keys are masked before
rendering.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable, MutableMapping
from typing import Any

import structlog

REDACTED = "***"
SECRET_KEYS = frozenset({"password", "secret", "ftp_password", "password_hash"})


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential values; a flag for whether one was given is kept."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _bind_root(upload_root: str | None) -> structlog.types.Processor:
    def add_upload_root(
        _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("upload_root", upload_root)
        return event_dict

    return add_upload_root


def setup_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    upload_root: str | None = None,
    quiet_loggers: Iterable[str] = (),
) -> None:
    """Configure structlog and the stdlib root logger for the service.

    ``quiet_loggers`` are third-party stdlib loggers held at WARNING, e.g.
    aiosqlite, which logs every statement at DEBUG.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]
    if upload_root is not None:
        processors.append(_bind_root(upload_root))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output or not sys.stderr.isatty():
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
