"""Logging setup for scheck.

Verbosity and output style are described by a LogConfig value that the CLI
builds and passes to ``configure_logging``. The returned logger is handed to
the components that need one; nothing here is process-wide state besides the
handlers attached to the ``scheck`` logger.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "scheck"

REDACTED = "[REDACTED]"

SENSITIVE_KEY = re.compile(r"api[_-]?key|secret|password|token|credential|auth", re.IGNORECASE)
SENSITIVE_PREFIXES = ("sk_", "pk_", "Bearer ", "Basic ")


@dataclass(frozen=True)
class LogConfig:
    """How scheck should log.

    Attributes:
        verbose: Show debug messages.
        quiet: Show errors only. Wins over verbose.
        json: Emit one JSON object per record instead of rich text.
    """

    verbose: bool = False
    quiet: bool = False
    json: bool = False

    @property
    def level(self) -> int:
        if self.quiet:
            return logging.ERROR
        if self.verbose:
            return logging.DEBUG
        return logging.INFO


def redact(value: Any, key: Optional[str] = None) -> Any:
    """Mask sensitive values.

    A value is masked when its key looks sensitive (api key, secret, token,
    ...) or when it is a string with a credential prefix. Dicts and lists
    are processed recursively.
    """
    if key is not None and SENSITIVE_KEY.search(key):
        return REDACTED
    if isinstance(value, dict):
        return {k: redact(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    if isinstance(value, str) and value.startswith(SENSITIVE_PREFIXES):
        return REDACTED
    return value


class RedactingFilter(logging.Filter):
    """Redacts sensitive values in record arguments and ``extra`` data."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = redact(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(redact(arg) for arg in record.args)
        data = getattr(record, "data", None)
        if isinstance(data, dict):
            record.data = redact(data)
        return True


class JsonFormatter(logging.Formatter):
    """Formats records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data:
            payload["data"] = data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: LogConfig, console: Optional[Console] = None) -> logging.Logger:
    """Configure the ``scheck`` logger from a LogConfig.

    Replaces any handlers installed by a previous call.

    Args:
        config: Verbosity and style.
        console: Rich console for text output (defaults to stderr).

    Returns:
        The configured ``scheck`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if config.json:
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
    else:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )

    handler.addFilter(RedactingFilter())
    logger.addHandler(handler)
    logger.setLevel(config.level)
    logger.propagate = False
    return logger
