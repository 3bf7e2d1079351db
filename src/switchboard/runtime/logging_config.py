"""Logging setup for Switchboard.

Every record carries the routing context of the request being handled
(request id, backend id, operation), taken from contextvars that the
dispatcher sets around each request and each backend attempt. Console
output is human-readable or JSON; the optional rotating file is always JSON.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path

from switchboard.config import RuntimeConfig

ctx_request_id: ContextVar[str] = ContextVar("ctx_request_id", default="")
ctx_backend_id: ContextVar[str] = ContextVar("ctx_backend_id", default="")
ctx_operation: ContextVar[str] = ContextVar("ctx_operation", default="")

# (record attribute, context var, human label, human truncation)
_ROUTING_CONTEXT: tuple[tuple[str, ContextVar[str], str, int | None], ...] = (
    ("request_id", ctx_request_id, "req", 12),
    ("backend_id", ctx_backend_id, "backend", None),
    ("operation", ctx_operation, "op", None),
)

_ISO_DATEFMT = "%Y-%m-%dT%H:%M:%S"

# Client libraries that log every request at INFO or DEBUG
_NOISY_LOGGERS: dict[str, int] = {
    "litellm": logging.WARNING,
    "LiteLLM": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "instructor": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


class CorrelationFilter(logging.Filter):
    """Copy the routing context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for attr, var, _, _ in _ROUTING_CONTEXT:
            setattr(record, attr, var.get())
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for attr, _, _, _ in _ROUTING_CONTEXT:
            value = getattr(record, attr, "")
            if value:
                entry[attr] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Standard format plus a ``[req=... backend=... op=...]`` suffix."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        parts = []
        for attr, _, label, width in _ROUTING_CONTEXT:
            value = getattr(record, attr, "")
            if value:
                parts.append(f"{label}={value[:width] if width else value}")
        return f"{base} [{' '.join(parts)}]" if parts else base


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
    log_dir: str | Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    module_levels: dict[str, str] | None = None,
) -> None:
    """Replace the root handlers with a console handler and an optional log file.

    Args:
        level: Root log level name.
        json_output: JSON console output instead of the human format.
        log_dir: Directory for ``switchboard.log``; None logs to stderr only.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files to keep.
        module_levels: Per-logger overrides, e.g. {"switchboard.runtime.selector": "DEBUG"}.
    """
    root = logging.getLogger()
    root.handlers.clear()
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    corr_filter = CorrelationFilter()
    if json_output:
        formatter: logging.Formatter = JSONFormatter(datefmt=_ISO_DATEFMT)
    else:
        formatter = HumanFormatter(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(corr_filter)
    root.addHandler(console)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "switchboard.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter(datefmt=_ISO_DATEFMT))
        file_handler.addFilter(corr_filter)
        root.addHandler(file_handler)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
    for name, override in (module_levels or {}).items():
        logging.getLogger(name).setLevel(getattr(logging, override.upper(), numeric_level))


def configure_from_config(runtime: RuntimeConfig, *, verbose: bool = False) -> None:
    """Apply the ``[runtime]`` section. ``verbose`` forces DEBUG."""
    configure_logging(
        level="DEBUG" if verbose else runtime.log_level,
        json_output=runtime.log_json,
        log_dir=runtime.log_dir,
        module_levels=runtime.module_levels,
    )
