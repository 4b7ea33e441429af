"""
Structured logging for sandpit.

Console output is human-readable with colors. An optional file handler
writes JSON lines, one object per record, for later analysis.

Records carry structured fields through `extra`; only the names in
EXTRA_FIELDS are rendered. `duration` is always in seconds.

Usage:
    from sandpit.logging import get_logger
    logger = get_logger("adapters.docker")
    logger.info("Sandbox created", extra={"sandbox": handle.id, "adapter": "docker"})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

NAMESPACE = "sandpit"

COLORS = {
    "DEBUG": "\033[36m",     # cyan
    "INFO": "\033[32m",      # green
    "WARNING": "\033[33m",   # yellow
    "ERROR": "\033[31m",     # red
    "RESET": "\033[0m",
}

EXTRA_FIELDS = ("sandbox", "adapter", "operation", "engine", "capability", "duration")


def _component(record: logging.LogRecord) -> str:
    return record.name[len(NAMESPACE) + 1:] if record.name.startswith(NAMESPACE + ".") else record.name


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: getattr(record, key)
        for key in EXTRA_FIELDS
        if getattr(record, key, None) is not None
    }


class HumanFormatter(logging.Formatter):
    """Colored single-line format for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        color = COLORS.get(record.levelname, "")
        reset = COLORS["RESET"]
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")

        parts = [f"{color}{ts} [{record.levelname:>7}]{reset} {_component(record)}: {record.getMessage()}"]
        for key, val in _extras(record).items():
            parts.append(f"{key}={val:.3f}s" if key == "duration" else f"{key}={val}")
        if record.exc_info and record.exc_info[1]:
            parts.append(f"error={type(record.exc_info[1]).__name__}")
        return " ".join(parts)


class JsonFormatter(logging.Formatter):
    """JSON lines for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info and record.exc_info[1]:
            error = record.exc_info[1]
            data["error"] = str(error)
            data["error_type"] = type(error).__name__
        return json.dumps(data, default=str)


_setup_done = False


def setup_logging(level: str = "INFO", log_file: Union[str, Path, None] = None) -> None:
    """
    Configure the sandpit logger.

    The first call installs a colored stderr handler and, when log_file is
    given, a JSON lines file handler. Later calls only change the level.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        log_file: optional path for JSON lines output
    """
    global _setup_done

    root = logging.getLogger(NAMESPACE)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if _setup_done:
        return

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(HumanFormatter())
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(path))
        file_handler.setFormatter(JsonFormatter())
        root.addHandler(file_handler)

    _setup_done = True


def get_logger(name: str) -> logging.Logger:
    """Logger under the sandpit namespace ("runtime" -> "sandpit.runtime")."""
    if name != NAMESPACE and not name.startswith(NAMESPACE + "."):
        name = f"{NAMESPACE}.{name}"
    return logging.getLogger(name)


class _BoundLogger(logging.LoggerAdapter):
    """Merges fixed structured fields into every record's extras."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def bind(logger: logging.Logger, **fields: Any) -> logging.LoggerAdapter:
    """
    Return a logger that tags every record with the given fields.

    Usage:
        log = bind(get_logger("eval.lua"), engine="lua")
        log.warning("Script killed", extra={"duration": 0.1})
    """
    return _BoundLogger(logger, {k: v for k, v in fields.items() if v is not None})
