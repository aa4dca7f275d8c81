"""structlog setup for the buzzer server.

LOG_FORMAT selects the renderer ("json" for log shipping, "console" or
unset for humans) and LOG_LEVEL the root level (INFO by default). Stream
handlers bind session_code, role and participant_id through
structlog.contextvars, so every line a stream logs carries them.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_LOG_FORMATS = ("json", "console", "")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Loggers that would otherwise write a line per SSE request or keep-alive.
_QUIET_LOGGERS = ("uvicorn.access",)


def _serialize_enums(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Log event kinds and stream roles by value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _is_test() -> bool:
    return "pytest" in sys.modules


def _env_choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = os.environ.get(name, default).strip()
    value = value.lower() if name == "LOG_FORMAT" else value.upper()
    if value not in allowed:
        shown = ", ".join(repr(a) for a in allowed if a)
        msg = f"Invalid {name}={value!r}. Must be one of {shown}."
        raise ValueError(msg)
    return value


def _handler(handler: logging.Handler, *, json_mode: bool, colors: bool = False) -> logging.Handler:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        ),
    )
    return handler


def setup_logging(log_dir: Path | str | None = None, level: int | None = None) -> Path | None:
    """Route structlog through the root logger, to stdout and optionally a file.

    The file is named after the start time and lives in log_dir; it is
    never created under pytest. Returns its path, or None.
    """
    json_mode = _env_choice("LOG_FORMAT", "", _LOG_FORMATS) == "json"
    if level is None:
        level = getattr(logging, _env_choice("LOG_LEVEL", "INFO", _LOG_LEVELS))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_enums,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(_handler(logging.StreamHandler(sys.stdout), json_mode=json_mode, colors=sys.stdout.isatty()))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_dir is None or _is_test():
        return None

    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    file_path = dir_path / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    root.addHandler(_handler(logging.FileHandler(file_path), json_mode=json_mode))
    return file_path
