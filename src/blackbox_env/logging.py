"""Structured logging configuration."""
import datetime
import json
import logging
import sys
from typing import Any, List

import structlog
from structlog.types import EventDict, Processor

DEFAULT_LOG_LEVEL = "INFO"
LOGGER_PREFIX = "blackbox_env"
IGNORED_LOGGERS = [
    "concurrent.futures",
    "asyncio",
]


def add_timestamp(_, __, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to the event dict."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return event_dict


def unpack_event_dict(_, __, event_dict: EventDict) -> EventDict:
    """Flatten ``logger.info({"event": ..., ...})`` calls into the event dict."""
    event = event_dict.get("event")
    if isinstance(event, dict):
        payload = dict(event)
        event_dict["event"] = payload.pop("event", "")
        for key, value in payload.items():
            event_dict.setdefault(key, value)
    return event_dict


def drop_ignored(logger: Any, _: str, event_dict: EventDict) -> EventDict:
    """Drop events coming from noisy third-party loggers."""
    name = getattr(logger, "name", "") or ""
    if any(name.startswith(ignored) for ignored in IGNORED_LOGGERS):
        raise structlog.DropEvent
    return event_dict


class CompactJSONRenderer:
    """Single-line JSON renderer with minimal output."""

    def __call__(self, _: Any, __: str, event_dict: EventDict) -> str:
        items = {
            "ts": event_dict.pop("timestamp", None),
            "lvl": event_dict.pop("level", "???"),
            "msg": event_dict.pop("event", ""),
        }
        event_dict.pop("logger", None)
        if event_dict:
            items["data"] = event_dict
        return json.dumps(items, separators=(",", ":"), default=str)


def build_processors(json_output: bool) -> List[Processor]:
    """Processor chain: compact JSON for pipes and CI logs, console otherwise."""
    shared: List[Processor] = [
        structlog.stdlib.filter_by_level,
        drop_ignored,
        unpack_event_dict,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]
    if json_output:
        return shared + [
            add_timestamp,
            structlog.processors.format_exc_info,
            CompactJSONRenderer(),
        ]
    return shared + [
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer(colors=True),
    ]


def configure_logging(level: str = DEFAULT_LOG_LEVEL, json_output: bool | None = None) -> None:
    """Configure structured logging for the framework.

    Log records go to stderr so they never mix with a test's own stdout:
    - JSON lines when stderr is not a terminal (CI logs)
    - colored console output otherwise
    """
    level_no = getattr(logging, level.upper())

    app_logger = logging.getLogger(LOGGER_PREFIX)
    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        app_logger.addHandler(handler)
        app_logger.propagate = False
    app_logger.setLevel(level_no)

    if json_output is None:
        json_output = not sys.stderr.isatty()

    structlog.configure(
        processors=build_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    if not name.startswith(LOGGER_PREFIX):
        name = f"{LOGGER_PREFIX}.{name}"
    return structlog.get_logger(name)
