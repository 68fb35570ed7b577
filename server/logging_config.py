"""
Structured logging configuration for the UNO game server.

Provides:
- JSONFormatter for production (one JSON object per line)
- Colored human-readable formatter for development
- Room/player context, bound per connection with bind_context() or attached
  per call through ContextLogger.with_context()
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Bound by the WebSocket endpoint for the lifetime of a connection
room_code_var: ContextVar[Optional[str]] = ContextVar("room_code", default=None)
player_id_var: ContextVar[Optional[str]] = ContextVar("player_id", default=None)

CONTEXT_FIELDS = (
    ("room_code", room_code_var),
    ("player_id", player_id_var),
)


def bind_context(room_code: Optional[str] = None, player_id: Optional[str] = None) -> None:
    """Set the room/player context for the current task."""
    room_code_var.set(room_code)
    if player_id is not None:
        player_id_var.set(player_id)


def record_context(record: logging.LogRecord) -> dict:
    """Room/player context for a record; `extra` fields win over bound values."""
    context = {}
    for name, var in CONTEXT_FIELDS:
        value = getattr(record, name, None) or var.get()
        if value:
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for production log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }

        if record.levelno >= logging.ERROR:
            log_data["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Levels are colored; room code and a short player ID follow the logger
    name when known.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        context = record_context(record)
        tags = []
        if "room_code" in context:
            tags.append(context["room_code"])
        if "player_id" in context:
            tags.append(context["player_id"][:8])
        where = f" [{'/'.join(tags)}]" if tags else ""

        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{where} - {record.getMessage()}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        environment: "production" logs JSON lines, anything else is colored text.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Library chatter
    for noisy in ("uvicorn.access", "websockets", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter carrying room/player context as record extras.

    Usage:
        logger = get_logger(__name__)
        logger.with_context(room_code="ABCD", player_id="123").info("Player joined")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        """Return a new adapter with kwargs merged into the context."""
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))
