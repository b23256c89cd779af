from __future__ import annotations

import logging
from typing import Any

import structlog

_configured = False

# Per-request chatter from these would drown the event log at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _renderer(json_logs: bool) -> Any:
    if json_logs:
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """Route structlog events through stdlib logging, once per process."""
    global _configured
    if _configured:
        return

    logging.basicConfig(format="%(message)s", level=level.upper())
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(json_logs),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def bind_turn(turn_index: int) -> None:
    """Tag every event logged in this context with the turn being answered."""
    structlog.contextvars.bind_contextvars(turn=turn_index)


def clear_turn() -> None:
    structlog.contextvars.unbind_contextvars("turn")


__all__ = ["configure_logging", "get_logger", "bind_turn", "clear_turn"]
