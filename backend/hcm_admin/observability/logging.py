from __future__ import annotations

import logging
import sys

import structlog

from .context import get_request_id

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

_LEVEL_ALIASES = {"warn": "warning", "http": "debug", "verbose": "debug", "silly": "debug"}


def _add_request_id(_: logging.Logger, __: str, event_dict: dict) -> dict:
    rid = get_request_id()
    if rid:
        event_dict["request_id"] = rid
    return event_dict


_CONFIGURED = False


def configure_logging(*, level: str | int = "INFO") -> None:
    """
    Configure stdlib logging + structlog to output structured JSON to stdout.
    """
    global _CONFIGURED
    if _CONFIGURED:
        _apply_startup_level(level)
        return

    pre_chain = [
        _add_request_id,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]

    # Make uvicorn loggers flow through root so formatting is consistent.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        log = logging.getLogger(name)
        log.handlers = []
        log.propagate = True

    structlog.configure(
        processors=[
            _add_request_id,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True
    _apply_startup_level(level)


def _apply_startup_level(level: str | int) -> None:
    # A bad LOG_LEVEL must not keep the service from starting.
    name = normalize_log_level(level)
    logging.getLogger().setLevel(getattr(logging, (name or "info").upper()))
    if name is None:
        get_logger("logging").warning("invalid_log_level", requested=str(level), using="info")


def normalize_log_level(level: str | int) -> str | None:
    """Canonical level name, folding the winston names older deployments set.

    `warn` becomes `warning`; `http`, `verbose` and `silly` become `debug`.
    Returns None for anything unrecognised.
    """
    if isinstance(level, int):
        name = logging.getLevelName(level)
        return name.lower() if isinstance(name, str) and name.lower() in LOG_LEVELS else None
    v = str(level or "").strip().lower()
    v = _LEVEL_ALIASES.get(v, v)
    return v if v in LOG_LEVELS else None


def set_log_level(level: str | int) -> None:
    """Change the process-wide log level at runtime."""
    name = normalize_log_level(level)
    if name is None:
        raise ValueError(f"Log level must be one of: {', '.join(LOG_LEVELS)}")
    logging.getLogger().setLevel(getattr(logging, name.upper()))


def get_log_level() -> str:
    return logging.getLevelName(logging.getLogger().getEffectiveLevel()).lower()


def get_logger(name: str | None = None):
    return structlog.get_logger(name)
