"""Observability – structlog wiring for the delivery components.

Library modules only call :func:`get_logger`; the host application calls
:func:`configure_logging` (or :func:`configure_from_settings`) once at start-up.
"""
from __future__ import annotations

import logging
from typing import IO, Any

import structlog

from reliable_delivery.config import DeliverySettings
from reliable_delivery.kernel.errors import BaseError


def expand_errors(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Replace a :class:`BaseError` passed as ``error=`` with its ``to_dict()``."""
    error = event_dict.get("error")
    if isinstance(error, BaseError):
        event_dict["error"] = error.to_dict()
    return event_dict


def _shared_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        expand_errors,
    ]


def configure_logging(
    level: int | str = logging.INFO,
    json: bool = True,
    *,
    stream: IO[str] | None = None,
) -> None:
    """Send structlog events and foreign stdlib records through one root handler.

    Events render as JSON lines unless *json* is false, in which case
    structlog's console renderer is used.  Calling this again replaces the
    handler installed by the previous call.
    """
    numeric = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    chain = _shared_chain()
    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(),
            ],
        )
    )
    root = logging.getLogger()
    for previous in [h for h in root.handlers if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)]:
        root.removeHandler(previous)
    root.addHandler(handler)
    root.setLevel(numeric)


def configure_from_settings(settings: DeliverySettings, *, stream: IO[str] | None = None) -> None:
    """Apply ``log_level`` and ``log_json`` from *settings*."""
    configure_logging(settings.log_level, settings.log_json, stream=stream)


def get_logger(name: str | None = None, **bound: Any) -> Any:
    """Return a structlog logger for *name* with *bound* key/values attached."""
    logger = structlog.get_logger(name)
    return logger.bind(**bound) if bound else logger


__all__ = ["configure_from_settings", "configure_logging", "expand_errors", "get_logger"]
