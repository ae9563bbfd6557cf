"""Logging utilities for the form courier gateway.

This module provides the logger helpers shared by every component. Handler
and level setup happens once, in the entry point, through
:func:`configure_logging`; library modules only call :func:`get_logger`.

Request-scoped fields (tenant, client identity) are carried by a
:class:`RequestLogger` that the pipeline receives as an explicit argument
rather than looking it up from ambient state.

Example:
    Typical usage in a module::

        from form_courier.logger import get_logger

        logger = get_logger("FormCourier.Mailer")
        logger.info("Message handed off")

    Binding request fields::

        log = RequestLogger(get_logger("FormCourier.Intake"))
        log = log.bind(tenant="acme", client="203.0.113.7")
        log.warning("rate limited")   # -> "rate limited tenant=acme client=203.0.113.7"
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(name: str = "FormCourier") -> logging.Logger:
    """Retrieve a logger instance.

    Handlers and formatters are not configured here; that responsibility
    lies with the application entry point.

    Args:
        name: The logger name. Defaults to "FormCourier".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)


def parse_level(value: str | None) -> int:
    """Map a ``LOG_LEVEL`` string to a logging level, defaulting to INFO."""
    return _LEVELS.get((value or "").strip().lower(), logging.INFO)


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        # RequestLogger records keep the message without the key=value suffix
        base = getattr(record, "base_msg", None)
        if base is None:
            message = record.getMessage()
        else:
            message = str(base) % record.args if record.args else str(base)
        payload: dict[str, Any] = {
            "time": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": message,
        }
        fields = getattr(record, "fields", None)
        if fields:
            payload.update(fields)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure the root logger for the process.

    Args:
        level: Level name (debug, info, warning, error). Defaults to info.
        fmt: ``"json"`` for one JSON object per line, anything else for text.
    """
    handler = logging.StreamHandler()
    if (fmt or "").strip().lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))
    logging.basicConfig(level=parse_level(level), handlers=[handler], force=True)


class RequestLogger(logging.LoggerAdapter):
    """Logger adapter carrying request-scoped structured fields.

    Bound fields are appended to the message as ``key=value`` pairs so they
    show up with the plain text formatter, and stored unformatted on the
    record as ``record.fields`` for :class:`JsonFormatter`.
    """

    def __init__(self, logger: logging.Logger, fields: Mapping[str, Any] | None = None):
        super().__init__(logger, {})
        self.fields: dict[str, Any] = dict(fields or {})

    def bind(self, **fields: Any) -> "RequestLogger":
        """Return a new adapter with ``fields`` merged into the bound ones."""
        merged = dict(self.fields)
        merged.update(fields)
        return RequestLogger(self.logger, merged)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        fields = dict(self.fields)
        extra = kwargs.pop("extra", None) or {}
        fields.update(extra)
        kwargs["extra"] = {"fields": fields, "base_msg": msg}
        if fields:
            suffix = " ".join(f"{key}={value}" for key, value in fields.items())
            msg = f"{msg} {suffix}"
        return msg, kwargs
