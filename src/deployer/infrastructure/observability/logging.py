"""Structured logging configuration."""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

SENSITIVE_KEY = re.compile(r"(secret|password|passwd|token|api_?key|credential)", re.IGNORECASE)
REDACTED = "***"

# Libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def redact_sensitive(
    _: Any, __: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask values of keys that look like credentials."""
    for key, value in event_dict.items():
        if key != "event" and value is not None and SENSITIVE_KEY.search(key):
            event_dict[key] = REDACTED
    return event_dict


def _level(log_level: str) -> int:
    return getattr(logging, log_level.upper(), logging.INFO)


def build_processors(service_name: str, json_logs: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _service(service_name),
        redact_sensitive,
        structlog.dev.set_exc_info,
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _service(name: str) -> structlog.types.Processor:
    def add_service(
        _: Any, __: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", name)
        return event_dict

    return add_service


def setup_logging(
    log_level: str = "INFO", json_logs: bool = True, service_name: str = "saas-deployer"
) -> None:
    """Configure structlog for the deploy command.

    Logs go to stderr; stdout carries only reports and status output.
    """
    level = _level(log_level)
    structlog.configure(
        processors=build_processors(service_name, json_logs),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
