"""Logging setup for gitcache.

Every module logs under the ``gitcache`` namespace.  Nothing is configured
on import; applications call `configure_logging` (the CLI does so from
``--verbose``).  Bearer tokens and password-like values are masked before
records reach a handler.
"""

from __future__ import annotations

import logging
import re

_package_logger = logging.getLogger("gitcache")

_SENSITIVE_PATTERNS = [
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(token|password|secret)(['\"]?\s*[:=]\s*['\"]?)[^'\"\s,&]+", re.IGNORECASE),
     r"\1\2[REDACTED]"),
    (re.compile(r"(https?://)[^/@\s:]+:[^/@\s]+@"), r"\1[REDACTED]@"),
]


def redact(text: str) -> str:
    """Mask credentials in *text*."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with `redact`."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(
    level: int | str = logging.INFO,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> logging.Handler:
    """Attach a handler to the ``gitcache`` logger and set its level.

    Returns the installed handler.  Calling again replaces the handler
    installed by the previous call.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))
    handler.addFilter(RedactingFilter())

    for existing in list(_package_logger.handlers):
        if getattr(existing, "_gitcache_handler", False):
            _package_logger.removeHandler(existing)
    handler._gitcache_handler = True  # type: ignore[attr-defined]
    _package_logger.addHandler(handler)
    _package_logger.setLevel(level.upper() if isinstance(level, str) else level)
    return handler
