"""Logging setup shared by the API process and RQ workers."""

from __future__ import annotations

import logging

from suasor.core.config import settings
from suasor.utils.redaction import redact_secrets

LOG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"


class RedactingFilter(logging.Filter):
    """Scrub vendor tokens and passwords before records reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str | None = None) -> None:
    """Configure root logging with the shared format and redaction filter."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT, force=True)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(existing, RedactingFilter) for existing in handler.filters):
            handler.addFilter(RedactingFilter())
