"""Logging configuration helpers."""

import logging

_CONTEXT_FIELDS = (
    "booking_id",
    "editing_request_id",
    "earning_id",
    "role",
    "status",
    "operation",
    "path",
    "error",
)


class ContextFormatter(logging.Formatter):
    """Appends the identifiers services pass through ``extra=``."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in _CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if context:
            message = f"{message} [{' '.join(context)}]"
        return message


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure application logging with a single stream handler."""
    logger = logging.getLogger("snapnow")
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
