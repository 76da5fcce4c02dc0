"""Request correlation ID management using contextvars."""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_PREFIX = "fileguard."
MAX_INCOMING_ID_LENGTH = 128

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Generate a new correlation ID using UUID4."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Retrieve the current correlation ID from context."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Store a correlation ID in the current context."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Remove the correlation ID from the current context."""
    _correlation_id_var.set(None)


def accept_incoming_id(value: Optional[str]) -> Optional[str]:
    """Return a client-supplied X-Request-ID when it is safe to echo back."""
    if not value:
        return None
    value = value.strip()
    if not value or len(value) > MAX_INCOMING_ID_LENGTH:
        return None
    if not value.isprintable():
        return None
    return value


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter injecting the correlation ID and component into records.

    The component is the logger name without the ``fileguard.`` prefix, so
    ``fileguard.handlers.file`` logs as ``handlers.file``.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        name = self.logger.name
        if name.startswith(LOGGER_PREFIX):
            name = name[len(LOGGER_PREFIX) :]
        correlation_id = get_correlation_id()
        kwargs["extra"] = {
            **kwargs.get("extra", {}),
            "correlation_id": "-" if correlation_id is None else correlation_id,
            "component": name,
        }
        return msg, kwargs
