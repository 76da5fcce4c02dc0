"""Health check handler."""

import logging
from typing import Optional

from fileguard.bootstrap.config import SECURITY_HEADERS
from fileguard.domain.correlation_id import CorrelationLoggerAdapter
from fileguard.domain.http_types import HttpResponse
from fileguard.domain.response_builders import healthz_response
from fileguard.lifecycle.state import ServerLifecycle

SYSTEM_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("fileguard.handlers.system"), {}
)


def handle_healthz(lifecycle: Optional[ServerLifecycle]) -> HttpResponse:
    """Report 200 while serving and 503 once the server is draining."""
    is_draining = lifecycle.is_draining() if lifecycle is not None else False
    SYSTEM_LOGGER.debug(
        "Health check performed",
        extra={"event": "healthz_check", "draining": is_draining},
    )
    return healthz_response(is_draining, SECURITY_HEADERS)
