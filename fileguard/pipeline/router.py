"""Request routing logic."""

import logging
from typing import Optional

from fileguard.bootstrap.config import (
    FILES_ENDPOINT_PREFIX,
    READ_ENDPOINT,
    SECURITY_HEADERS,
    SETUP_ENDPOINT,
)
from fileguard.domain.correlation_id import CorrelationLoggerAdapter
from fileguard.domain.http_types import HttpRequest, HttpResponse
from fileguard.domain.response_builders import (
    method_not_allowed_response,
    not_found_response,
)
from fileguard.domain.sandbox import SandboxResolver
from fileguard.handlers.file_handler import (
    file_response,
    index_response,
    read_file_response,
    setup_sample_response,
)
from fileguard.handlers.system_handlers import handle_healthz
from fileguard.lifecycle.state import ServerLifecycle

ROUTER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("fileguard.pipeline.router"), {}
)


def _log_match(route: str) -> None:
    if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ROUTER_LOGGER.debug(
            "Route matched", extra={"event": "route_matched", "route": route}
        )


def route_request(
    request: HttpRequest,
    resolver: SandboxResolver,
    lifecycle: Optional[ServerLifecycle] = None,
) -> HttpResponse:
    """Route the request to the appropriate handler and return a response."""
    if request.path == "/healthz":
        _log_match("/healthz")
        return handle_healthz(lifecycle)

    if request.path == "/":
        _log_match("/")
        return index_response(request, resolver, SECURITY_HEADERS)

    if request.path in (READ_ENDPOINT, SETUP_ENDPOINT):
        if request.method != "POST":
            return method_not_allowed_response(request, SECURITY_HEADERS, {"POST"})
        _log_match(request.path)
        if request.path == READ_ENDPOINT:
            return read_file_response(request, resolver, SECURITY_HEADERS)
        return setup_sample_response(request, resolver, SECURITY_HEADERS)

    if request.path.startswith(FILES_ENDPOINT_PREFIX):
        _log_match("/files/*")
        return file_response(
            request, resolver, SECURITY_HEADERS, FILES_ENDPOINT_PREFIX
        )

    ROUTER_LOGGER.info(
        "No matching route found",
        extra={
            "event": "route_not_found",
            "route": request.path,
            "method": request.method,
        },
    )
    return not_found_response(request, SECURITY_HEADERS)
