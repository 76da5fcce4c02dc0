"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

from fileguard.bootstrap.config import ALLOWED_METHODS, MAX_BODY_BYTES, SECURITY_HEADERS
from fileguard.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from fileguard.domain.http_types import HttpRequest
from fileguard.domain.response_builders import (
    bad_request_response,
    draining_response,
    entity_too_large_response,
)
from fileguard.lifecycle.state import ServerLifecycle
from fileguard.pipeline.io import receive_request, send_response
from fileguard.pipeline.router import route_request
from fileguard.pipeline.validation import RequestEntityTooLarge, validate_request
from fileguard.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("fileguard.transport.worker"), {}
)


@dataclass
class _WorkerResources:
    thread: threading.Thread
    client_socket: socket.socket
    client_addr_str: str


def _read_request_with_validation(
    client_socket: socket.socket,
    buffer: bytes,
    client_addr_str: str,
) -> tuple[Optional[HttpRequest], bytes, bool]:
    """Read a request, answering framing errors directly on the socket."""
    try:
        request, buffer = receive_request(client_socket, buffer)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request body size exceeded limit",
            extra={"event": "body_size_exceeded", "client": client_addr_str},
        )
        send_response(client_socket, entity_too_large_response(SECURITY_HEADERS))
        return None, b"", True
    except ValueError:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_addr_str},
        )
        send_response(client_socket, bad_request_response(None, SECURITY_HEADERS))
        return None, b"", True

    if request is None:
        WORKER_LOGGER.debug(
            "Client disconnected during request",
            extra={"event": "client_disconnected", "client": client_addr_str},
        )
        return None, buffer, True
    return request, buffer, False


def _process_request(
    request: HttpRequest,
    context: WorkerContext,
    client_socket: socket.socket,
) -> bool:
    """Validate, route and answer one request; return True to close."""
    started = time.monotonic()
    response = validate_request(
        request, ALLOWED_METHODS, MAX_BODY_BYTES, SECURITY_HEADERS
    )
    if response is None:
        response = route_request(request, context.resolver, context.lifecycle)
    send_response(client_socket, response)
    WORKER_LOGGER.info(
        "Request handled",
        extra={
            "event": "request_complete",
            "method": request.method,
            "route": request.path,
            "status_code": response.status_code,
            "duration_ms": round((time.monotonic() - started) * 1000, 3),
        },
    )
    return response.close_connection


def _prepare_worker(
    context: WorkerContext,
    client_socket: socket.socket,
    current_thread: threading.Thread,
) -> Optional[ServerLifecycle]:
    lifecycle = context.lifecycle
    if lifecycle is not None:
        lifecycle.register_worker(current_thread)
    if context.config is not None:
        client_socket.settimeout(context.config.socket_timeout)
    return lifecycle


def _cleanup_worker(
    lifecycle: Optional[ServerLifecycle], resources: _WorkerResources
) -> None:
    if lifecycle is not None:
        lifecycle.cleanup_worker(resources.thread)

    try:
        resources.client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    resources.client_socket.close()

    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": resources.client_addr_str},
    )
    clear_correlation_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    buffer = b""
    current_thread = threading.current_thread()
    lifecycle = _prepare_worker(context, client_socket, current_thread)
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    resources = _WorkerResources(current_thread, client_socket, client_addr_str)

    try:
        while True:
            set_correlation_id(generate_correlation_id())

            if lifecycle is not None and lifecycle.is_draining():
                send_response(client_socket, draining_response(SECURITY_HEADERS))
                break

            request, buffer, should_terminate = _read_request_with_validation(
                client_socket, buffer, client_addr_str
            )
            if should_terminate or request is None:
                break

            should_close = _process_request(request, context, client_socket)
            clear_correlation_id()
            if should_close:
                break
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(lifecycle, resources)
