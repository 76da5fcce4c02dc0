"""Main connection acceptance loop."""

import argparse
import logging
import socket
import threading

from fileguard.bootstrap.config import SECURITY_HEADERS, ServerConfig
from fileguard.bootstrap.socket_factory import create_server_socket
from fileguard.domain.correlation_id import CorrelationLoggerAdapter
from fileguard.domain.response_builders import draining_response
from fileguard.domain.sandbox import SandboxResolver
from fileguard.lifecycle.state import ServerLifecycle
from fileguard.pipeline.io import send_response
from fileguard.transport.context import WorkerContext
from fileguard.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("fileguard.transport.accept"), {}
)


def _spawn_worker(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    handler_context: WorkerContext,
) -> None:
    ACCEPT_LOGGER.debug(
        "Client connection accepted",
        extra={
            "event": "client_accepted",
            "client": f"{client_address[0]}:{client_address[1]}",
        },
    )
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, handler_context),
        daemon=False,
    )
    thread.start()


def run_server(
    args: argparse.Namespace,
    config: ServerConfig,
    lifecycle: ServerLifecycle,
    resolver: SandboxResolver,
) -> None:
    """Accept connections until the lifecycle asks the server to stop."""
    server_socket = create_server_socket(args)

    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": args.host,
            "port": args.port,
            "directory": resolver.root,
            "tls": bool(args.cert and args.key),
        },
    )

    handler_context = WorkerContext(
        resolver=resolver,
        lifecycle=lifecycle,
        config=config,
    )

    try:
        while True:
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                if lifecycle.should_stop():
                    break
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.is_draining():
                send_response(client_socket, draining_response(SECURITY_HEADERS))
                client_socket.close()
                continue

            _spawn_worker(client_socket, client_address, handler_context)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Waiting for active connections to complete",
            extra={
                "event": "shutdown_waiting",
                "shutdown_grace_seconds": config.shutdown_grace_seconds,
            },
        )
        lifecycle.wait_for_workers(config.shutdown_grace_seconds)
        ACCEPT_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
