"""Sandboxed file server entry point."""

import logging
import signal
import sys
from pathlib import Path

from fileguard.bootstrap.config import (
    SandboxConfig,
    ServerConfig,
    parse_cli_args,
)
from fileguard.bootstrap.logging_setup import configure_logging
from fileguard.domain.correlation_id import CorrelationLoggerAdapter
from fileguard.handlers.file_handler import seed_sample_files
from fileguard.lifecycle.state import ServerLifecycle
from fileguard.transport.accept_loop import run_server

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("fileguard.server"), {})


def main(argv=None) -> None:
    """Parse configuration, fix the sandbox root and serve until signalled."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination)

    config = ServerConfig(
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
    )
    sandbox_config = SandboxConfig.from_args(args)
    resolver = sandbox_config.build_resolver()
    Path(resolver.root).mkdir(parents=True, exist_ok=True)
    lifecycle = ServerLifecycle()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "shutdown_signal", "signal": signum},
        )
        lifecycle.begin_draining()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    SERVER_LOGGER.info(
        "Starting file server",
        extra={
            "event": "server_starting",
            "host": args.host,
            "port": args.port,
            "directory": resolver.root,
            "decode_policy": resolver.decode_policy.value,
            "strict_symlinks": resolver.strict,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "tls": bool(args.cert and args.key),
            "socket_timeout": config.socket_timeout,
            "shutdown_grace_seconds": config.shutdown_grace_seconds,
        },
    )
    if args.seed_on_start:
        seed_sample_files(resolver)
    run_server(args, config, lifecycle, resolver)


if __name__ == "__main__":
    main()
