"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from pathlib import Path

from fileguard.domain.sandbox import DecodePolicy, SandboxResolver


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value.strip().lower() if value else default


MAX_BODY_BYTES = _env_int("FILEGUARD_MAX_BODY_BYTES", 5 * 1024 * 1024)
DEFAULT_SOCKET_TIMEOUT = _env_int("FILEGUARD_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("FILEGUARD_SHUTDOWN_GRACE_SECONDS", 30)
DEFAULT_DECODE_POLICY = _env_str("FILEGUARD_DECODE_POLICY", DecodePolicy.FALLBACK.value)
DEFAULT_STRICT_SYMLINKS = _env_bool("FILEGUARD_STRICT_SYMLINKS", False)
DEFAULT_SEED_ON_START = _env_bool("FILEGUARD_SEED_ON_START", False)

HEADER_DELIMITER = b"\r\n\r\n"
FILES_ENDPOINT_PREFIX = "/files/"
READ_ENDPOINT = "/read"
SETUP_ENDPOINT = "/setup-sample"
ALLOWED_METHODS = {"GET", "POST"}
FILENAME_FIELD = "filename"

SAMPLE_FILES = (
    ("hello.txt", "Hello from safe file!\n"),
    ("notes/readme.md", "# Readme\nSample readme file"),
)

SECURITY_HEADERS = {
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self'; style-src 'self'; "
        "img-src 'self' data:; object-src 'none'; base-uri 'self'; "
        "frame-ancestors 'none'; form-action 'self'"
    ),
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), fullscreen=(self)",
    "X-Content-Type-Options": "nosniff",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Cross-Origin-Embedder-Policy": "require-corp",
    "Cross-Origin-Opener-Policy": "same-origin",
}


@dataclass
class ServerConfig:
    """Server configuration including timeouts and shutdown settings."""

    socket_timeout: int
    shutdown_grace_seconds: int


@dataclass
class SandboxConfig:
    """Settings that shape how request paths are confined to the root."""

    directory: str
    decode_policy: DecodePolicy = DecodePolicy.FALLBACK
    strict_symlinks: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "SandboxConfig":
        return cls(
            directory=args.directory,
            decode_policy=DecodePolicy(args.decode_policy),
            strict_symlinks=args.strict_symlinks,
        )

    def build_resolver(self) -> SandboxResolver:
        """Fix the root once, from configuration only, and wrap it in a resolver."""
        root = Path(self.directory).resolve()
        return SandboxResolver(root, self.decode_policy, strict=self.strict_symlinks)


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(description="Sandboxed file server")
    parser.add_argument("--directory", default=".", help="Sandbox root directory")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=4000)
    parser.add_argument("--cert", help="Path to TLS certificate file")
    parser.add_argument("--key", help="Path to TLS private key file")
    default_log_level = os.getenv("FILEGUARD_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("FILEGUARD_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for request processing",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    parser.add_argument(
        "--decode-policy",
        default=DEFAULT_DECODE_POLICY,
        choices=[policy.value for policy in DecodePolicy],
        type=str.lower,
        help="Use the raw name (fallback) or reject it when percent-decoding fails",
    )
    parser.add_argument(
        "--strict-symlinks",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_STRICT_SYMLINKS,
        help="Resolve symlinks and re-check containment before any file I/O",
    )
    parser.add_argument(
        "--seed-on-start",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_SEED_ON_START,
        help="Write the sample files into the root at startup",
    )
    return parser.parse_args(argv)
