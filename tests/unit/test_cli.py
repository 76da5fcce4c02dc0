"""Golden unit tests validating CLI parsing behavior."""

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from fileguard.bootstrap.config import (
    DEFAULT_DECODE_POLICY,
    DEFAULT_SEED_ON_START,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    DEFAULT_SOCKET_TIMEOUT,
    DEFAULT_STRICT_SYMLINKS,
    SandboxConfig,
    parse_cli_args,
)
from fileguard.domain.sandbox import DecodePolicy

if TYPE_CHECKING:
    from _pytest.monkeypatch import MonkeyPatch


def test_parse_cli_args_uses_defaults() -> None:
    """Defaults ensure server launches with local settings."""
    args = parse_cli_args([])

    assert args.directory == "."
    assert args.host == "localhost"
    assert args.port == 4000
    assert args.cert is None
    assert args.key is None
    assert args.log_level == "INFO"
    assert args.log_destination == "stdout"
    assert args.socket_timeout == DEFAULT_SOCKET_TIMEOUT
    assert args.shutdown_grace_seconds == DEFAULT_SHUTDOWN_GRACE_SECONDS
    assert args.decode_policy == DEFAULT_DECODE_POLICY
    assert args.strict_symlinks is DEFAULT_STRICT_SYMLINKS
    assert args.seed_on_start is DEFAULT_SEED_ON_START


def test_parse_cli_args_honors_overrides(tmp_path: Path) -> None:
    """Overrides should replace defaults when flags are present."""
    override_dir = tmp_path.as_posix()

    args = parse_cli_args(
        [
            "--directory",
            override_dir,
            "--host",
            "0.0.0.0",
            "--port",
            "9090",
            "--log-level",
            "debug",
            "--log-destination",
            "fileguard.log",
            "--socket-timeout",
            "5",
            "--shutdown-grace-seconds",
            "2",
            "--decode-policy",
            "REJECT",
            "--strict-symlinks",
            "--seed-on-start",
        ]
    )

    assert args.directory == override_dir
    assert args.host == "0.0.0.0"
    assert args.port == 9090
    assert args.log_level == "DEBUG"
    assert args.log_destination == "fileguard.log"
    assert args.socket_timeout == 5
    assert args.shutdown_grace_seconds == 2
    assert args.decode_policy == "reject"
    assert args.strict_symlinks is True
    assert args.seed_on_start is True


def test_parse_cli_args_negated_flags() -> None:
    args = parse_cli_args(["--no-strict-symlinks", "--no-seed-on-start"])
    assert args.strict_symlinks is False
    assert args.seed_on_start is False


def test_parse_cli_args_rejects_unknown_decode_policy() -> None:
    with pytest.raises(SystemExit):
        parse_cli_args(["--decode-policy", "lenient"])


def test_parse_cli_args_honors_environment(monkeypatch: "MonkeyPatch") -> None:
    """Environment variables should seed default logging configuration."""
    monkeypatch.setenv("FILEGUARD_LOG_LEVEL", "warning")
    monkeypatch.setenv("FILEGUARD_LOG_DESTINATION", "app.log")

    args = parse_cli_args([])

    assert args.log_level == "WARNING"
    assert args.log_destination == "app.log"


def test_sandbox_config_builds_resolver_with_absolute_root(
    tmp_path: Path, monkeypatch: "MonkeyPatch"
) -> None:
    (tmp_path / "files").mkdir()
    monkeypatch.chdir(tmp_path)
    args = parse_cli_args(
        ["--directory", "files", "--decode-policy", "reject", "--strict-symlinks"]
    )

    resolver = SandboxConfig.from_args(args).build_resolver()

    assert resolver.root == str((tmp_path / "files").resolve())
    assert resolver.decode_policy is DecodePolicy.REJECT
    assert resolver.strict is True
