"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    directory: Path
    process: subprocess.Popen[str]
    log_file: Path


def _launch_server(
    host: str,
    port: int,
    directory: Path,
    log_file: Path,
    extra_args: list[str] | None = None,
) -> Generator[ServerProcessInfo, None, None]:
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--directory",
        str(directory),
        "--host",
        host,
        "--port",
        str(port),
        "--log-destination",
        str(log_file),
    ]
    if extra_args:
        args.extend(extra_args)

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "directory": directory,
            "process": process,
            "log_file": log_file,
        }

        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()


def _sandbox_layout(tmp_path_factory: "TempPathFactory", name: str) -> tuple[Path, Path]:
    """Create a sandbox root plus a sibling whose name shares the root's prefix."""
    base = tmp_path_factory.mktemp(name).resolve()
    root = base / "files"
    root.mkdir()
    sibling = base / "files-evil"
    sibling.mkdir()
    (sibling / "secret.txt").write_text("outside the sandbox\n")
    (base / "secret.txt").write_text("parent secret\n")
    return base, root


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""
    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the file server in a background process with sample files seeded."""
    host = "127.0.0.1"
    port = reserve_port(host)
    base, root = _sandbox_layout(tmp_path_factory, "server")
    yield from _launch_server(
        host, port, root, base / "server.log", ["--seed-on-start"]
    )


@pytest.fixture(name="strict_server_process")
def _strict_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the file server with symlink resolution and a planted escape link."""
    host = "127.0.0.1"
    port = reserve_port(host)
    base, root = _sandbox_layout(tmp_path_factory, "strict-server")
    (root / "escape").symlink_to(base / "files-evil", target_is_directory=True)
    (root / "inside").mkdir()
    (root / "inside" / "ok.txt").write_text("inside\n")
    (root / "alias").symlink_to(root / "inside", target_is_directory=True)
    yield from _launch_server(
        host,
        port,
        root,
        base / "server.log",
        ["--seed-on-start", "--strict-symlinks"],
    )


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""
    return server_process["base_url"]
