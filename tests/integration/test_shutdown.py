"""Integration tests for graceful shutdown behavior."""

# pylint: disable=redefined-outer-name

import signal
import socket
import subprocess
import sys
import time

import pytest

from tests.conftest import SERVER_ENTRYPOINT
from tests.utils.http import (
    read_http_response,
    reserve_port,
    send_signal_to_process,
    wait_for_healthz_status,
    wait_for_port,
)

pytestmark = pytest.mark.integration

HEALTHZ_REQUEST = b"GET /healthz HTTP/1.1\r\nHost: localhost\r\n\r\n"


@pytest.fixture
def server_process_info(tmp_path):
    """Start a server process with a short grace period and yield its details."""
    port = reserve_port()
    process = subprocess.Popen(  # pylint: disable=consider-using-with
        [
            sys.executable,
            str(SERVER_ENTRYPOINT),
            "--host",
            "127.0.0.1",
            "--port",
            str(port),
            "--directory",
            str(tmp_path),
            "--shutdown-grace-seconds",
            "5",
            "--socket-timeout",
            "30",
        ],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=SERVER_ENTRYPOINT.parent,
    )
    wait_for_port("127.0.0.1", port, timeout=5.0)
    yield {"process": process, "port": port, "host": "127.0.0.1", "root": tmp_path}
    if process.poll() is None:
        process.terminate()
        process.wait(timeout=2.0)


def _healthz(host: str, port: int):
    with socket.create_connection((host, port), timeout=2.0) as sock:
        sock.sendall(HEALTHZ_REQUEST)
        return read_http_response(sock)


def test_healthz_returns_200_during_normal_operation(server_process_info):
    response = _healthz(server_process_info["host"], server_process_info["port"])
    assert response.status_line == "HTTP/1.1 200 OK"
    assert response.body == b""
    assert "strict-transport-security" in response.headers


@pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
def test_signal_switches_healthz_to_draining(server_process_info, sig):
    host = server_process_info["host"]
    port = server_process_info["port"]
    process = server_process_info["process"]
    assert wait_for_healthz_status(host, port, 200, timeout=2.0)

    send_signal_to_process(process.pid, sig)
    time.sleep(0.2)

    response = _healthz(host, port)
    assert response.status_line == "HTTP/1.1 503 Service Unavailable"
    assert response.body == b"draining"
    assert response.headers.get("connection") == "close"
    process.wait(timeout=6.0)
    assert process.returncode == 0


def test_in_flight_download_finishes_before_exit(server_process_info):
    host = server_process_info["host"]
    port = server_process_info["port"]
    process = server_process_info["process"]
    (server_process_info["root"] / "large.bin").write_bytes(b"x" * 1000)

    with socket.create_connection((host, port), timeout=2.0) as sock:
        sock.sendall(b"GET /files/large.bin HTTP/1.1\r\nHost: localhost\r\n\r\n")
        time.sleep(0.1)
        send_signal_to_process(process.pid, signal.SIGTERM)
        time.sleep(0.2)
        response = read_http_response(sock)

    assert response.status_line == "HTTP/1.1 200 OK"
    assert len(response.body) == 1000
    process.wait(timeout=6.0)
    assert process.returncode == 0


def test_shutdown_completes_within_grace_period(server_process_info):
    host = server_process_info["host"]
    port = server_process_info["port"]
    process = server_process_info["process"]
    assert wait_for_healthz_status(host, port, 200, timeout=2.0)
    start = time.monotonic()
    send_signal_to_process(process.pid, signal.SIGTERM)
    process.wait(timeout=7.0)
    assert time.monotonic() - start < 6.0
    assert process.returncode == 0
