"""Socket framing for HTTP/1.1 requests and responses."""

import logging
import socket
import urllib.parse
from typing import Iterable, Optional, Tuple

from fileguard.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES
from fileguard.domain.correlation_id import (
    CorrelationLoggerAdapter,
    accept_incoming_id,
    get_correlation_id,
    set_correlation_id,
)
from fileguard.domain.http_types import HttpRequest, HttpResponse
from fileguard.pipeline.validation import RequestEntityTooLarge

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("fileguard.io"), {})
RECV_SIZE = 4096


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Map header names (lowercased) to values; lines without ': ' are ignored."""
    return dict(
        (name.lower(), value)
        for name, sep, value in (line.partition(": ") for line in lines)
        if sep
    )


def parse_request_line(request_line: str) -> Tuple[str, str]:
    """Return the method and the path of the request target.

    The path is left percent-encoded; decoding is the sandbox's job, so that
    an encoded ``..`` or NUL reaches it exactly once.
    """
    parts = request_line.split(" ", 2)
    if len(parts) != 3:
        raise ValueError("Invalid request line")
    method, target, _ = parts
    return method, urllib.parse.urlsplit(target).path


def determine_content_length(method: str, headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    declared = headers.get("content-length")
    if declared is None:
        if method == "POST":
            raise ValueError("Missing Content-Length")
        return 0
    try:
        content_length = int(declared)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def _recv_until(
    client_socket: socket.socket, buffer: bytes, done
) -> Optional[bytes]:
    """Grow buffer from the socket until done(buffer) holds; None on EOF."""
    while not done(buffer):
        chunk = client_socket.recv(RECV_SIZE)
        if not chunk:
            return None
        buffer += chunk
    return buffer


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read one request from the socket, returning it with any pipelined bytes."""
    buffer = _recv_until(client_socket, buffer, lambda data: HEADER_DELIMITER in data)
    if buffer is None:
        return None, b""

    head, remainder = buffer.split(HEADER_DELIMITER, 1)
    try:
        request_line, *header_lines = head.decode("utf-8").split("\r\n")
    except UnicodeDecodeError as exc:
        raise ValueError("Request head is not valid UTF-8") from exc
    method, path = parse_request_line(request_line)
    headers = parse_headers(header_lines)

    incoming_id = accept_incoming_id(headers.get("x-request-id"))
    if incoming_id:
        set_correlation_id(incoming_id)

    content_length = determine_content_length(method, headers)
    remainder = _recv_until(
        client_socket, remainder, lambda data: len(data) >= content_length
    )
    if remainder is None:
        return None, b""

    IO_LOGGER.debug("Parsed request", extra={"method": method, "route": path})
    request = HttpRequest(method, path, headers, remainder[:content_length])
    return request, remainder[content_length:]


def _encode_head(response: HttpResponse) -> bytes:
    headers = dict(response.headers)
    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id
    if response.use_chunked:
        headers["Transfer-Encoding"] = "chunked"
    else:
        headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    lines = [response.status_line, *(f"{k}: {v}" for k, v in headers.items())]
    return ("\r\n".join(lines) + "\r\n\r\n").encode()


def _send_chunked(client_socket: socket.socket, chunks: Iterable[bytes]) -> int:
    sent = 0
    for chunk in chunks:
        if chunk:
            client_socket.sendall(b"%X\r\n%s\r\n" % (len(chunk), chunk))
            sent += len(chunk)
    client_socket.sendall(b"0\r\n\r\n")
    return sent


def send_response(client_socket: socket.socket, response: HttpResponse) -> None:
    """Write status line, headers and body (fixed-length or chunked)."""
    head = _encode_head(response)
    if response.use_chunked and response.body_iter is not None:
        client_socket.sendall(head)
        bytes_out = _send_chunked(client_socket, response.body_iter)
    else:
        client_socket.sendall(head + response.body)
        bytes_out = len(response.body)
    IO_LOGGER.debug(
        "Sent response",
        extra={
            "event": "response_sent",
            "status_code": response.status_code,
            "bytes_out": bytes_out,
        },
    )
