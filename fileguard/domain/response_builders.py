"""Pure HTTP response builders."""

import json
from typing import Any, Optional

from fileguard.domain.http_types import HttpRequest, HttpResponse, should_close
from fileguard.domain.sandbox import Decision, RejectReason

STATUS_LINES = {
    200: "HTTP/1.1 200 OK",
    201: "HTTP/1.1 201 Created",
    400: "HTTP/1.1 400 Bad Request",
    403: "HTTP/1.1 403 Forbidden",
    404: "HTTP/1.1 404 Not Found",
    405: "HTTP/1.1 405 Method Not Allowed",
    413: "HTTP/1.1 413 Payload Too Large",
    500: "HTTP/1.1 500 Internal Server Error",
    503: "HTTP/1.1 503 Service Unavailable",
}

# Messages stay generic so a rejection never confirms what exists on disk.
REJECTION_RESPONSES = {
    RejectReason.NULL_BYTE: (400, "Invalid file name"),
    RejectReason.DECODE_ERROR: (400, "Invalid file name"),
    RejectReason.PATH_TRAVERSAL: (403, "Path traversal detected"),
    RejectReason.SYMLINK_ESCAPE: (403, "Path traversal detected"),
    RejectReason.NOT_FOUND: (404, "File not found"),
}


def _close_preference(request: Optional[HttpRequest]) -> bool:
    return should_close(request.headers) if request is not None else True


def json_response(
    status_code: int,
    payload: Any,
    request: Optional[HttpRequest],
    security_headers: dict[str, str],
) -> HttpResponse:
    """Serialize payload as a JSON response with the given status."""
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json; charset=utf-8", **security_headers}
    return HttpResponse(
        STATUS_LINES[status_code], headers, body, _close_preference(request)
    )


def error_response(
    status_code: int,
    message: str,
    request: Optional[HttpRequest],
    security_headers: dict[str, str],
) -> HttpResponse:
    return json_response(status_code, {"error": message}, request, security_headers)


def decision_response(
    decision: Decision,
    request: Optional[HttpRequest],
    security_headers: dict[str, str],
) -> HttpResponse:
    """Translate a rejected sandbox decision into its HTTP error response."""
    if decision.reason is None:
        raise ValueError("Approved decisions have no error response")
    status_code, message = REJECTION_RESPONSES[decision.reason]
    return error_response(status_code, message, request, security_headers)


def validation_error_response(
    errors: list[dict[str, str]],
    request: HttpRequest,
    security_headers: dict[str, str],
) -> HttpResponse:
    """Return a 400 response listing field validation failures."""
    return json_response(400, {"errors": errors}, request, security_headers)


def empty_response(
    request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    """Return a 200 OK response with no body."""
    return HttpResponse(
        STATUS_LINES[200],
        security_headers.copy(),
        b"",
        should_close(request.headers),
    )


def not_found_response(
    request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    headers = {"Content-Type": "text/plain", **security_headers}
    return HttpResponse(
        STATUS_LINES[404], headers, b"Not found", should_close(request.headers)
    )


def bad_request_response(
    request: Optional[HttpRequest], security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 400 response honoring the caller's connection preference."""
    return HttpResponse(
        STATUS_LINES[400],
        security_headers.copy(),
        b"",
        _close_preference(request),
    )


def entity_too_large_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return HttpResponse(STATUS_LINES[413], security_headers.copy(), b"", True)


def draining_response(security_headers: dict[str, str]) -> HttpResponse:
    headers = {"Connection": "close", **security_headers}
    return HttpResponse(STATUS_LINES[503], headers, b"draining", True)


def healthz_response(
    is_draining: bool, security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a health check response based on server state."""
    if is_draining:
        return draining_response(security_headers)
    return HttpResponse(STATUS_LINES[200], security_headers.copy(), b"", False)


def method_not_allowed_response(
    request: HttpRequest, security_headers: dict[str, str], allowed_methods
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    headers = {"Allow": ", ".join(sorted(allowed_methods)), **security_headers}
    return HttpResponse(
        STATUS_LINES[405], headers, b"", should_close(request.headers)
    )
