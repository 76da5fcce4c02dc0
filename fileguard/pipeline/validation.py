"""Request validation utilities for the file server."""

import json
import urllib.parse
from typing import Any, Optional

from fileguard.domain.http_types import FileRequestContext, HttpRequest, HttpResponse
from fileguard.domain.response_builders import (
    bad_request_response,
    entity_too_large_response,
    method_not_allowed_response,
)


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds configured limits."""


def enforce_allowed_method(
    request: HttpRequest,
    allowed_methods: set[str],
    security_headers: dict[str, str],
) -> Optional[HttpResponse]:
    """Ensure the HTTP method is part of the supported allowlist."""
    if request.method in allowed_methods:
        return None
    return method_not_allowed_response(request, security_headers, allowed_methods)


def enforce_request_target(
    request: HttpRequest, security_headers: dict[str, str]
) -> Optional[HttpResponse]:
    """Reject request targets that are not origin-form paths."""
    if not request.path.startswith("/") or "\x00" in request.path:
        return bad_request_response(request, security_headers)
    return None


def enforce_post_constraints(
    request: HttpRequest,
    max_body_bytes: int,
    security_headers: dict[str, str],
) -> Optional[HttpResponse]:
    """Validate POST-specific invariants such as Content-Length and size."""
    declared_length = request.headers.get("content-length")
    if declared_length is None:
        return bad_request_response(request, security_headers)
    try:
        content_length = int(declared_length)
    except ValueError:
        return bad_request_response(request, security_headers)
    if content_length != len(request.body):
        return bad_request_response(request, security_headers)
    if content_length > max_body_bytes:
        return entity_too_large_response(security_headers)
    return None


def validate_request(
    request: HttpRequest,
    allowed_methods: set[str],
    max_body_bytes: int,
    security_headers: dict[str, str],
) -> Optional[HttpResponse]:
    """Return an error response when the request fails validation checks."""
    method_error = enforce_allowed_method(request, allowed_methods, security_headers)
    if method_error is not None:
        return method_error

    target_error = enforce_request_target(request, security_headers)
    if target_error is not None:
        return target_error

    if request.method == "POST":
        return enforce_post_constraints(request, max_body_bytes, security_headers)

    return None


def parse_form_fields(request: HttpRequest) -> dict[str, Any]:
    """Decode a JSON or urlencoded request body into a field mapping.

    Raises ValueError when the body claims to be JSON but cannot be parsed.
    Unknown content types yield no fields.
    """
    content_type = request.headers.get("content-type", "").split(";", 1)[0]
    content_type = content_type.strip().lower()
    text = request.body.decode("utf-8", "replace")

    if content_type == "application/json":
        try:
            payload = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as exc:
            raise ValueError("Malformed JSON body") from exc
        return payload if isinstance(payload, dict) else {}

    if content_type == "application/x-www-form-urlencoded":
        parsed = urllib.parse.parse_qs(text, keep_blank_values=True)
        return {name: values[0] for name, values in parsed.items()}

    return {}


def extract_file_field(
    request: HttpRequest, field: str
) -> tuple[Optional[FileRequestContext], list[dict[str, str]]]:
    """Validate the named field and wrap its trimmed value for the resolver."""
    try:
        fields = parse_form_fields(request)
    except ValueError as exc:
        return None, [{"param": field, "msg": str(exc)}]

    if field not in fields or fields[field] is None:
        return None, [{"param": field, "msg": f"{field} required"}]
    value = fields[field]
    if not isinstance(value, str):
        return None, [{"param": field, "msg": f"{field} must be a string"}]
    value = value.strip()
    if not value:
        return None, [{"param": field, "msg": f"{field} must not be empty"}]
    if "\x00" in value:
        return None, [{"param": field, "msg": "null byte not allowed"}]
    return FileRequestContext(raw_field=value), []
