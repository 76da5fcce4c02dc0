"""File serving handlers backed by the sandbox resolver."""

import logging
import mimetypes
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from fileguard.bootstrap.config import FILENAME_FIELD, SAMPLE_FILES
from fileguard.domain.correlation_id import CorrelationLoggerAdapter
from fileguard.domain.http_types import (
    FileRequestContext,
    HttpRequest,
    HttpResponse,
    should_close,
)
from fileguard.domain.response_builders import (
    decision_response,
    empty_response,
    error_response,
    json_response,
    method_not_allowed_response,
    not_found_response,
    validation_error_response,
)
from fileguard.domain.sandbox import Decision, SandboxResolver
from fileguard.pipeline.validation import extract_file_field

FILE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("fileguard.handlers.file"), {})


def stream_file(
    file_handle: BinaryIO, filepath: Path, chunk_size: int = 65536
) -> Iterator[bytes]:
    """Yield an already-open file in fixed-size chunks, closing it at the end."""
    bytes_out = 0
    with file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            bytes_out += len(chunk)
            yield chunk
    FILE_LOGGER.info(
        "File read operation complete",
        extra={
            "event": "file_read_complete",
            "path": filepath.as_posix(),
            "bytes_out": bytes_out,
        },
    )


def _content_type_for_path(filepath: Path) -> str:
    mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    return mime_type or "application/octet-stream"


def _streaming_file_response(
    request: HttpRequest,
    resolved_path: Path,
    security_headers: dict[str, str],
) -> HttpResponse:
    """Open the file before any header is sent so open failures keep their status."""
    try:
        file_handle = open(resolved_path, "rb")  # pylint: disable=consider-using-with
    except (FileNotFoundError, NotADirectoryError):
        return not_found_response(request, security_headers)
    except IsADirectoryError:
        return error_response(400, "Cannot read a directory", request, security_headers)
    except OSError as error:
        FILE_LOGGER.error(
            "Read failure",
            extra={"event": "file_read_failed", "error_type": type(error).__name__},
            exc_info=True,
        )
        return error_response(500, "Internal Server Error", request, security_headers)

    headers = {
        "Content-Type": _content_type_for_path(resolved_path),
        **security_headers,
    }
    return HttpResponse(
        "HTTP/1.1 200 OK",
        headers,
        b"",
        should_close(request.headers),
        body_iter=stream_file(file_handle, resolved_path),
        use_chunked=True,
    )


def _log_rejection(decision: Decision, context: FileRequestContext, request) -> None:
    FILE_LOGGER.warning(
        "Sandbox rejected requested path",
        extra={
            "event": "path_rejected",
            "reason": decision.reason.value if decision.reason else None,
            "category": decision.category,
            "raw_field": context.raw_field,
            "route": request.path,
            "method": request.method,
        },
    )


def read_file_response(
    request: HttpRequest,
    resolver: SandboxResolver,
    security_headers: dict[str, str],
) -> HttpResponse:
    """Handle POST /read: return the text content of a file inside the root."""
    context, errors = extract_file_field(request, FILENAME_FIELD)
    if context is None:
        FILE_LOGGER.info(
            "Read request failed validation",
            extra={"event": "validation_failed", "route": request.path},
        )
        return validation_error_response(errors, request, security_headers)

    decision = resolver.resolve(context.raw_field)
    if decision.rejected:
        _log_rejection(decision, context, request)
        return decision_response(decision, request, security_headers)
    target_path = decision.require()

    try:
        with open(target_path, "r", encoding="utf-8", errors="replace") as handle:
            content = handle.read()
    except (FileNotFoundError, NotADirectoryError):
        return error_response(404, "File not found", request, security_headers)
    except IsADirectoryError:
        return error_response(400, "Cannot read a directory", request, security_headers)
    except OSError as error:
        FILE_LOGGER.error(
            "Read failure",
            extra={"event": "file_read_failed", "error_type": type(error).__name__},
            exc_info=True,
        )
        return error_response(500, "Internal Server Error", request, security_headers)

    FILE_LOGGER.info(
        "File read operation complete",
        extra={
            "event": "file_read_complete",
            "path": target_path.as_posix(),
            "method": request.method,
            "bytes_out": len(content),
        },
    )
    return json_response(
        200,
        {"path": str(target_path), "content": content},
        request,
        security_headers,
    )


def seed_sample_files(
    resolver: SandboxResolver,
    samples: Iterable[tuple[str, str]] = SAMPLE_FILES,
) -> list[Path]:
    """Write the sample files under the root, skipping names the sandbox refuses."""
    written = []
    for name, data in samples:
        decision = resolver.resolve_for_write(name)
        if decision.rejected:
            FILE_LOGGER.warning(
                "Skipping sample outside sandbox",
                extra={
                    "event": "sample_skipped",
                    "raw_field": name,
                    "reason": decision.reason.value if decision.reason else None,
                },
            )
            continue
        out_path = decision.require()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(data, encoding="utf-8")
        written.append(out_path)
    FILE_LOGGER.info(
        "Sample files written",
        extra={"event": "samples_seeded", "directory": resolver.root},
    )
    return written


def setup_sample_response(
    request: HttpRequest,
    resolver: SandboxResolver,
    security_headers: dict[str, str],
) -> HttpResponse:
    """Handle POST /setup-sample by seeding the demo files."""
    try:
        seed_sample_files(resolver)
    except OSError as error:
        FILE_LOGGER.error(
            "Setup failed",
            extra={"event": "setup_failed", "error_type": type(error).__name__},
            exc_info=True,
        )
        return error_response(500, "Setup failed", request, security_headers)
    return json_response(
        200, {"ok": True, "base": resolver.root}, request, security_headers
    )


def _write_file_response(
    request: HttpRequest,
    resolver: SandboxResolver,
    context: FileRequestContext,
    security_headers: dict[str, str],
) -> HttpResponse:
    decision = resolver.resolve_for_write(context.raw_field)
    if decision.rejected:
        _log_rejection(decision, context, request)
        return decision_response(decision, request, security_headers)
    target_path = decision.require()

    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        with open(target_path, "wb") as file_handle:
            file_handle.write(request.body)
    except IsADirectoryError:
        return error_response(
            400, "Cannot write to a directory", request, security_headers
        )
    except (FileExistsError, NotADirectoryError):
        return error_response(
            400, "Cannot write below a file", request, security_headers
        )
    except OSError as error:
        FILE_LOGGER.error(
            "Write failure",
            extra={"event": "file_write_failed", "error_type": type(error).__name__},
            exc_info=True,
        )
        return error_response(500, "Internal Server Error", request, security_headers)

    FILE_LOGGER.info(
        "File write complete",
        extra={
            "event": "file_write_complete",
            "path": target_path.as_posix(),
            "method": request.method,
            "bytes_in": len(request.body),
        },
    )
    return HttpResponse(
        "HTTP/1.1 201 Created",
        security_headers.copy(),
        b"",
        should_close(request.headers),
    )


def file_response(
    request: HttpRequest,
    resolver: SandboxResolver,
    security_headers: dict[str, str],
    files_endpoint_prefix: str,
) -> HttpResponse:
    """Serve or write a file named by the still-encoded path suffix."""
    context = FileRequestContext(raw_field=request.path[len(files_endpoint_prefix) :])

    if request.method == "POST":
        return _write_file_response(request, resolver, context, security_headers)
    if request.method != "GET":
        return method_not_allowed_response(request, security_headers, {"GET", "POST"})

    decision = resolver.resolve(context.raw_field)
    if decision.rejected:
        _log_rejection(decision, context, request)
        return decision_response(decision, request, security_headers)
    resolved_path = decision.require()

    if resolved_path.is_file():
        return _streaming_file_response(request, resolved_path, security_headers)
    if resolved_path.is_dir():
        return error_response(400, "Cannot read a directory", request, security_headers)
    FILE_LOGGER.info(
        "File not found",
        extra={
            "event": "file_not_found",
            "path": resolved_path.as_posix(),
            "method": request.method,
        },
    )
    return not_found_response(request, security_headers)


def index_response(
    request: HttpRequest,
    resolver: SandboxResolver,
    security_headers: dict[str, str],
    document_name: str = "index.html",
) -> HttpResponse:
    """Serve the sandbox index document or return an empty response."""
    decision = resolver.resolve(document_name)
    if decision.approved and decision.require().is_file():
        return _streaming_file_response(request, decision.require(), security_headers)
    return empty_response(request, security_headers)
