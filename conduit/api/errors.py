"""
Error normalization for the HTTP API.

Every failure kind maps to exactly one status and OpenAI-style body::

    {"error": {"message": ..., "type": ..., "param": ..., "code": ...}}

Messages for server-side kinds are fixed strings; the underlying
exception is logged but never sent to the caller.
"""

import logging
from typing import Any, Dict, NamedTuple, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from conduit.errors import (
    ConduitError,
    InferenceUnavailableError,
    InvalidRequestError,
    MemoryDecodeError,
    MemoryNotFoundError,
    MemoryWriteError,
)


logger = logging.getLogger(__name__)


class ErrorKind(NamedTuple):
    status: int
    type: str
    code: str
    # None means the exception's own message is safe to show
    public_message: Optional[str] = None


ERROR_KINDS: Dict[type, ErrorKind] = {
    InvalidRequestError: ErrorKind(400, "invalid_request_error", "invalid_request"),
    MemoryNotFoundError: ErrorKind(404, "not_found", "memory_not_found"),
    MemoryDecodeError: ErrorKind(404, "not_found", "memory_unreadable", "Memory could not be read"),
    MemoryWriteError: ErrorKind(500, "internal_error", "write_failed", "Failed to write memory"),
    InferenceUnavailableError: ErrorKind(
        503, "service_unavailable", "inference_unavailable", "Inference backend is unavailable"
    ),
}

INTERNAL_ERROR = ErrorKind(500, "internal_error", "internal_error", "Internal server error")


def error_body(
    message: str,
    error_type: str,
    param: Optional[str] = None,
    code: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the error envelope."""
    return {"error": {"message": message, "type": error_type, "param": param, "code": code}}


def classify(exc: BaseException) -> Tuple[int, Dict[str, Any]]:
    """
    Map an exception to its status code and error body.

    Args:
        exc: Any exception raised while handling a request

    Returns:
        (status_code, body)
    """
    kind = INTERNAL_ERROR
    for exc_type, candidate in ERROR_KINDS.items():
        if isinstance(exc, exc_type):
            kind = candidate
            break

    message = kind.public_message or str(exc)
    param = exc.param if isinstance(exc, InvalidRequestError) else None
    return kind.status, error_body(message, kind.type, param, kind.code)


def _param_from_loc(loc: Tuple[Any, ...]) -> Optional[str]:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or None


async def conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    status, body = classify(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    elif isinstance(exc, MemoryDecodeError):
        logger.warning("%s %s: %s", request.method, request.url.path, exc)
    else:
        logger.debug("%s %s -> %s: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content=body)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request-shape errors from pydantic are the caller's fault: 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    if first.get("type") == "json_invalid":
        message, param = "Request body is not valid JSON", None
    else:
        param = _param_from_loc(tuple(first.get("loc", ())))
        detail = first.get("msg", "Invalid request")
        message = f"{param}: {detail}" if param else detail

    logger.debug("%s %s rejected: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=400,
        content=error_body(message, "invalid_request_error", param, "invalid_request"),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors (unknown route, wrong method) in the same envelope."""
    error_type = "not_found" if exc.status_code == 404 else "invalid_request_error"
    if exc.status_code >= 500:
        error_type = "internal_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), error_type),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    status, body = classify(exc)
    return JSONResponse(status_code=status, content=body)


def install_error_handlers(app: FastAPI) -> None:
    """Register every handler on the application."""
    app.add_exception_handler(ConduitError, conduit_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
