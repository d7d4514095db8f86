"""Error taxonomy and the global HTTP error envelope.

Every failure that reaches the HTTP boundary is rendered as::

    {statusCode, timestamp, path, method, message, error}

Internal details (tracebacks, exception text of unexpected errors) are only
written to the server log.
"""
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import List, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ChatError(Exception):
    """Base exception for the chat service."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: Union[str, List[str]]):
        self.message = message
        super().__init__(message if isinstance(message, str) else "; ".join(message))


class ValidationError(ChatError):
    """Malformed input. Carries every violated rule, not just the first."""

    status_code = 400
    error = "Bad Request"

    def __init__(self, messages: Union[str, List[str]]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__(self.messages)


class Unauthenticated(ChatError):
    status_code = 401
    error = "Unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class Conflict(ChatError):
    status_code = 409
    error = "Conflict"


class NotFound(ChatError):
    status_code = 404
    error = "Not Found"


def error_envelope(request: Request, status_code: int, message, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": request.url.path,
            "method": request.method,
            "message": message,
            "error": error,
        },
    )


def _format_validation_errors(exc: RequestValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid input"))
    return messages


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    logger.warning(
        "%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc
    )
    return error_envelope(request, exc.status_code, exc.message, exc.error)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = _format_validation_errors(exc)
    logger.warning("%s %s -> 400 %s", request.method, request.url.path, messages)
    return error_envelope(request, 400, messages, "Bad Request")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_envelope(request, exc.status_code, exc.detail, _reason(exc.status_code))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s %s", request.method, request.url.path)
    return error_envelope(request, 500, "Internal server error", "Internal Server Error")


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def register_exception_handlers(app: FastAPI) -> None:
    """Install the uniform error envelope on *app*."""
    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
