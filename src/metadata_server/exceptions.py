"""
Custom exception classes and error handling for the metadata server.

This module defines application-specific exceptions and the FastAPI exception
handlers that turn them into content-negotiated error responses.
"""

import logging
import time
from typing import Any

from fastapi import Request, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


class MetadataServiceException(Exception):
    """Base exception class for all metadata server errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "METADATA_ERROR",
        details: dict[str, Any] | None = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.timestamp = time.time()
        super().__init__(self.message)


class AnswersLoadError(MetadataServiceException):
    """Raised when the answers file is missing, unparseable or badly shaped."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="ANSWERS_LOAD_ERROR",
            details=details,
            status_code=500
        )


class NotFoundError(MetadataServiceException):
    """Raised when a version, client or path segment cannot be resolved."""

    def __init__(self, message: str = "Not found", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            details=details,
            status_code=404
        )


class BadRequestError(MetadataServiceException):
    """Raised when a path segment carries malformed percent-encoding."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="BAD_REQUEST",
            details=details,
            status_code=400
        )


class RenderError(MetadataServiceException):
    """Raised when a value cannot be serialized in the negotiated format."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="RENDER_ERROR",
            details=details,
            status_code=500
        )


def create_error_response(error: Exception) -> dict[str, Any]:
    """
    Create the error object sent to clients.

    Args:
        error: Exception instance

    Returns:
        Dictionary with ``message``, ``type`` and ``code`` keys
    """
    if isinstance(error, MetadataServiceException):
        return {"message": error.message, "type": "error", "code": error.status_code}
    elif isinstance(error, StarletteHTTPException):
        return {"message": error.detail, "type": "error", "code": error.status_code}
    else:
        return {"message": "An unexpected error occurred", "type": "error", "code": 500}


def negotiated_error_response(
    request: Request,
    error: Exception,
    headers: dict[str, str] | None = None
) -> Response:
    """Render ``error`` in the format the client asked for."""
    # Imported here to avoid a circular import with the renderer
    from .renderer import content_type_for, render_error

    error_response = create_error_response(error)
    content_type = content_type_for(request.headers.get("accept"))
    body, media_type = render_error(
        error_response["message"], error_response["code"], content_type
    )
    return Response(
        content=body,
        status_code=error_response["code"],
        media_type=media_type,
        headers={**CORS_HEADERS, **(headers or {})},
    )


async def metadata_exception_handler(
    request: Request,
    exc: MetadataServiceException
) -> Response:
    """
    FastAPI exception handler for MetadataServiceException.

    Args:
        request: FastAPI request object
        exc: MetadataServiceException instance

    Returns:
        Negotiated error response
    """
    request_id = getattr(request.state, "request_id", None)

    log_level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        log_level,
        f"Metadata error: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "details": exc.details,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method
        }
    )

    return negotiated_error_response(request, exc)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> Response:
    """
    FastAPI exception handler for routing errors (unknown route, bad method).

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        Negotiated error response
    """
    request_id = getattr(request.state, "request_id", None)

    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        f"HTTP error {exc.status_code}: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method
        }
    )

    return negotiated_error_response(request, exc, headers=getattr(exc, "headers", None))


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> Response:
    """
    FastAPI exception handler for unexpected exceptions.

    Args:
        request: FastAPI request object
        exc: Exception instance

    Returns:
        Negotiated 500 response
    """
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        f"Unexpected error: {type(exc).__name__} - {str(exc)}",
        extra={
            "error_type": type(exc).__name__,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method
        },
        exc_info=True
    )

    return negotiated_error_response(request, exc)


# Exception handler mapping for FastAPI
EXCEPTION_HANDLERS = {
    MetadataServiceException: metadata_exception_handler,
    StarletteHTTPException: http_exception_handler,
    Exception: generic_exception_handler,
}
