"""
Domain error taxonomy and the DRF exception handler that renders it.

Services raise the QAError subclasses below before performing any mutation;
views never build error responses for them by hand. Anything else that
escapes a view (storage errors included) is logged and surfaced as a
generic 500 with a safe message.
"""
import logging

from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class QAError(Exception):
    """Base class for domain errors. `message` is safe to return to clients."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "BAD_REQUEST"
    default_message = "Bad request"

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidRequest(QAError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class NotFound(QAError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    default_message = "Not found"


class Forbidden(QAError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    default_message = "Not authorized"


class Conflict(QAError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    default_message = "Conflicting request"


_DRF_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION_ERROR",
    status.HTTP_401_UNAUTHORIZED: "AUTH_FAILED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def error_body(error_code, message, details=None):
    body = {"success": False, "error_code": error_code, "message": message}
    if details:
        body["details"] = details
    return body


def api_exception_handler(exc, context):
    """
    PUBLIC_INTERFACE
    REST_FRAMEWORK["EXCEPTION_HANDLER"]: wrap every error in the
    {"success": false, "error_code", "message"} envelope.
    """
    if isinstance(exc, QAError):
        return Response(error_body(exc.error_code, exc.message, exc.details), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        code = _DRF_ERROR_CODES.get(response.status_code, "ERROR")
        if isinstance(exc, drf_exceptions.ValidationError):
            response.data = error_body(code, "Invalid input", response.data)
        else:
            detail = response.data.get("detail", "") if isinstance(response.data, dict) else ""
            response.data = error_body(code, str(detail) or "Request failed")
        return response

    view = context.get("view")
    logger.exception("Unhandled error in %s", type(view).__name__ if view else "view")
    return Response(
        error_body("SERVER_ERROR", "Internal server error"),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
