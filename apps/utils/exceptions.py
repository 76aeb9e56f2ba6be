from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Quantity must be at least 1').
    Subclasses pin the error code and the HTTP status the API reports.
    """
    default_code = "business_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class BusinessValidationError(BusinessLogicException):
    """
    Malformed or missing input. `errors` maps field name -> list of messages.
    """
    default_code = "validation_error"

    def __init__(self, errors, message="Invalid input."):
        if isinstance(errors, str):
            errors = {"non_field_errors": [errors]}
        self.errors = {
            field: msgs if isinstance(msgs, (list, tuple)) else [msgs]
            for field, msgs in errors.items()
        }
        super().__init__(message)


class AuthorizationError(BusinessLogicException):
    default_code = "not_permitted"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message="You do not have permission to perform this action."):
        super().__init__(message)


class NotFoundError(BusinessLogicException):
    default_code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(BusinessLogicException):
    default_code = "invalid_transition"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, current_status, requested_status):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Invalid status transition: {current_status} -> {requested_status}."
        )


class ConflictError(BusinessLogicException):
    """
    The record changed underneath the caller (stale version or lost race).
    """
    default_code = "conflict"
    status_code = status.HTTP_409_CONFLICT


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    # Handle domain errors raised by the service layer
    if isinstance(exc, BusinessLogicException):
        payload = {"error": exc.message, "code": exc.code}
        if isinstance(exc, BusinessValidationError):
            payload["errors"] = exc.errors
        return Response(payload, status=exc.status_code)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
