"""Error taxonomy shared by every layer of the service.

Errors are raised where the problem is detected and travel unchanged up to
the exception handlers in ``clinic.main``, which turn them into the standard
``{success, message}`` envelope with the matching status code.
"""
from fastapi import status


class ClinicError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ClinicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request data"


class AuthenticationError(ClinicError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class AuthorizationError(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not enough permissions"


class NotFoundError(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource conflicts with an existing record"



class InternalError(ClinicError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
