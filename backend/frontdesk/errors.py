"""
Error taxonomy shared by the services and the HTTP layer.

Every error carries the status code the transport maps it to, so routers
never need to translate them one by one.
"""

from fastapi import status


class FrontDeskError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FrontDeskError):
    """Referenced queue entry or patient does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(FrontDeskError):
    """Duplicate active entry, duplicate record number or lost numbering race."""
    status_code = status.HTTP_409_CONFLICT


class ValidationFailure(FrontDeskError):
    """Malformed input rejected before touching storage."""
    status_code = status.HTTP_400_BAD_REQUEST


class StorageFailure(FrontDeskError):
    """Underlying persistence error. The message is always generic."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Queue operation failed"):
        super().__init__(message)
