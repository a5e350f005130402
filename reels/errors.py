"""Error kinds shared by the feed controller and the data-access client."""
from typing import Optional


class ReelsError(Exception):
    """Base class for every failure the feed surfaces to its caller."""


class UnauthorizedError(ReelsError):
    """No session where one is required. Raised before any network call."""


class NotFoundError(ReelsError):
    """Referenced video or user does not exist."""


class ValidationError(ReelsError):
    """Input rejected locally or by the server (empty comment, too long, ...)."""


class NetworkOrServerError(ReelsError):
    """Transport failure or an unexpected server response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
