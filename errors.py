"""Error taxonomy shared by the routes, the AI gateway and the store."""

from typing import Optional


class RenovateError(Exception):
    """Base class for errors that map onto an HTTP error envelope."""

    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(RenovateError):
    """Raised when a request is missing required fields or carries bad values."""

    status_code = 400


class NotFoundError(RenovateError):
    status_code = 404


class ConflictError(RenovateError):
    """Raised when a request targets a resource in the wrong state."""

    status_code = 409


class AIGatewayError(RenovateError):
    """Base class for failures of the hosted completion API.

    Routes never surface these; they substitute fallback content instead.
    """

    status_code = 502


class UpstreamError(AIGatewayError):
    def __init__(self, message: str, *, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class EmptyResponseError(AIGatewayError):
    pass


class MalformedResponseError(AIGatewayError):
    pass


class PersistenceError(RenovateError):
    """Raised when a write or read against the store fails."""


class UnknownError(RenovateError):
    pass
