"""
Client Exceptions.

Failures surfaced by the HTTP client. Sync state catches both and
degrades instead of propagating.
"""


class ClientError(Exception):
    """Base exception for client-side failures."""


class NetworkFailure(ClientError):
    """The server could not be reached or the transport failed mid-request."""


class ApiError(ClientError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"{status}: {message}")
