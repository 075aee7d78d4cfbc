"""Domain exceptions for the protoclient library."""


class ProtoclientError(Exception):
    """Base class for all protoclient library exceptions."""


class AuthenticationRequiredError(ProtoclientError):
    """Raised when an operation needs an active session and none exists.

    Session-scoped calls such as listing the current user's chats rely on
    the profile fetched at login.  The caller (CLI or application) is
    responsible for logging in first; the client has no knowledge of how
    credentials are obtained or stored.
    """


class RequestFailure(ProtoclientError):
    """Base class for failures reported by a single request exchange."""


class RequestCancelled(RequestFailure):
    """Raised when the cancellation scope was invalidated mid-flight."""


class TransportFailure(RequestFailure):
    """Raised on connectivity errors (DNS, refused connection, timeout)."""


class Unauthorized(RequestFailure):
    """Raised when the service rejects the credential (HTTP 401).

    Guarded domain calls never let this escape: the interceptor turns it
    into a logout.  It is only raised from unguarded paths.
    """


class HttpFailure(RequestFailure):
    """Raised for any non-success status other than 401."""

    def __init__(self, status: int, message: str = ""):
        super().__init__(message or f"HTTP {status}")
        self.status = status


class DecodeFailure(RequestFailure):
    """Raised when a 2xx response body does not match the expected shape."""
