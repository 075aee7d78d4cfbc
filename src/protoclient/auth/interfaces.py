"""Abstract interfaces for the authentication layer.

This module defines the contracts shared by the request pipeline and the
token sources.  It is intentionally free of transport details so that a
token typed at a prompt, read from the environment, or restored from disk
all reach the client the same way.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

TOKEN_HEADER = "X-Protonet-Token"


@dataclass(frozen=True)
class AuthCredentials:
    """Per-session request configuration carrying the attached credential.

    A new instance is created for every login and for every logout; an
    instance is never mutated.  Each request captures the instance that is
    current when it is issued, which lets the client tell whether a 401
    belongs to the live session or to one that has already been replaced.

    Attributes:
        token: The bearer token, or ``None`` for an anonymous session.
        headers: HTTP headers to add to requests.
    """

    token: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_token(cls, token: str) -> "AuthCredentials":
        """Return credentials that attach ``token`` to every request."""
        return cls(token=token, headers={TOKEN_HEADER: token})

    def __repr__(self) -> str:
        state = "token=***" if self.token else "anonymous"
        return f"AuthCredentials({state})"


class AuthProvider(ABC):
    """Abstract base class for sources of a pre-issued token.

    Implementations only locate a token; they never validate it.  The
    client accepts it as-is and any invalidity surfaces on the first
    authenticated call.

    Example usage::

        auth = ProtonetTokenAuth()             # concrete implementation
        async with ProtonetClient(url) as client:
            if auth.is_authenticated():
                await client.login_with_token(auth.get_token())
    """

    @abstractmethod
    def get_token(self) -> str:
        """Return the stored token.

        Raises:
            AuthenticationRequiredError: If no token is available.
        """

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Return ``True`` if :meth:`get_token` would succeed.

        This method must not raise.
        """
