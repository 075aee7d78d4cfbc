"""Token and server URL resolution for the Protonet client.

:class:`ProtonetTokenAuth` locates a previously issued token without
contacting the server.  Password logins go through
:meth:`~protoclient.providers.protonet.client.ProtonetClient.login_with_password`
instead; this module only covers re-supplying a remembered token.
"""

import os

from protoclient.auth.credentials import (
    credentials_path,
    load as _load_stored,
)
from protoclient.auth.interfaces import AuthProvider
from protoclient.core.exceptions import AuthenticationRequiredError

_ENV_URL = "PROTONET_URL"
_ENV_TOKEN = "PROTONET_TOKEN"


class ProtonetTokenAuth(AuthProvider):
    """Resolves the server URL and token from multiple sources.

    Resolution order (first match wins), applied to each value separately:

    1. Values passed directly to the constructor.
    2. ``PROTONET_URL`` and ``PROTONET_TOKEN`` environment variables.
    3. Values stored in ``~/.config/protoclient/credentials.json``.
    """

    def __init__(self, url: str | None = None, token: str | None = None):
        """Initialise the auth provider.

        Args:
            url: Server root URL.  Overrides the environment and file.
            token: Pre-issued token.  Overrides the environment and file.
        """
        self._url = url
        self._token = token

    # -------------------------
    # AuthProvider interface
    # -------------------------

    def get_token(self) -> str:
        """Return the resolved token.

        Raises:
            AuthenticationRequiredError: If no token can be found in any
                configured source.
        """
        token = self._resolve_token()
        if token is None:
            raise AuthenticationRequiredError(
                "No Protonet token found. "
                "Run 'protoclient auth login' to sign in."
            )
        return token

    def is_authenticated(self) -> bool:
        return self._resolve_token() is not None

    # -------------------------
    # Resolution helpers
    # -------------------------

    def get_url(self) -> str | None:
        """Return the resolved server URL, or ``None`` if unset."""
        if self._url:
            return self._url
        url = os.getenv(_ENV_URL)
        if url:
            return url
        return _load_stored().get("url") or None

    def _resolve_token(self) -> str | None:
        if self._token and self._token.strip():
            return self._token
        token = os.getenv(_ENV_TOKEN)
        if token and token.strip():
            return token
        token = _load_stored().get("token")
        if token and token.strip():
            return token
        return None

    def credential_source(self) -> str:
        """Return a human-readable description of where the token came from.

        Useful for the ``auth status`` CLI command.
        """
        if self._token:
            return "command-line option"
        if os.getenv(_ENV_TOKEN):
            return "environment variables"
        return str(credentials_path())
