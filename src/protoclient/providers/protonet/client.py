"""Protonet session controller and typed chat operations."""

import base64
import logging
from enum import Enum
from typing import IO, Any

import httpx

from protoclient.auth.interfaces import AuthCredentials
from protoclient.auth.store import CredentialStore
from protoclient.core.cancellation import CancellationScope
from protoclient.core.envelopes import FailureKind, RequestEnvelope
from protoclient.core.exceptions import (
    AuthenticationRequiredError,
    DecodeFailure,
)
from protoclient.core.interfaces import ChatProvider, Transport
from protoclient.core.models import (
    Chat,
    Message,
    NewMessage,
    Profile,
    TokenResponse,
)
from protoclient.core.signals import Signal
from protoclient.providers.protonet.executor import Decoder, RequestExecutor
from protoclient.providers.protonet.interceptor import UnauthorizedInterceptor
from protoclient.providers.protonet.transport import HttpxTransport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a client session."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    """Transient: a login was rejected.  Immediately followed by ANONYMOUS."""


class ProtonetClient(ChatProvider):
    """Client for the Protonet chat API.

    The client owns the whole session: it exchanges credentials for a
    token, attaches the token to every later request, and logs itself out
    when the service rejects the token.  Three signals report session
    transitions to observers such as a UI:

    * ``authentication_complete`` after a successful login,
    * ``authentication_failed`` when a request answered 401 and the session
      was dropped,
    * ``logged_out`` after :meth:`logout`.

    Domain calls return ``None`` instead of raising when the session is
    rejected mid-call; every other failure is raised as a
    :class:`~protoclient.core.exceptions.RequestFailure`.

    Example usage::

        async with ProtonetClient("https://box.example.com") as client:
            client.authentication_failed.connect(show_login_screen)
            if await client.login_with_password("alice", "secret"):
                chats = await client.get_chats()
    """

    TOKEN_PATH = "tokens/"
    ME_PATH = "me/"

    def __init__(
        self,
        url: str,
        user_agent: str = "protoclient/0.1",
        timeout: float = 20,
        transport: Transport | None = None,
    ):
        """Initialise the client.

        Args:
            url: The server root.  ``api/v1/`` is appended when missing.
            user_agent: The User-Agent header value for all HTTP requests.
            timeout: Per-request timeout in seconds for the default
                transport.  Ignored when ``transport`` is given.
            transport: A custom :class:`~protoclient.core.interfaces.Transport`.
                Defaults to :class:`HttpxTransport`.
        """
        self._transport = transport or HttpxTransport(timeout=timeout)
        self._executor = RequestExecutor(self._transport, url, user_agent)
        self._interceptor = UnauthorizedInterceptor(self._handle_unauthorized)
        self._store = CredentialStore()
        self._credentials = AuthCredentials()
        self._scope = CancellationScope()
        self._state = SessionState.ANONYMOUS

        self.authentication_complete = Signal("authentication_complete")
        self.authentication_failed = Signal("authentication_failed")
        self.logged_out = Signal("logged_out")

    async def __aenter__(self) -> "ProtonetClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ----------------------
    # Session state
    # ----------------------

    @property
    def base_url(self) -> str:
        return self._executor.base_url

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._store.is_authenticated

    @property
    def token(self) -> str | None:
        return self._store.current_credential()

    @property
    def user(self) -> Profile | None:
        return self._store.current_identity()

    # ----------------------
    # Login / logout
    # ----------------------

    async def login_with_password(self, username: str, password: str) -> bool:
        """Exchange a username and password for a token and log in.

        Any previous session is dropped first, without a notification.
        The token request is not guarded: a 401 here means the login was
        rejected, not that a session expired.

        Args:
            username: The account name.
            password: The account password.

        Returns:
            ``True`` once the session is authenticated.  ``False`` when the
            service issued no usable token, or when a concurrent login or
            logout replaced this attempt.

        Raises:
            RequestFailure: On cancellation, connectivity problems, or an
                unexpected status from the token or profile endpoint.
        """
        attempt = self._begin_login()
        basic = base64.b64encode(f"{username}:{password}".encode("utf-8"))
        envelope = RequestEnvelope(
            "POST",
            self.TOKEN_PATH,
            headers={"Authorization": f"Basic {basic.decode('ascii')}"},
        )
        try:
            outcome = await self._executor.execute(
                envelope, attempt, self._scope, _decode_token
            )
        except BaseException:
            self._abandon(attempt)
            raise

        failure = outcome.failure
        if failure is not None and failure.kind is not FailureKind.UNAUTHORIZED:
            self._abandon(attempt)
            raise failure.to_exception()

        token = outcome.value.token if failure is None else None
        if not token or not token.strip():
            logger.info("Login rejected for user %r", username)
            self._abandon(attempt, rejected=True)
            return False

        return await self._establish(token, attempt)

    async def login_with_token(self, token: str) -> bool:
        """Log in with a token issued earlier.

        The token is attached without a validation round trip; only the
        profile fetch that follows reaches the server.  If that fetch is
        answered with 401 the session is dropped through the same path as
        any other rejected call (``authentication_failed`` fires) and the
        method returns ``False``.

        Args:
            token: A previously issued token.

        Returns:
            ``True`` once the session is authenticated.

        Raises:
            ValueError: If ``token`` is empty or blank.
            RequestFailure: If the profile fetch fails for a reason other
                than 401.
        """
        if not token or not token.strip():
            raise ValueError("token must not be blank")
        attempt = self._begin_login()
        return await self._establish(token, attempt)

    def logout(self) -> None:
        """Drop the session and emit ``logged_out``."""
        self._clear()
        self._set_state(SessionState.ANONYMOUS)
        self.logged_out.emit()

    def cancel_all(self) -> None:
        """Cancel every request in flight.

        Requests issued from now on use a fresh scope and are unaffected.
        """
        previous, self._scope = self._scope, CancellationScope()
        previous.cancel()
        logger.debug("Cancelled all in-flight requests")

    async def close(self) -> None:
        """Cancel in-flight requests and release the transport."""
        self._scope.cancel()
        await self._transport.aclose()

    # ----------------------
    # Domain operations
    # ----------------------

    async def get_me(self) -> Profile | None:
        return await self._guarded(
            RequestEnvelope("GET", self.ME_PATH), _decode_me
        )

    async def get_chats(self) -> list[Chat] | None:
        user = self._store.current_identity()
        if user is None:
            raise AuthenticationRequiredError(
                "Listing chats requires a logged-in session."
            )
        if not user.private_chats_url:
            raise DecodeFailure("The profile carries no private_chats_url.")
        return await self._guarded(
            RequestEnvelope("GET", user.private_chats_url),
            lambda data: [_parse_chat(c) for c in _container(data, "private_chats", list)],
        )

    async def get_chat(self, url: str) -> Chat | None:
        return await self._guarded(
            RequestEnvelope("GET", url),
            lambda data: _parse_chat(_container(data, "private_chat", dict)),
        )

    async def get_chat_messages(self, url: str) -> list[Message] | None:
        return await self._guarded(
            RequestEnvelope("GET", url),
            lambda data: [_parse_message(m) for m in _container(data, "meeps", list)],
        )

    async def create_message(
        self, url: str, message: str | NewMessage
    ) -> Message | None:
        """Post a text message.

        Args:
            url: The chat's message locator (:attr:`Chat.meeps_url`).
            message: The text, or a prepared :class:`NewMessage`.

        Returns:
            The created message as echoed by the service, or ``None`` if
            the session was rejected.
        """
        payload = message if isinstance(message, NewMessage) else NewMessage(message)
        return await self._guarded(
            RequestEnvelope("POST", url, json=payload.to_dict()),
            _decode_meep,
        )

    async def create_file_message(
        self,
        url: str,
        file: bytes | IO[bytes],
        content_type: str = "application/octet-stream",
    ) -> Message | None:
        """Post a file as a message.

        The payload is sent as-is; file objects are streamed rather than
        read into memory first.

        Args:
            url: The chat's message locator.
            file: Raw bytes or a binary file object.
            content_type: The Content-Type sent with the payload.

        Returns:
            The created message, or ``None`` if the session was rejected.
        """
        return await self._guarded(
            RequestEnvelope(
                "POST", url, content=file, headers={"Content-Type": content_type}
            ),
            _decode_meep,
        )

    async def open_download_stream(self, url: str) -> httpx.AsyncByteStream:
        """Open a raw download stream.

        Meant for best-effort media loads: a 401 yields an empty stream
        and leaves the session untouched instead of logging out.

        Args:
            url: The resource locator.

        Returns:
            An async byte stream the caller iterates and then closes with
            ``await stream.aclose()``.

        Raises:
            RequestFailure: For failures other than 401.
        """
        outcome = await self._executor.execute(
            RequestEnvelope("GET", url, headers={"Accept": "*/*"}),
            self._credentials,
            self._scope,
            stream=True,
        )
        if outcome.failure is None:
            return outcome.value.stream
        if outcome.failure.kind is FailureKind.UNAUTHORIZED:
            return httpx.ByteStream(b"")
        raise outcome.failure.to_exception()

    # ----------------------
    # Internal helpers
    # ----------------------

    async def _guarded(self, envelope: RequestEnvelope, decoder: Decoder) -> Any:
        credentials = self._credentials
        scope = self._scope
        return await self._interceptor.guard(
            lambda: self._executor.execute(envelope, credentials, scope, decoder),
            credentials,
        )

    def _begin_login(self) -> AuthCredentials:
        self._clear()
        self._set_state(SessionState.AUTHENTICATING)
        return self._credentials

    async def _establish(self, token: str, attempt: AuthCredentials) -> bool:
        """Attach ``token``, fetch the profile and activate the session.

        ``attempt`` is the anonymous credentials installed when this login
        started.  If anything replaced them while awaiting, a newer login
        or a logout owns the session and this attempt backs off.
        """
        if self._credentials is not attempt:
            logger.debug("Login superseded before the token was attached")
            return False

        credentials = AuthCredentials.for_token(token)
        self._credentials = credentials
        try:
            profile = await self.get_me()
        except BaseException:
            self._abandon(credentials)
            raise

        if profile is None or self._credentials is not credentials:
            return False

        self._store.set_active(token, profile)
        self._set_state(SessionState.AUTHENTICATED)
        logger.info("Authenticated as %s", profile.name)
        self.authentication_complete.emit()
        return True

    def _abandon(self, credentials: AuthCredentials, rejected: bool = False) -> None:
        if self._credentials is not credentials:
            return
        self._clear()
        if rejected:
            self._set_state(SessionState.FAILED)
        self._set_state(SessionState.ANONYMOUS)

    def _clear(self) -> bool:
        had_session = self._store.clear()
        self._credentials = AuthCredentials()
        return had_session

    def _handle_unauthorized(self, credentials: AuthCredentials) -> None:
        # Only the attached credentials may end the session; a 401 for a
        # token that was already replaced or cleared is stale.
        if credentials.token is None or credentials is not self._credentials:
            logger.debug("Ignoring 401 for a detached credential")
            return
        self._clear()
        self._set_state(SessionState.ANONYMOUS)
        logger.warning("Session rejected by the service; logged out")
        self.authentication_failed.emit()

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.debug("Session %s -> %s", self._state.value, state.value)
            self._state = state


# ----------------------
# Response decoding
# ----------------------


def _container(data: Any, key: str, kind: type) -> Any:
    """Return ``data[key]`` after checking both levels have the right type.

    Raises:
        TypeError: If ``data`` is not an object or the value is not ``kind``.
        KeyError: If ``key`` is missing.
    """
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    value = data[key]
    if not isinstance(value, kind):
        raise TypeError(f"{key!r} is not a {kind.__name__}")
    return value


def _decode_token(data: Any) -> TokenResponse:
    if not isinstance(data, dict):
        raise TypeError(f"expected a JSON object, got {type(data).__name__}")
    token = data.get("token")
    return TokenResponse(token=token if isinstance(token, str) else None)


def _decode_me(data: Any) -> Profile:
    return _parse_profile(_container(data, "me", dict))


def _decode_meep(data: Any) -> Message:
    return _parse_message(_container(data, "meep", dict))


def _parse_profile(raw: dict) -> Profile:
    return Profile(
        id=raw["id"],
        name=raw.get("name") or raw.get("username") or "",
        username=raw.get("username"),
        private_chats_url=raw.get("private_chats_url"),
        avatar_url=raw.get("avatar"),
    )


def _parse_chat(raw: dict) -> Chat:
    return Chat(
        id=raw["id"],
        url=raw.get("url"),
        meeps_url=raw.get("meeps_url"),
        title=raw.get("title"),
        other_user_id=raw.get("other_user_id"),
        updated_at=raw.get("updated_at"),
    )


def _parse_message(raw: dict) -> Message:
    return Message(
        id=raw["id"],
        message=raw.get("message") or "",
        user_id=raw.get("user_id"),
        created_at=raw.get("created_at"),
        url=raw.get("url"),
        files=list(raw.get("files") or []),
    )
