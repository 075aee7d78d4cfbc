"""Abstract interfaces for transports and chat service providers."""

from abc import ABC, abstractmethod
from typing import IO

import httpx

from protoclient.core.envelopes import HttpRequest, ResponseEnvelope
from protoclient.core.models import Chat, Message, NewMessage, Profile


class Transport(ABC):
    """Performs one HTTP exchange.

    Implementations must not interpret status codes; classification is
    the executor's job.  Connectivity problems are reported by raising
    :class:`~protoclient.core.exceptions.TransportFailure`.
    """

    @abstractmethod
    async def send(
        self, request: HttpRequest, stream: bool = False
    ) -> ResponseEnvelope:
        """Send ``request`` and return the raw response.

        Args:
            request: The fully resolved request.
            stream: When ``True``, return the body as an open stream
                instead of buffering it.

        Returns:
            A :class:`ResponseEnvelope` for any status code.

        Raises:
            TransportFailure: If no response could be obtained.
        """

    async def aclose(self) -> None:
        """Release any pooled connections.  The default does nothing."""


class ChatProvider(ABC):
    """Abstract base class for chat service clients.

    The service layer depends exclusively on this abstraction.  Every
    method returns ``None`` when the session was rejected by the service
    mid-call; the provider is expected to have logged the user out.
    """

    @abstractmethod
    async def get_me(self) -> Profile | None:
        """Return the authenticated user's profile."""

    @abstractmethod
    async def get_chats(self) -> list[Chat] | None:
        """Return the current user's private chats.

        Raises:
            AuthenticationRequiredError: If no session is active.
        """

    @abstractmethod
    async def get_chat(self, url: str) -> Chat | None:
        """Return a single chat by its locator."""

    @abstractmethod
    async def get_chat_messages(self, url: str) -> list[Message] | None:
        """Return the messages at a chat's message locator."""

    @abstractmethod
    async def create_message(
        self, url: str, message: str | NewMessage
    ) -> Message | None:
        """Post a text message to a chat's message locator."""

    @abstractmethod
    async def create_file_message(
        self,
        url: str,
        file: bytes | IO[bytes],
        content_type: str = "application/octet-stream",
    ) -> Message | None:
        """Post a file as a message to a chat's message locator."""

    @abstractmethod
    async def open_download_stream(self, url: str) -> httpx.AsyncByteStream:
        """Open a raw download stream for a resource locator."""
