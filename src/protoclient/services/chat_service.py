"""Service layer that wraps a ChatProvider for chat-related operations."""

from protoclient.core.interfaces import ChatProvider
from protoclient.core.models import Chat, Message


class ChatService:
    """Provides lookup helpers on top of a chat provider.

    Delegates all API calls to the injected provider so that the service
    layer remains independent of any specific chat backend.
    """

    def __init__(self, provider: ChatProvider):
        """Initialise the service.

        Args:
            provider: A concrete implementation of :class:`ChatProvider`.
        """
        self.provider = provider

    async def get_chats(self) -> list[Chat]:
        """Return the current user's chats, or an empty list if the
        session was rejected."""
        return await self.provider.get_chats() or []

    async def find_chat(self, ref: str) -> Chat | None:
        """Resolve a chat reference.

        Args:
            ref: The 1-based position in :meth:`get_chats`, a chat id, or a
                chat URL.  Positions are tried first, then ids.

        Returns:
            The matching :class:`Chat`, or ``None`` if nothing matches.
        """
        ref = ref.strip()
        if ref.startswith(("http://", "https://")):
            return await self.provider.get_chat(ref)

        chats = await self.get_chats()
        if ref.isdigit():
            idx = int(ref)
            if 1 <= idx <= len(chats):
                return chats[idx - 1]
        for chat in chats:
            if str(chat.id) == ref:
                return chat
        return None

    async def get_messages_for(self, ref: str) -> list[Message] | None:
        """Return the messages of the chat identified by ``ref``.

        Returns:
            The chat's messages, or ``None`` if no chat matches ``ref``.
        """
        chat = await self.find_chat(ref)
        if chat is None or not chat.meeps_url:
            return None
        return await self.provider.get_chat_messages(chat.meeps_url) or []
