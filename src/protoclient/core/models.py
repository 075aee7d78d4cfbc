"""Data model dataclasses for the chat service."""

from dataclasses import dataclass, field


# ----------------------
# TokenResponse
# ----------------------


@dataclass
class TokenResponse:
    """Result of exchanging a username and password for a token."""

    token: str | None
    """The issued bearer token, or ``None`` if the service returned none."""


# ----------------------
# Profile
# ----------------------


@dataclass
class Profile:
    """Represents the authenticated user."""

    id: int
    name: str
    username: str | None = None

    private_chats_url: str | None = None
    """Locator of the user's private chat list, supplied by the service."""

    avatar_url: str | None = None


# ----------------------
# Chat
# ----------------------


@dataclass
class Chat:
    """Represents a private conversation."""

    id: int
    url: str | None
    """Locator of the chat resource itself."""

    meeps_url: str | None
    """Locator of the chat's message list; used for reads and posts."""

    title: str | None = None
    other_user_id: int | None = None

    updated_at: str | None = None
    """ISO 8601 timestamp of the last activity, as sent by the service."""


# ----------------------
# Message
# ----------------------


@dataclass
class Message:
    """Represents a single message (a "meep") in a chat."""

    id: int
    message: str
    user_id: int | None
    created_at: str | None
    url: str | None = None
    files: list[dict] = field(default_factory=list)
    """Raw attachment descriptors, passed through as received."""


@dataclass
class NewMessage:
    """Payload for posting a text message."""

    message: str

    def to_dict(self) -> dict:
        """Return the JSON body sent to the service."""
        return {"message": self.message}
