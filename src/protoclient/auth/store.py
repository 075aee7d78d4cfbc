"""In-memory holder of the active token and user profile."""

from dataclasses import dataclass

from protoclient.core.models import Profile


@dataclass(frozen=True)
class ActiveSession:
    """A token together with the profile fetched with it."""

    token: str
    profile: Profile


class CredentialStore:
    """Holds the current session as a single reference.

    Token and profile live in one :class:`ActiveSession`, so setting or
    clearing them is one assignment and no reader can observe one without
    the other.  The store performs no I/O.
    """

    def __init__(self):
        self._session: ActiveSession | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> ActiveSession | None:
        return self._session

    def current_credential(self) -> str | None:
        """Return the active token, or ``None``."""
        session = self._session
        return session.token if session else None

    def current_identity(self) -> Profile | None:
        """Return the active profile, or ``None``."""
        session = self._session
        return session.profile if session else None

    def set_active(self, credential: str, identity: Profile) -> None:
        """Replace the active session.

        Raises:
            ValueError: If ``credential`` is empty or blank.
        """
        if not credential or not credential.strip():
            raise ValueError("Cannot activate a session with a blank token.")
        self._session = ActiveSession(credential, identity)

    def clear(self) -> bool:
        """Drop the active session.

        Returns:
            ``True`` if a session was active, ``False`` if already empty.
        """
        was_active = self._session is not None
        self._session = None
        return was_active
