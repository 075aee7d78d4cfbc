"""Zero-payload notification channel for session state changes."""

from typing import Callable

Handler = Callable[[], None]


class Signal:
    """A named list of handlers invoked synchronously on :meth:`emit`.

    Handlers run in connection order on the emitting call's stack, so
    whatever raised the notification has already finished mutating state
    when they are called.
    """

    def __init__(self, name: str):
        self.name = name
        self._handlers: list[Handler] = []

    def connect(self, handler: Handler) -> Handler:
        """Register ``handler``.  Returns it so this works as a decorator."""
        if handler not in self._handlers:
            self._handlers.append(handler)
        return handler

    def disconnect(self, handler: Handler) -> bool:
        """Remove ``handler``.

        Returns:
            ``True`` if it was connected, ``False`` otherwise.
        """
        try:
            self._handlers.remove(handler)
        except ValueError:
            return False
        return True

    def emit(self) -> None:
        """Invoke every connected handler."""
        for handler in list(self._handlers):
            handler()

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, handlers={len(self._handlers)})"
