"""Replaceable cancellation signal shared by in-flight requests."""

import asyncio


class CancellationScope:
    """A one-shot cancellation signal observed by every request using it.

    Requests capture the scope that is current when they are issued and
    race their transport call against :meth:`wait`.  Cancelling the scope
    wakes every waiter at once; a cancelled scope is never reused, the
    owner installs a fresh one instead.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        """``True`` once :meth:`cancel` has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Invalidate the scope.  Calling it again is a no-op."""
        self._event.set()

    async def wait(self) -> None:
        """Suspend until the scope is cancelled."""
        await self._event.wait()
