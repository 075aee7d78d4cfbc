"""Turns an unauthorized outcome into a logout instead of an error."""

import logging
from typing import Awaitable, Callable, TypeVar

from protoclient.auth.interfaces import AuthCredentials
from protoclient.core.envelopes import FailureKind, Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

UnauthorizedHandler = Callable[[AuthCredentials], None]


class UnauthorizedInterceptor:
    """Wraps executor calls made on behalf of an authenticated session.

    A 401 is handed to ``on_unauthorized`` together with the credentials
    the request was sent with, and the guarded call returns ``None``.
    Successful values are returned as-is and every other failure is raised
    as its exception.
    """

    def __init__(self, on_unauthorized: UnauthorizedHandler):
        self._on_unauthorized = on_unauthorized

    async def guard(
        self,
        producer: Callable[[], Awaitable[Outcome[T]]],
        credentials: AuthCredentials,
    ) -> T | None:
        """Await ``producer`` and apply the unauthorized policy.

        Args:
            producer: Starts the executor call.
            credentials: The credentials the call is sent with.

        Returns:
            The outcome's value, or ``None`` if the service answered 401.

        Raises:
            RequestFailure: For any failure other than a 401.
        """
        outcome = await producer()
        if outcome.failure is None:
            return outcome.value
        if outcome.failure.kind is FailureKind.UNAUTHORIZED:
            logger.info("Credential rejected by the service")
            self._on_unauthorized(credentials)
            return None
        raise outcome.failure.to_exception()
