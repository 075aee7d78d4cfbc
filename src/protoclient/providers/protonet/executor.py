"""Single-attempt request execution with status and body validation."""

import asyncio
import json
import logging
from typing import Any, Callable, TypeVar
from urllib.parse import urljoin

from protoclient.auth.interfaces import AuthCredentials
from protoclient.core.cancellation import CancellationScope
from protoclient.core.envelopes import (
    FailureKind,
    HttpRequest,
    Outcome,
    RequestEnvelope,
    ResponseEnvelope,
    classify_status,
)
from protoclient.core.exceptions import TransportFailure
from protoclient.core.interfaces import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")

Decoder = Callable[[Any], T]

API_PATH = "api/v1/"


def normalize_base_url(url: str) -> str:
    """Return ``url`` with the API path segment appended if missing.

    ``https://host`` and ``https://host/`` both become
    ``https://host/api/v1/``; a URL already ending in ``api/v1/`` is
    returned unchanged.
    """
    if url.endswith(API_PATH):
        return url
    if not url.endswith("/"):
        url += "/"
    return url + API_PATH


class RequestExecutor:
    """Performs exactly one exchange and classifies the result.

    The executor never raises for failures of the exchange itself; it
    returns an :class:`~protoclient.core.envelopes.Outcome` instead.
    Credentials are passed in on every call rather than stored on the
    transport, so concurrent sessions never share header state.
    """

    def __init__(
        self,
        transport: Transport,
        base_url: str,
        user_agent: str = "protoclient",
    ):
        """Initialise the executor.

        Args:
            transport: The transport performing the exchange.
            base_url: The service root; normalised with
                :func:`normalize_base_url`.
            user_agent: The User-Agent header value for all requests.
        """
        self.transport = transport
        self.base_url = normalize_base_url(base_url)
        self.user_agent = user_agent

    def resolve(self, target: str) -> str:
        """Resolve ``target`` against the API root.

        Absolute URLs handed out by the service are returned unchanged.
        """
        return urljoin(self.base_url, target)

    def prepare(
        self, envelope: RequestEnvelope, credentials: AuthCredentials
    ) -> HttpRequest:
        """Build the transport request for ``envelope``.

        JSON bodies are encoded here; binary content is passed through
        untouched so file objects stream straight from disk.
        """
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
            **credentials.headers,
        }
        body = None
        if envelope.json is not None:
            body = json.dumps(envelope.json).encode("utf-8")
            headers["Content-Type"] = "application/json"
        elif envelope.content is not None:
            body = envelope.content
            headers["Content-Type"] = "application/octet-stream"
        headers.update(envelope.headers)
        return HttpRequest(
            method=envelope.method.upper(),
            url=self.resolve(envelope.target),
            headers=headers,
            body=body,
        )

    async def execute(
        self,
        envelope: RequestEnvelope,
        credentials: AuthCredentials,
        scope: CancellationScope,
        decoder: Decoder | None = None,
        *,
        stream: bool = False,
    ) -> Outcome:
        """Run one exchange against ``scope``.

        Args:
            envelope: What to send.
            credentials: The session configuration to attach.
            scope: The cancellation scope current when the call was issued.
            decoder: Turns the parsed JSON body into the result value.
                When ``None`` the raw :class:`ResponseEnvelope` is the value.
            stream: Return the body as an open stream.  Implies no decoder.

        Returns:
            An outcome holding the decoded value, or a failure of kind
            ``CANCELLED``, ``TRANSPORT``, ``UNAUTHORIZED``, ``HTTP`` or
            ``DECODE``.
        """
        request = self.prepare(envelope, credentials)
        if scope.cancelled:
            logger.debug("%s %s skipped: scope cancelled", request.method, request.url)
            return Outcome.failed(FailureKind.CANCELLED, detail="Request cancelled.")

        logger.debug("%s %s", request.method, request.url)
        send = asyncio.ensure_future(self.transport.send(request, stream=stream))
        watch = asyncio.ensure_future(scope.wait())
        try:
            await asyncio.wait({send, watch}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watch.cancel()
            if not send.done():
                send.cancel()

        # A response that lands in the same tick as the cancel is dropped.
        if scope.cancelled:
            logger.debug("%s %s cancelled in flight", request.method, request.url)
            await _discard(send)
            return Outcome.failed(FailureKind.CANCELLED, detail="Request cancelled.")

        try:
            response = send.result()
        except TransportFailure as e:
            return Outcome.failed(FailureKind.TRANSPORT, detail=str(e))

        return await self._interpret(request, response, decoder, stream)

    async def _interpret(
        self,
        request: HttpRequest,
        response: ResponseEnvelope,
        decoder: Decoder | None,
        stream: bool,
    ) -> Outcome:
        kind = classify_status(response.status)
        if kind is not None:
            await response.aclose()
            logger.warning(
                "%s %s returned %s %s",
                request.method,
                request.url,
                response.status,
                response.reason,
            )
            return Outcome.failed(
                kind,
                status=response.status,
                detail=f"{response.status} {response.reason}".strip(),
            )

        if stream or decoder is None:
            return Outcome.success(response)

        try:
            value = decoder(json.loads(response.body))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("%s %s: undecodable body: %s", request.method, request.url, e)
            return Outcome.failed(
                FailureKind.DECODE,
                status=response.status,
                detail=f"Unexpected response body: {e}",
            )
        return Outcome.success(value)


async def _discard(send: asyncio.Future) -> None:
    """Wait for an abandoned send to settle and release its response."""
    (result,) = await asyncio.gather(send, return_exceptions=True)
    if isinstance(result, ResponseEnvelope):
        await result.aclose()
