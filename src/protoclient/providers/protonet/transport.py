"""``httpx``-based transport."""

import logging
from typing import IO, AsyncIterator

import httpx

from protoclient.core.envelopes import Body, HttpRequest, ResponseEnvelope
from protoclient.core.exceptions import TransportFailure
from protoclient.core.interfaces import Transport

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024


class ResponseStream(httpx.AsyncByteStream):
    """Decoded body of a streamed response.

    Closing the stream releases the underlying connection.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes():
            yield chunk

    async def aclose(self) -> None:
        await self._response.aclose()


class HttpxTransport(Transport):
    """Sends requests through an :class:`httpx.AsyncClient`.

    Awaiting :meth:`send` suspends the calling task on the event loop.
    Cancelling that task aborts the exchange and drops the connection.
    The transport applies no retries and no status handling.
    """

    def __init__(
        self,
        timeout: float = 20,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialise the transport.

        Args:
            timeout: Connect and read timeout in seconds for every request.
            client: An existing client to reuse.  A new one is created
                when ``None``.
        """
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def send(
        self, request: HttpRequest, stream: bool = False
    ) -> ResponseEnvelope:
        """Perform one exchange.

        Raises:
            TransportFailure: On connection errors, timeouts, or a body
                that could not be read to completion.
        """
        try:
            built = self.client.build_request(
                request.method,
                request.url,
                headers=request.headers,
                content=_content(request.body),
            )
            r = await self.client.send(built, stream=stream)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("%s %s failed: %s", request.method, request.url, e)
            raise TransportFailure(str(e) or type(e).__name__) from e

        if stream:
            return ResponseEnvelope(
                status=r.status_code, reason=r.reason_phrase, stream=ResponseStream(r)
            )
        return ResponseEnvelope(
            status=r.status_code, reason=r.reason_phrase, body=r.content
        )

    async def aclose(self) -> None:
        await self.client.aclose()


def _content(body: Body | None) -> bytes | AsyncIterator[bytes] | None:
    # An async client refuses synchronous iterables, so file objects are
    # fed to it chunk by chunk.
    if body is None or isinstance(body, bytes):
        return body
    return _read_chunks(body)


async def _read_chunks(fh: IO[bytes]) -> AsyncIterator[bytes]:
    while chunk := fh.read(UPLOAD_CHUNK_SIZE):
        yield chunk
