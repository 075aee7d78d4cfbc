"""Request/response envelopes and the tagged outcome of one exchange.

The executor never raises for an expected failure.  It returns an
:class:`Outcome` carrying either a value or a :class:`Failure`, and each
caller decides how to handle the failure kind: the unauthorized
interceptor matches on :attr:`FailureKind.UNAUTHORIZED`, everything else
turns the failure into an exception with :meth:`Failure.to_exception`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any, Generic, TypeVar

import httpx

from protoclient.core.exceptions import (
    DecodeFailure,
    HttpFailure,
    RequestCancelled,
    RequestFailure,
    TransportFailure,
    Unauthorized,
)

T = TypeVar("T")

Body = bytes | IO[bytes]


# ----------------------
# Request
# ----------------------


@dataclass(frozen=True)
class RequestEnvelope:
    """One outbound call: method, target locator and optional body.

    ``target`` is either relative to the API root (``"me/"``) or an
    absolute URL handed out by an earlier response.  At most one of
    ``json`` and ``content`` may be set.
    """

    method: str
    target: str
    json: Any = None
    """A JSON-serialisable body, encoded before transmission."""

    content: Body | None = None
    """Binary payload sent as an opaque byte stream."""

    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.json is not None and self.content is not None:
            raise ValueError("A request carries either a JSON body or binary content, not both.")


@dataclass(frozen=True)
class HttpRequest:
    """A fully resolved request handed to the transport."""

    method: str
    url: str
    headers: dict[str, str]
    body: Body | None = None


# ----------------------
# Response
# ----------------------


@dataclass
class ResponseEnvelope:
    """Status and raw body of one response.

    Exactly one of ``body`` and ``stream`` is meaningful: buffered
    responses carry ``body``, streamed ones carry an open ``stream`` that
    the consumer iterates asynchronously and must close with
    ``await stream.aclose()``.
    """

    status: int
    reason: str = ""
    body: bytes = b""
    stream: httpx.AsyncByteStream | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def aclose(self) -> None:
        if self.stream is not None:
            await self.stream.aclose()


# ----------------------
# Outcome
# ----------------------


class FailureKind(str, Enum):
    """Classification of a failed exchange."""

    CANCELLED = "cancelled"
    TRANSPORT = "transport"
    UNAUTHORIZED = "unauthorized"
    HTTP = "http"
    DECODE = "decode"


_EXCEPTIONS: dict[FailureKind, type[RequestFailure]] = {
    FailureKind.CANCELLED: RequestCancelled,
    FailureKind.TRANSPORT: TransportFailure,
    FailureKind.UNAUTHORIZED: Unauthorized,
    FailureKind.DECODE: DecodeFailure,
}


@dataclass(frozen=True)
class Failure:
    """Why an exchange did not produce a value."""

    kind: FailureKind
    status: int | None = None
    detail: str = ""

    def to_exception(self) -> RequestFailure:
        """Return the exception a caller should raise for this failure."""
        if self.kind is FailureKind.HTTP:
            return HttpFailure(self.status or 0, self.detail)
        return _EXCEPTIONS[self.kind](self.detail or self.kind.value)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a decoded value or a :class:`Failure`."""

    value: T | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failed(
        cls, kind: FailureKind, status: int | None = None, detail: str = ""
    ) -> "Outcome[T]":
        return cls(failure=Failure(kind, status, detail))

    def unwrap(self) -> T:
        """Return the value, raising the failure's exception if there is one."""
        if self.failure is not None:
            raise self.failure.to_exception()
        return self.value


def classify_status(status: int) -> FailureKind | None:
    """Map an HTTP status to a failure kind, or ``None`` for 2xx.

    Exactly one status, 401, means the credential was rejected; every
    other non-2xx status is a plain HTTP failure.
    """
    if 200 <= status < 300:
        return None
    if status == 401:
        return FailureKind.UNAUTHORIZED
    return FailureKind.HTTP
