"""Protonet provider package."""

from protoclient.providers.protonet.auth import ProtonetTokenAuth
from protoclient.providers.protonet.client import ProtonetClient, SessionState
from protoclient.providers.protonet.transport import HttpxTransport

__all__ = ["ProtonetClient", "ProtonetTokenAuth", "HttpxTransport", "SessionState"]
