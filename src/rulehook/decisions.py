"""Decision values returned by hooks.

Pass-through is spelled ``None``. The other variants are frozen dataclasses.
Hooks hand out a fresh copy of any mutable header dict, so a dispatcher
editing a returned decision never changes the rule table.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from urllib.parse import unquote_to_bytes

DATA_URI_PREFIX = "data:"


def decode_data_uri(uri: str) -> bytes:
    """Decode a ``data:`` URI into its payload bytes.

    Raises:
        ValueError: If the URI is malformed
    """
    if not uri.startswith(DATA_URI_PREFIX):
        raise ValueError("not a data URI")
    meta, sep, payload = uri[len(DATA_URI_PREFIX) :].partition(",")
    if not sep:
        raise ValueError("data URI has no payload separator")
    if meta.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    return unquote_to_bytes(payload)


@dataclass(frozen=True)
class ResponseOverride:
    """Replacement response; the upstream request is never sent.

    Attributes:
        status_code: HTTP status
        header: Response headers
        body: Literal body, or a data URI whose payload is served instead
    """

    status_code: int
    header: dict[str, str] = field(default_factory=dict)
    body: str | bytes = b""

    @property
    def is_data_uri(self) -> bool:
        return isinstance(self.body, str) and self.body.startswith(DATA_URI_PREFIX)

    @property
    def content(self) -> bytes:
        """Body bytes as they go on the wire."""
        if isinstance(self.body, bytes):
            return self.body
        if self.is_data_uri:
            return decode_data_uri(self.body)
        return self.body.encode("utf-8")


@dataclass(frozen=True)
class HeaderOverride:
    """Headers set on the request before it is forwarded upstream."""

    headers: dict[str, str]


@dataclass(frozen=True)
class ServeLocalFile:
    """Answer a CONNECT tunnel with local content instead of a boolean."""

    status: int
    headers: dict[str, str]
    body: bytes


@dataclass(frozen=True)
class RejectTunnel:
    """Refuse a CONNECT tunnel with an error status."""

    status: int = 403


RequestDecision = ResponseOverride | HeaderOverride | None
ConnectDecision = bool | ServeLocalFile | RejectTunnel
