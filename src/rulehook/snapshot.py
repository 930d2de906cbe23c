"""Read-only transaction views handed to hooks.

A snapshot is built by the dispatcher for a single hook call and thrown
away afterwards. Headers are exposed through a case-insensitive mapping that
cannot be modified.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from rulehook.errors import DecodeError


class Headers(Mapping[str, str]):
    """Immutable header mapping with case-insensitive lookup.

    Iteration yields header names as given; lookups ignore case.
    """

    __slots__ = ("_items", "_index")

    def __init__(self, headers: Mapping[str, str] | None = None) -> None:
        items = {str(k): str(v) for k, v in (headers or {}).items()}
        self._items = items
        self._index = {k.lower(): v for k, v in items.items()}

    def __getitem__(self, name: str) -> str:
        return self._index[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"


@dataclass(frozen=True)
class RequestOptions:
    method: str = "GET"
    host: str = ""
    port: int | None = None
    path: str = "/"
    headers: Headers = field(default_factory=Headers)


@dataclass(frozen=True)
class ResponseRecord:
    status_code: int
    header: Headers = field(default_factory=Headers)
    body: bytes = b""


@dataclass(frozen=True)
class TransactionSnapshot:
    """Point-in-time view of a transaction.

    Attributes:
        protocol: "http" or "https"
        url: Full request URL
        request_options: Method, host, port, path and headers
        request_data: Request body (may be empty)
        response: Upstream response, present only in the response phase
        client_address: Address of the proxy client, if known
        replace_local_file: Set by the host when a tunnel asks for local content
    """

    protocol: str
    url: str
    request_options: RequestOptions = field(default_factory=RequestOptions)
    request_data: bytes = b""
    response: ResponseRecord | None = None
    client_address: str | None = None
    replace_local_file: bool = False


def decode_body(body: Any) -> str:
    """Convert a response body to text, best effort.

    Invalid UTF-8 sequences are replaced rather than rejected so that any
    byte sequence yields text.

    Raises:
        DecodeError: If the body is not bytes-like or text
    """
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body).decode("utf-8", errors="replace")
    raise DecodeError(f"cannot decode body of type {type(body).__name__}")
