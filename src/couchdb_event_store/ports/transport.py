"""HTTP transport port.

Uses typing.Protocol for structural subtyping (not ABCs).
The httpx adapter implements this protocol; tests may supply their own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class TransportResponse:
    """A successful (non error-class) HTTP response."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    url: str = ""
    elapsed: float | None = None


class Transport(Protocol):
    """Protocol for sending one HTTP request to CouchDB."""

    def send(
        self,
        method: str,
        target: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        """Send a request for ``target`` (path plus query string).

        Must raise ``BackendRequestError`` (or ``ConcurrencyConflict`` for 409)
        when the response status is 400 or above.
        """
        ...

    def close(self) -> None:
        """Release connections."""
        ...
