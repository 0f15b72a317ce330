"""httpx implementation of the ``Transport`` port.

Retries, TLS and timeouts stay with the configured ``httpx.Client``. This
adapter merges the default query parameters into every request target and
maps error-class responses to ``BackendRequestError``.
"""

from __future__ import annotations

import httpx
import orjson
import structlog

from couchdb_event_store.domain.errors import BackendRequestError, ConcurrencyConflict
from couchdb_event_store.ports.transport import TransportResponse

log = structlog.get_logger(__name__)


def error_from_response(response: httpx.Response) -> BackendRequestError:
    """Build the typed error for a CouchDB error response.

    CouchDB error bodies look like ``{"error": "not_found", "reason": "missing"}``.
    """
    error: str | None = None
    reason: str | None = None
    try:
        data = orjson.loads(response.content) if response.content else {}
    except orjson.JSONDecodeError:
        data = {}
    if isinstance(data, dict):
        error = data.get("error")
        reason = data.get("reason")

    error_cls = ConcurrencyConflict if response.status_code == 409 else BackendRequestError
    return error_cls(
        response.status_code,
        error=error,
        reason=reason or response.reason_phrase,
        headers=dict(response.headers),
        body=response.content,
    )


def _elapsed_seconds(response: httpx.Response) -> float | None:
    # Only set once the response stream is closed, which prebuilt bodies never do
    try:
        return response.elapsed.total_seconds()
    except RuntimeError:
        return None


class HttpxTransport:
    """Sends requests through a synchronous ``httpx.Client``.

    Satisfies the ``couchdb_event_store.ports.transport.Transport`` protocol.
    """

    def __init__(self, client: httpx.Client, default_query: dict[str, str] | None = None) -> None:
        self._client = client
        self._default_query = dict(default_query or {})

    @property
    def client(self) -> httpx.Client:
        return self._client

    def send(
        self,
        method: str,
        target: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> TransportResponse:
        url = self.merge_default_query(target)
        response = self._client.request(method, url, headers=headers, content=body)
        if response.status_code >= 400:
            error = error_from_response(response)
            log.debug(
                "couchdb_error_response",
                method=method,
                target=target,
                status_code=response.status_code,
                error=error.error,
                reason=error.reason,
            )
            raise error
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
            url=str(response.url),
            elapsed=_elapsed_seconds(response),
        )

    def merge_default_query(self, target: str) -> httpx.URL:
        """Add default query parameters the target does not already set."""
        url = httpx.URL(target)
        missing = {name: value for name, value in self._default_query.items() if name not in url.params}
        return url.copy_merge_params(missing) if missing else url

    def close(self) -> None:
        self._client.close()
