"""Shared request core for all CouchDB readers, writers and migrations.

Every store composes one ``CouchDBDatabase``: it builds the operation, hands
it to the transport and decodes the JSON response body.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import orjson
import structlog

from couchdb_event_store.adapters.couchdb.request import Method, build_operation
from couchdb_event_store.domain.errors import BackendRequestError, InvalidBackendResponse

if TYPE_CHECKING:
    from couchdb_event_store.ports.transport import Transport, TransportResponse

log = structlog.get_logger(__name__)


def decode_json(body: bytes) -> dict[str, Any]:
    """Decode a CouchDB response body, which must be a JSON object."""
    if not body:
        return {}
    try:
        decoded = orjson.loads(body)
    except orjson.JSONDecodeError as exc:
        raise InvalidBackendResponse("Response body is not valid JSON", body) from exc
    if not isinstance(decoded, dict):
        raise InvalidBackendResponse("Response body is not a JSON object", decoded)
    return decoded


def view_path(design_doc: str, view_name: str) -> str:
    return f"_design/{design_doc}/_view/{view_name}"


class CouchDBDatabase:
    """Request/response access to a single CouchDB database."""

    def __init__(self, transport: Transport, name: str) -> None:
        self._transport = transport
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def transport(self) -> Transport:
        return self._transport

    def send(
        self,
        identifier: str,
        method: str | Method,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> TransportResponse:
        operation = build_operation(self._name, identifier, method, body, params)
        log.debug("couchdb_request", method=operation.method.value, target=operation.target)
        return self._transport.send(
            operation.method.value,
            operation.target,
            operation.headers,
            operation.encoded_body(),
        )

    def request(
        self,
        identifier: str,
        method: str | Method,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send an operation and return the decoded JSON body."""
        response = self.send(identifier, method, body, params)
        return decode_json(response.body)

    def get_document(self, identifier: str) -> dict[str, Any] | None:
        """GET a document by id; None when CouchDB reports it missing."""
        try:
            return self.request(identifier, Method.GET)
        except BackendRequestError as exc:
            if exc.is_not_found:
                return None
            raise

    def view(self, design_doc: str, view_name: str, params: dict[str, Any]) -> dict[str, Any]:
        return self.request(view_path(design_doc, view_name), Method.GET, params=params)

    def all_docs(self, params: dict[str, Any]) -> dict[str, Any]:
        return self.request("_all_docs", Method.GET, params=params)
