"""Per-aggregate event streams stored as one CouchDB document per event.

Document ids are ``<aggregate id>-<seq number>``, so appending the same
aggregate/sequence pair twice collides in CouchDB instead of overwriting.
Reads go through the ``event_stream`` view keyed ``[aggregate id, seq number]``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from couchdb_event_store.adapters.couchdb.request import Method, ensure_identifier
from couchdb_event_store.domain.errors import (
    BackendRequestError,
    InvalidBackendResponse,
    OperationNotPermitted,
    WriteFailed,
)
from couchdb_event_store.domain.models import DomainEvent, EventStream, StreamCursor

if TYPE_CHECKING:
    from couchdb_event_store.adapters.couchdb.database import CouchDBDatabase
    from couchdb_event_store.domain.registry import EventTypeRegistry
    from couchdb_event_store.settings import EventStreamSettings

log = structlog.get_logger(__name__)


def stream_range_params(identifier: str, limit: int) -> dict[str, Any]:
    """View parameters selecting every key whose first component is ``identifier``.

    Under CouchDB collation objects sort after numbers, so walking descending
    from ``[id, {}]`` to ``[id, 1]`` covers every sequence number of one
    aggregate and nothing else.
    """
    return {
        "startkey": [identifier, {}],
        "endkey": [identifier, 1],
        "include_docs": True,
        "reduce": False,
        "descending": True,
        "limit": limit,
    }


def read_event_stream(
    database: CouchDBDatabase,
    registry: EventTypeRegistry,
    design_doc: str,
    view_name: str,
    identifier: str,
    limit: int,
) -> EventStream | None:
    """Read one aggregate's events in ascending ``seq_number`` order.

    Returns None when the view or the aggregate does not exist.
    """
    ensure_identifier(identifier)
    try:
        result = database.view(design_doc, view_name, stream_range_params(identifier, limit))
    except BackendRequestError as exc:
        if exc.is_not_found:
            return None
        raise

    if "total_rows" not in result:
        raise InvalidBackendResponse("Invalid event_stream read response from CouchDB", result)

    rows = result.get("rows") or []
    if not rows:
        return None

    events = []
    for row in reversed(rows):
        document = row.get("doc")
        if not isinstance(document, dict):
            raise InvalidBackendResponse("Event stream row without document", row)
        events.append(registry.decode(document))
    return EventStream(identifier=identifier, events=tuple(events))


class EventStreamReader:
    """Reads event streams one aggregate at a time.

    ``read_all`` snapshots the aggregate ids once per fresh cursor, then
    serves one stream per call from that snapshot.
    """

    def __init__(
        self,
        database: CouchDBDatabase,
        registry: EventTypeRegistry,
        settings: EventStreamSettings,
    ) -> None:
        self._database = database
        self._registry = registry
        self._settings = settings

    def read(self, identifier: str) -> EventStream | None:
        return read_event_stream(
            self._database,
            self._registry,
            self._settings.design_doc,
            self._settings.view_name,
            identifier,
            self._settings.snapshot_limit,
        )

    def read_all(self, cursor: StreamCursor | None = None) -> tuple[list[EventStream], StreamCursor]:
        cursor = cursor or StreamCursor()
        if cursor.first:
            cursor = StreamCursor(identifiers=self.fetch_stream_identifiers(), first=False)

        position = cursor.position
        while position < len(cursor.identifiers):
            identifier, _ = cursor.identifiers[position]
            position += 1
            stream = self.read(identifier)
            if stream is not None:
                return [stream], cursor.model_copy(update={"position": position})

        return [], cursor.model_copy(update={"position": position})

    def fetch_stream_identifiers(self) -> tuple[tuple[str, Any], ...]:
        """Enumerate known aggregate ids via the grouped discovery view."""
        params = {"group": True, "group_level": 1, "reduce": True}
        result = self._database.view(
            self._settings.discovery_design_doc,
            self._settings.discovery_view_name,
            params,
        )
        if "rows" not in result:
            raise InvalidBackendResponse("Invalid rows response from CouchDB", result)

        identifiers = {row["key"][0]: row.get("value") for row in result["rows"]}
        log.debug("event_streams_discovered", count=len(identifiers))
        return tuple(sorted(identifiers.items(), key=lambda item: item[0]))


class EventStreamAppender:
    """Append-only writer: one PUT per event, deletes are refused."""

    def __init__(self, database: CouchDBDatabase) -> None:
        self._database = database

    def write(self, event: DomainEvent) -> str:
        """Append ``event``. Returns the revision CouchDB assigned.

        A duplicate aggregate/sequence pair raises ``ConcurrencyConflict``.
        """
        if not isinstance(event, DomainEvent):
            msg = f"Expected a DomainEvent, got {type(event).__name__}"
            raise TypeError(msg)

        result = self._database.request(event.document_id, Method.PUT, event.to_document())
        if not result.get("ok") or "rev" not in result:
            msg = f"Failed to write event '{event.document_id}': {result!r}"
            raise WriteFailed(msg)

        log.debug("event_appended", document_id=event.document_id, rev=result["rev"])
        return str(result["rev"])

    def delete(self, identifier: str) -> None:
        msg = "Deleting domain events from the stream is not allowed"
        raise OperationNotPermitted(msg)
