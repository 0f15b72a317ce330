"""Global, timestamp-ordered feed over every stored domain event.

Pages through the ``events_by_timestamp`` view. A resumed cursor restarts
at its last key with ``skip=1``, so the last event of a page is never
delivered twice.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from couchdb_event_store.adapters.couchdb.event_stream import read_event_stream
from couchdb_event_store.domain.errors import InvalidBackendResponse
from couchdb_event_store.domain.models import DomainEvent, EventStream, FeedCursor

if TYPE_CHECKING:
    from couchdb_event_store.adapters.couchdb.database import CouchDBDatabase
    from couchdb_event_store.domain.registry import EventTypeRegistry
    from couchdb_event_store.settings import DomainEventSettings

log = structlog.get_logger(__name__)


class DomainEventReader:
    """Reader for the cross-aggregate event feed."""

    def __init__(
        self,
        database: CouchDBDatabase,
        registry: EventTypeRegistry,
        settings: DomainEventSettings,
        snapshot_limit: int = 1000,
    ) -> None:
        self._database = database
        self._registry = registry
        self._settings = settings
        self._snapshot_limit = snapshot_limit

    def read(self, identifier: str) -> EventStream | None:
        """Read one aggregate's stream from the per-aggregate view."""
        return read_event_stream(
            self._database,
            self._registry,
            self._settings.design_doc,
            self._settings.stream_view_name,
            identifier,
            self._snapshot_limit,
        )

    def read_all(self, cursor: FeedCursor | None = None) -> tuple[list[DomainEvent], FeedCursor]:
        cursor = cursor or FeedCursor()
        last_key = None if cursor.first else cursor.last_key

        params: dict[str, Any] = {
            "include_docs": True,
            "reduce": False,
            "limit": self._settings.limit,
        }
        if last_key:
            params["skip"] = 1
            params["startkey"] = last_key

        result = self._database.view(self._settings.design_doc, self._settings.view_name, params)
        if "rows" not in result:
            raise InvalidBackendResponse("Invalid rows response from CouchDB", result)

        events: list[DomainEvent] = []
        for row in result["rows"]:
            document = row.get("doc")
            if not isinstance(document, dict):
                raise InvalidBackendResponse("Event feed row without document", row)
            event = self._registry.decode(document)
            events.append(event)
            last_key = event.iso_date

        log.debug("domain_events_read", count=len(events), last_key=last_key)
        return events, FeedCursor(last_key=last_key, first=False)
