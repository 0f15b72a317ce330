"""Builds every store from one ``Settings`` object.

Stores share the connector's transport; each may target its own database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from couchdb_event_store.adapters.couchdb.connector import CouchDBConnector
from couchdb_event_store.adapters.couchdb.domain_event import DomainEventReader
from couchdb_event_store.adapters.couchdb.event_stream import EventStreamAppender, EventStreamReader
from couchdb_event_store.adapters.couchdb.migration import CouchDBMigration
from couchdb_event_store.adapters.couchdb.structure_version import (
    StructureVersionListReader,
    StructureVersionListWriter,
)

if TYPE_CHECKING:
    from couchdb_event_store.domain.registry import EventTypeRegistry
    from couchdb_event_store.ports.transport import Transport
    from couchdb_event_store.settings import Settings

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CouchDBStores:
    """Readers, writers and migrations for one CouchDB server."""

    connector: CouchDBConnector
    event_stream_reader: EventStreamReader
    event_stream_appender: EventStreamAppender
    domain_event_reader: DomainEventReader
    structure_version_reader: StructureVersionListReader
    structure_version_writer: StructureVersionListWriter
    migration: CouchDBMigration
    ledger_migration: CouchDBMigration

    def ensure_databases(self, update_indexes: bool = True) -> None:
        """Create the event and ledger databases when absent.

        Only the event database carries the index bundle.
        """
        self.migration.ensure_database(update_indexes=update_indexes)
        self.ledger_migration.ensure_database()

    def close(self) -> None:
        self.connector.close()


def create_stores(
    settings: Settings,
    registry: EventTypeRegistry,
    transport: Transport | None = None,
) -> CouchDBStores:
    connector = CouchDBConnector(settings.couchdb, transport=transport)

    stream_db = connector.database(settings.event_stream.database)
    feed_db = connector.database(settings.domain_event.database or settings.event_stream.database)
    ledger_db = connector.database(settings.structure_version.database)

    stores = CouchDBStores(
        connector=connector,
        event_stream_reader=EventStreamReader(stream_db, registry, settings.event_stream),
        event_stream_appender=EventStreamAppender(stream_db),
        domain_event_reader=DomainEventReader(
            feed_db,
            registry,
            settings.domain_event,
            snapshot_limit=settings.event_stream.snapshot_limit,
        ),
        structure_version_reader=StructureVersionListReader(ledger_db, settings.structure_version),
        structure_version_writer=StructureVersionListWriter(ledger_db),
        migration=CouchDBMigration.from_settings(connector, settings.migration),
        ledger_migration=CouchDBMigration(ledger_db, design_doc=settings.migration.design_doc),
    )
    log.info(
        "couchdb_stores_created",
        event_stream_database=stream_db.name,
        structure_version_database=ledger_db.name,
        event_types=registry.type_names,
    )
    return stores
