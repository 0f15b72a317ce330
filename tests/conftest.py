"""Shared pytest fixtures for the couchdb-event-store test suite.

Unit tests run against ``FakeCouchDB`` through ``httpx.MockTransport``; no
CouchDB server is required.
"""

from __future__ import annotations

import pytest

from couchdb_event_store.adapters.couchdb.database import CouchDBDatabase
from couchdb_event_store.adapters.couchdb.transport import HttpxTransport
from couchdb_event_store.settings import (
    DomainEventSettings,
    EventStreamSettings,
    StructureVersionSettings,
)
from tests.fixtures.couchdb import FakeCouchDB
from tests.fixtures.events import make_event, make_registry, make_stream_events

TEST_DB = "test_db"


@pytest.fixture()
def fake_couchdb() -> FakeCouchDB:
    """A fake server holding ``test_db`` with the default views installed."""
    fake = FakeCouchDB()
    fake.create_database(TEST_DB)
    fake.install_views(TEST_DB)
    return fake


@pytest.fixture()
def transport(fake_couchdb: FakeCouchDB) -> HttpxTransport:
    transport = HttpxTransport(fake_couchdb.client())
    yield transport
    transport.close()


@pytest.fixture()
def database(transport: HttpxTransport) -> CouchDBDatabase:
    return CouchDBDatabase(transport, TEST_DB)


@pytest.fixture()
def registry():
    return make_registry()


@pytest.fixture()
def event_stream_settings() -> EventStreamSettings:
    return EventStreamSettings()


@pytest.fixture()
def domain_event_settings() -> DomainEventSettings:
    return DomainEventSettings()


@pytest.fixture()
def structure_version_settings() -> StructureVersionSettings:
    return StructureVersionSettings()


@pytest.fixture()
def event_factory():
    """Return the ``make_event`` factory callable."""
    return make_event


@pytest.fixture()
def stream_events_factory():
    """Return the ``make_stream_events`` factory callable."""
    return make_stream_events
