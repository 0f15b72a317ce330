"""Unit tests for settings, store wiring and logging configuration."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
import structlog

from couchdb_event_store.adapters.couchdb.structure_version import record_version
from couchdb_event_store.adapters.couchdb.transport import HttpxTransport
from couchdb_event_store.domain.models import StructureVersion
from couchdb_event_store.factory import create_stores
from couchdb_event_store.logging_config import configure_logging
from couchdb_event_store.ports.storage import iterate
from couchdb_event_store.settings import (
    CouchDBSettings,
    EventStreamSettings,
    Settings,
    StructureVersionSettings,
)
from tests.fixtures.couchdb import FakeCouchDB
from tests.fixtures.events import BASE_TIME, make_registry, make_stream_events


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.couchdb.database == "event_store"
        assert settings.event_stream.snapshot_limit == 1000
        assert settings.domain_event.limit == 100
        assert settings.structure_version.limit == 10
        assert settings.structure_version.database == "structure_versions"
        assert settings.couchdb.status_test is None
        assert settings.migration.views_directory is None

    def test_environment_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("CES_COUCHDB_DATABASE", "from_env")
        monkeypatch.setenv("CES_EVENT_STREAM_SNAPSHOT_LIMIT", "50")
        assert CouchDBSettings().database == "from_env"
        assert EventStreamSettings().snapshot_limit == 50

    def test_effective_base_uri(self) -> None:
        assert CouchDBSettings().effective_base_uri == "http://localhost:5984"


class TestCreateStores:
    @pytest.fixture()
    def fake(self) -> FakeCouchDB:
        return FakeCouchDB()

    @pytest.fixture()
    def stores(self, fake):
        settings = Settings(
            couchdb=CouchDBSettings(database="events", status_test="/"),
            structure_version=StructureVersionSettings(database="ledger"),
        )
        stores = create_stores(settings, make_registry(), transport=HttpxTransport(fake.client()))
        yield stores
        stores.close()

    def test_per_store_database_override(self, stores, fake) -> None:
        stores.migration.ensure_database(update_indexes=True)
        stores.event_stream_appender.write(make_stream_events(n=1, aggregate_id="account-1")[0])

        fake.create_database("ledger")
        record_version(
            stores.structure_version_reader,
            stores.structure_version_writer,
            "events",
            StructureVersion(version="1"),
        )

        assert "account-1-1" in fake.databases["events"]
        assert "events" in fake.databases["ledger"]

    def test_end_to_end_scan(self, stores) -> None:
        stores.migration.ensure_database(update_indexes=True)
        for offset, aggregate_id in enumerate(("account-a", "account-b")):
            start = BASE_TIME + timedelta(hours=offset)
            for event in make_stream_events(n=3, aggregate_id=aggregate_id, start=start):
                stores.event_stream_appender.write(event)

        streams = list(iterate(stores.event_stream_reader.read_all))
        feed = list(iterate(stores.domain_event_reader.read_all))

        assert [s.identifier for s in streams] == ["account-a", "account-b"]
        assert len(feed) == 6
        assert stores.domain_event_reader.read("account-b").seq_numbers == [1, 2, 3]
        assert stores.connector.get_status().is_working

    def test_default_wiring_keeps_ledger_apart_from_events(self, fake) -> None:
        stores = create_stores(Settings(), make_registry(), transport=HttpxTransport(fake.client()))
        stores.ensure_databases()
        stores.event_stream_appender.write(make_stream_events(n=1, aggregate_id="account-1")[0])
        record_version(
            stores.structure_version_reader,
            stores.structure_version_writer,
            "accounts",
            StructureVersion(version="1"),
        )

        lists = [version_list.identifier for version_list in iterate(stores.structure_version_reader.read_all)]

        assert lists == ["accounts"]
        assert "account-1-1" in fake.databases["event_store"]
        assert "_design/default_views" not in fake.databases["structure_versions"]
        stores.close()

    def test_ensure_databases_is_idempotent(self, stores, fake) -> None:
        stores.ensure_databases()
        stores.ensure_databases()
        assert set(fake.databases) == {"events", "ledger"}
        assert "_design/default_views" in fake.databases["events"]


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_logging(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)
        structlog.reset_defaults()

    def test_routes_structlog_through_stdlib(self, capsys) -> None:
        configure_logging("debug")
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

        structlog.get_logger("test").info("hello", answer=42)
        assert '"answer": 42' in capsys.readouterr().err
