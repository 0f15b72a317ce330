"""Application settings via Pydantic BaseSettings.

All configuration uses the CES_ environment variable prefix. Store settings
may name their own database; otherwise they fall back to the connector's.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from couchdb_event_store.domain.models import ConnectionState


class CouchDBSettings(BaseSettings):
    """CouchDB connection settings."""

    model_config = {"env_prefix": "CES_COUCHDB_"}

    # Either a full base URI, or transport + host + port which take precedence
    base_uri: str = "http://localhost:5984"
    transport: str | None = None
    host: str | None = None
    port: int | None = None

    username: str | None = None
    password: str | None = None
    auth_type: str = "basic"  # basic | digest

    database: str = "event_store"

    # Sent with every request
    default_headers: dict[str, str] = Field(default_factory=dict)
    default_query: dict[str, str] = Field(default_factory=dict)

    timeout_seconds: float = 10.0

    # Health probe path, e.g. "/" or "/_up"; no path means status "unknown"
    status_test: str | None = None
    status_verbose: bool = True
    # Fixed status reported instead of probing (tests, maintenance windows)
    fake_status: ConnectionState | None = None

    @property
    def effective_base_uri(self) -> str:
        if self.transport and self.host and self.port:
            return f"{self.transport}://{self.host}:{self.port}"
        return self.base_uri


class EventStreamSettings(BaseSettings):
    """Per-aggregate event stream reader settings."""

    model_config = {"env_prefix": "CES_EVENT_STREAM_"}

    database: str | None = None
    design_doc: str = "default_views"
    view_name: str = "event_stream"

    # Aggregate discovery (grouped/reduced) view
    discovery_design_doc: str = "default_views"
    discovery_view_name: str = "event_stream"

    # Maximum events returned for one aggregate
    snapshot_limit: int = 1000


class DomainEventSettings(BaseSettings):
    """Global event feed reader settings."""

    model_config = {"env_prefix": "CES_DOMAIN_EVENT_"}

    database: str | None = None
    design_doc: str = "default_views"
    view_name: str = "events_by_timestamp"
    stream_view_name: str = "event_stream"
    limit: int = 100


class StructureVersionSettings(BaseSettings):
    """Structure version ledger settings."""

    model_config = {"env_prefix": "CES_STRUCTURE_VERSION_"}

    # Must differ from the event database: the ledger scan reads every document in it
    database: str = "structure_versions"
    limit: int = 10


class MigrationSettings(BaseSettings):
    """Design document migration settings."""

    model_config = {"env_prefix": "CES_MIGRATION_"}

    database: str | None = None
    design_doc: str = "default_views"
    # Directory of <view>.map.js / <view>.reduce.js files; None uses the packaged views
    views_directory: str | None = None


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "CES_"}

    app_name: str = "couchdb-event-store"
    log_level: str = "INFO"
    log_json: bool = True

    couchdb: CouchDBSettings = Field(default_factory=CouchDBSettings)
    event_stream: EventStreamSettings = Field(default_factory=EventStreamSettings)
    domain_event: DomainEventSettings = Field(default_factory=DomainEventSettings)
    structure_version: StructureVersionSettings = Field(default_factory=StructureVersionSettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
