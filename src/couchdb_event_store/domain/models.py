"""Domain models persisted by the CouchDB event store.

All models are Pydantic v2 and frozen: an appended event is never mutated,
and cursors are values threaded back in by the caller rather than state
hidden inside a reader.

Document shape of an event (``@type`` is the decode discriminator)::

    {"_id": "<aggregate>-<seq>", "_rev": "...", "@type": "...",
     "aggregate_root_identifier": "...", "seq_number": 1, "iso_date": "...", ...}
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# Document key holding the event type discriminator
TYPE_KEY = "@type"

# CouchDB metadata keys that never reach a domain model
_COUCHDB_META_KEYS = frozenset({"_id", "_rev", TYPE_KEY})


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class DomainEvent(BaseModel):
    """One committed state transition of one aggregate.

    Subclasses set ``type_name`` and add their own fields; the
    ``EventTypeRegistry`` maps stored ``@type`` values back to them.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    type_name: ClassVar[str] = "domain_event"

    uuid: str = Field(default_factory=lambda: str(uuid4()))
    aggregate_root_identifier: str = Field(..., min_length=1)
    aggregate_root_type: str | None = None
    seq_number: int = Field(..., ge=1)
    iso_date: str = Field(default_factory=_now_iso)
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    revision: str | None = Field(default=None, exclude=True)

    @property
    def document_id(self) -> str:
        return f"{self.aggregate_root_identifier}-{self.seq_number}"

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON body written to CouchDB."""
        document = self.model_dump(mode="json")
        document[TYPE_KEY] = self.type_name
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> DomainEvent:
        """Build an event from a stored document, keeping its ``_rev``."""
        fields = {key: value for key, value in document.items() if key not in _COUCHDB_META_KEYS}
        fields["revision"] = document.get("_rev")
        return cls.model_validate(fields)


class EventStream(BaseModel):
    """All events of one aggregate, ordered by ``seq_number`` ascending."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    events: tuple[DomainEvent, ...] = ()

    @property
    def seq_numbers(self) -> list[int]:
        return [event.seq_number for event in self.events]

    @property
    def last_seq_number(self) -> int:
        return self.events[-1].seq_number if self.events else 0


# ---------------------------------------------------------------------------
# Structure versions (migration ledger)
# ---------------------------------------------------------------------------


class StructureVersion(BaseModel):
    """One applied migration step. Unknown keys are kept as metadata."""

    model_config = ConfigDict(frozen=True, extra="allow")

    version: str | int
    target_name: str | None = None
    created_date: str | None = None


class StructureVersionList(BaseModel):
    """Ordered migration versions applied to one logical entity type.

    Persisted as a whole document; ``revision`` is absent until the first
    successful write.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., min_length=1)
    revision: str | None = None
    versions: tuple[StructureVersion, ...] = ()

    @property
    def latest(self) -> StructureVersion | None:
        return self.versions[-1] if self.versions else None

    def contains(self, version: str | int) -> bool:
        return any(str(entry.version) == str(version) for entry in self.versions)

    def with_version(self, version: StructureVersion) -> StructureVersionList:
        """Return a copy with ``version`` appended, keeping the revision."""
        return self.model_copy(update={"versions": (*self.versions, version)})

    def versions_as_documents(self) -> list[dict[str, Any]]:
        return [entry.model_dump(mode="json", exclude_none=True) for entry in self.versions]


# ---------------------------------------------------------------------------
# Cursors
# ---------------------------------------------------------------------------


class StreamCursor(BaseModel):
    """Position in a per-aggregate scan.

    ``identifiers`` is the snapshot of ``(aggregate id, discovery value)``
    pairs taken on the first call; aggregates created later are only seen by
    the next fresh scan.
    """

    model_config = ConfigDict(frozen=True)

    identifiers: tuple[tuple[str, Any], ...] = ()
    position: int = 0
    first: bool = True

    @property
    def exhausted(self) -> bool:
        return not self.first and self.position >= len(self.identifiers)


class FeedCursor(BaseModel):
    """Position in the global, timestamp-ordered event feed."""

    model_config = ConfigDict(frozen=True)

    last_key: str | None = None
    first: bool = True


class LedgerCursor(BaseModel):
    """Position in the structure version ledger scan.

    A resumed cursor without ``last_key`` means the previous page was the last.
    """

    model_config = ConfigDict(frozen=True)

    last_key: str | None = None
    first: bool = True


# ---------------------------------------------------------------------------
# Connection status
# ---------------------------------------------------------------------------


class ConnectionState(enum.StrEnum):
    """Outcome of a connection health probe."""

    WORKING = "working"
    FAILING = "failing"
    UNKNOWN = "unknown"


class Status(BaseModel):
    """Health probe result plus free-form diagnostics."""

    model_config = ConfigDict(frozen=True)

    state: ConnectionState
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_working(self) -> bool:
        return self.state is ConnectionState.WORKING
