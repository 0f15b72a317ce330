"""Structure version ledger: applied migration versions per entity type.

Each ``StructureVersionList`` is one document whose ``_id`` is the list
identifier. Writes replace the whole document, so callers merge before
writing (see ``record_version``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from couchdb_event_store.adapters.couchdb.request import Method, ensure_identifier
from couchdb_event_store.domain.errors import (
    BackendRequestError,
    InvalidBackendResponse,
    WriteFailed,
)
from couchdb_event_store.domain.models import (
    LedgerCursor,
    StructureVersion,
    StructureVersionList,
)

if TYPE_CHECKING:
    from couchdb_event_store.adapters.couchdb.database import CouchDBDatabase
    from couchdb_event_store.settings import StructureVersionSettings

log = structlog.get_logger(__name__)


def _to_version_list(document: dict[str, Any]) -> StructureVersionList:
    if "_id" not in document or not isinstance(document.get("versions"), list):
        raise InvalidBackendResponse("Invalid structure version document from CouchDB", document)
    return StructureVersionList(
        identifier=document["_id"],
        revision=document.get("_rev"),
        versions=tuple(StructureVersion.model_validate(entry) for entry in document["versions"]),
    )


@dataclass(frozen=True)
class RevisionLookup:
    """Outcome of fetching a document's current revision.

    ``revision`` is None when it is unknown; ``error`` then says why
    (usually a 404 for a document that was never written).
    """

    revision: str | None = None
    error: BackendRequestError | None = None

    @property
    def known(self) -> bool:
        return self.revision is not None


def lookup_revision(database: CouchDBDatabase, identifier: str) -> RevisionLookup:
    try:
        document = database.request(identifier, Method.GET)
    except BackendRequestError as exc:
        return RevisionLookup(error=exc)
    return RevisionLookup(revision=document.get("_rev"))


class StructureVersionListReader:
    """Reads version lists by identifier or as a paged ledger scan."""

    def __init__(self, database: CouchDBDatabase, settings: StructureVersionSettings) -> None:
        self._database = database
        self._settings = settings

    def read(self, identifier: str) -> StructureVersionList | None:
        ensure_identifier(identifier)
        document = self._database.get_document(identifier)
        if document is None:
            return None
        return _to_version_list(document)

    def read_all(
        self,
        cursor: LedgerCursor | None = None,
        limit: int | None = None,
    ) -> tuple[list[StructureVersionList], LedgerCursor]:
        cursor = cursor or LedgerCursor()
        params: dict[str, Any] = {
            "include_docs": True,
            "limit": limit or self._settings.limit,
        }
        if not cursor.first:
            if not cursor.last_key:
                return [], cursor
            params["skip"] = 1
            params["startkey"] = cursor.last_key

        result = self._database.all_docs(params)
        if "rows" not in result:
            raise InvalidBackendResponse("Invalid rows response from CouchDB", result)

        rows = result["rows"]
        lists = [
            _to_version_list(row["doc"])
            for row in rows
            if not str(row.get("id", "")).startswith("_design/") and row.get("doc")
        ]

        last_page = not rows or result.get("total_rows") == result.get("offset", 0) + 1
        next_key = None if last_page else rows[-1]["id"]
        return lists, LedgerCursor(last_key=next_key, first=False)


class StructureVersionListWriter:
    """Whole-document writer for version lists."""

    def __init__(self, database: CouchDBDatabase) -> None:
        self._database = database

    def write(self, version_list: StructureVersionList) -> str:
        """PUT the full list, updating the current revision when there is one.

        Returns the new revision. A stale revision raises ``ConcurrencyConflict``.
        """
        identifier = ensure_identifier(version_list.identifier)
        body: dict[str, Any] = {
            "identifier": identifier,
            "versions": version_list.versions_as_documents(),
        }

        lookup = lookup_revision(self._database, identifier)
        if lookup.known:
            body["revision"] = lookup.revision
        else:
            log.info(
                "structure_version_revision_unknown",
                identifier=identifier,
                status_code=lookup.error.status_code if lookup.error else None,
            )

        result = self._database.request(identifier, Method.PUT, body)
        if not result.get("ok") or "rev" not in result:
            msg = f"Failed to write structure version list '{identifier}': {result!r}"
            raise WriteFailed(msg)
        return str(result["rev"])

    def delete(self, identifier: str) -> None:
        """Best-effort delete; backend errors are logged, not raised."""
        ensure_identifier(identifier)
        lookup = lookup_revision(self._database, identifier)
        if not lookup.known:
            log.warning(
                "structure_version_delete_skipped",
                identifier=identifier,
                error=str(lookup.error) if lookup.error else None,
            )
            return
        try:
            self._database.request(identifier, Method.DELETE, {"revision": lookup.revision})
        except BackendRequestError as exc:
            log.warning("structure_version_delete_failed", identifier=identifier, error=str(exc))


def record_version(
    reader: StructureVersionListReader,
    writer: StructureVersionListWriter,
    identifier: str,
    version: StructureVersion,
) -> StructureVersionList:
    """Read-merge-write one applied version into the ledger.

    Already recorded versions are left untouched.
    """
    current = reader.read(identifier) or StructureVersionList(identifier=identifier)
    if current.contains(version.version):
        return current
    updated = current.with_version(version)
    revision = writer.write(updated)
    log.info("structure_version_recorded", identifier=identifier, version=str(version.version))
    return updated.model_copy(update={"revision": revision})
