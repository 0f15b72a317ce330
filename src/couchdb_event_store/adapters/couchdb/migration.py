"""Database and design document lifecycle.

A database moves through three states: absent, present without the index
bundle (design document), and present with it. The bundle is rebuilt from a
directory of view sources on every deploy:

- ``<view>.map.js`` holds the map function of view ``<view>``
- ``<view>.reduce.js`` optionally holds its reduce function

The whole ``views`` section of the design document is replaced; views that
no longer have a source file disappear.
"""

from __future__ import annotations

import enum
import importlib.resources
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from couchdb_event_store.adapters.couchdb.request import Method
from couchdb_event_store.domain.errors import BackendRequestError, MigrationFailed

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

    from couchdb_event_store.adapters.couchdb.connector import CouchDBConnector
    from couchdb_event_store.adapters.couchdb.database import CouchDBDatabase
    from couchdb_event_store.settings import MigrationSettings

log = structlog.get_logger(__name__)

MAP_FILE_SUFFIX = ".map.js"
REDUCE_FILE_SUFFIX = ".reduce.js"


class DatabaseState(enum.StrEnum):
    """Lifecycle state of a database and its index bundle."""

    ABSENT = "absent"
    PRESENT_NO_INDEX_BUNDLE = "present_no_index_bundle"
    PRESENT_WITH_INDEX_BUNDLE = "present_with_index_bundle"


def packaged_views() -> Traversable:
    """Directory of the view sources shipped with this package."""
    return importlib.resources.files("couchdb_event_store.adapters.couchdb").joinpath("views")


def load_view_definitions(directory: Traversable | Path) -> dict[str, dict[str, str]]:
    """Collect ``{view name: {"map": ..., "reduce": ...}}`` from a source directory."""
    if not directory.is_dir():
        msg = f'Given views directory "{directory}" does not exist'
        raise MigrationFailed(msg)

    views: dict[str, dict[str, str]] = {}
    for entry in sorted(directory.iterdir(), key=lambda item: item.name):
        if not entry.name.endswith(MAP_FILE_SUFFIX):
            continue
        view_name = entry.name[: -len(MAP_FILE_SUFFIX)]
        views[view_name] = {"map": entry.read_text(encoding="utf-8")}

        reduce_file = directory.joinpath(view_name + REDUCE_FILE_SUFFIX)
        if reduce_file.is_file():
            views[view_name]["reduce"] = reduce_file.read_text(encoding="utf-8").strip()
    return views


class CouchDBMigration:
    """Creates, updates and tears down one database and its index bundle."""

    def __init__(
        self,
        database: CouchDBDatabase,
        design_doc: str,
        views_directory: Traversable | Path | str | None = None,
    ) -> None:
        self._database = database
        self._design_doc = design_doc
        if views_directory is None:
            self._views_directory: Traversable | Path = packaged_views()
        elif isinstance(views_directory, str):
            self._views_directory = Path(views_directory)
        else:
            self._views_directory = views_directory

    @classmethod
    def from_settings(cls, connector: CouchDBConnector, settings: MigrationSettings) -> CouchDBMigration:
        return cls(
            database=connector.database(settings.database),
            design_doc=settings.design_doc,
            views_directory=settings.views_directory,
        )

    @property
    def design_doc_id(self) -> str:
        return f"_design/{self._design_doc}"

    # -- state --------------------------------------------------------------

    def database_exists(self) -> bool:
        try:
            response = self._database.send("", Method.GET)
        except BackendRequestError as exc:
            if exc.is_not_found:
                return False
            raise
        return response.status_code == 200

    def fetch_index_bundle(self) -> dict[str, Any] | None:
        return self._database.get_document(self.design_doc_id)

    def state(self) -> DatabaseState:
        if not self.database_exists():
            return DatabaseState.ABSENT
        if self.fetch_index_bundle() is None:
            return DatabaseState.PRESENT_NO_INDEX_BUNDLE
        return DatabaseState.PRESENT_WITH_INDEX_BUNDLE

    # -- database -----------------------------------------------------------

    def ensure_database(self, update_indexes: bool = False) -> None:
        """Create the database when absent, else optionally redeploy the bundle."""
        if not self.database_exists():
            self.create_database(update_indexes)
        elif update_indexes:
            self.deploy_index_bundle()

    def create_database(self, update_indexes: bool = False) -> None:
        name = self._database.name
        try:
            response = self._database.send("", Method.PUT)
        except BackendRequestError as exc:
            msg = f"Failed to create couchdb database {name}"
            raise MigrationFailed(msg, exc.reason) from exc
        if response.status_code != 201:
            msg = f"Failed to create couchdb database {name}. Received status {response.status_code}"
            raise MigrationFailed(msg, response.body.decode(errors="replace"))
        log.info("couchdb_database_created", database=name)

        if update_indexes:
            self.deploy_index_bundle()

    def delete_database(self) -> None:
        """Drop the database. An already absent database is not an error."""
        name = self._database.name
        try:
            response = self._database.send("", Method.DELETE)
        except BackendRequestError as exc:
            if exc.is_not_found:
                log.info("couchdb_database_already_absent", database=name)
                return
            msg = f"Failed to delete couchdb database {name}"
            raise MigrationFailed(msg, exc.reason) from exc
        if response.status_code not in (200, 202):
            msg = f"Failed to delete couchdb database {name}. Received status {response.status_code}"
            raise MigrationFailed(msg, response.body.decode(errors="replace"))
        log.info("couchdb_database_deleted", database=name)

    # -- index bundle -------------------------------------------------------

    def deploy_index_bundle(self) -> dict[str, dict[str, str]]:
        """Create or update the design document from the view sources.

        Returns the deployed ``views`` section.
        """
        views = load_view_definitions(self._views_directory)

        try:
            current = self.fetch_index_bundle()
        except BackendRequestError as exc:
            msg = "Failed to read couchdb design-doc"
            raise MigrationFailed(msg, exc.reason) from exc

        payload: dict[str, Any] = dict(current) if current else {"language": "javascript"}
        payload["views"] = views

        try:
            self._database.request(self.design_doc_id, Method.PUT, payload)
        except BackendRequestError as exc:
            msg = "Failed to create/update couchdb design-doc"
            raise MigrationFailed(msg, exc.reason) from exc

        log.info(
            "couchdb_design_doc_deployed",
            database=self._database.name,
            design_doc=self._design_doc,
            views=sorted(views),
        )
        return views

    def delete_index_bundle(self) -> None:
        """Delete the design document. A missing design document is not an error."""
        try:
            current = self.fetch_index_bundle()
            if current is None:
                return
            self._database.request(self.design_doc_id, Method.DELETE, params={"rev": current["_rev"]})
        except BackendRequestError as exc:
            if exc.is_not_found:
                return
            msg = "Failed to delete couchdb design-doc"
            raise MigrationFailed(msg, exc.reason) from exc
        log.info("couchdb_design_doc_deleted", database=self._database.name, design_doc=self._design_doc)
