"""CouchDB connector: builds the HTTP transport and probes connection health.

The connector owns the transport shared by every store created from it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from couchdb_event_store.adapters.couchdb.database import CouchDBDatabase
from couchdb_event_store.adapters.couchdb.transport import HttpxTransport
from couchdb_event_store.domain.errors import BackendRequestError
from couchdb_event_store.domain.models import ConnectionState, Status

if TYPE_CHECKING:
    from couchdb_event_store.ports.transport import Transport
    from couchdb_event_store.settings import CouchDBSettings

log = structlog.get_logger(__name__)


def build_client(settings: CouchDBSettings, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the ``httpx.Client`` described by the connection settings.

    ``transport`` replaces the network transport, e.g. with ``httpx.MockTransport``.
    """
    auth: httpx.Auth | None = None
    if settings.username and settings.password:
        if settings.auth_type.lower() == "digest":
            auth = httpx.DigestAuth(settings.username, settings.password)
        else:
            auth = httpx.BasicAuth(settings.username, settings.password)

    return httpx.Client(
        base_url=settings.effective_base_uri,
        auth=auth,
        headers=settings.default_headers,
        timeout=settings.timeout_seconds,
        transport=transport,
    )


def build_transport(settings: CouchDBSettings, transport: httpx.BaseTransport | None = None) -> HttpxTransport:
    """Wrap ``build_client`` in the ``Transport`` port, applying ``default_query``."""
    return HttpxTransport(build_client(settings, transport), default_query=settings.default_query)


class CouchDBConnector:
    """Connection to one CouchDB server."""

    def __init__(self, settings: CouchDBSettings, transport: Transport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def settings(self) -> CouchDBSettings:
        return self._settings

    @property
    def is_connected(self) -> bool:
        return self._transport is not None

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            self._transport = build_transport(self._settings)
            log.info("couchdb_connected", base_uri=self._settings.effective_base_uri)
        return self._transport

    def database(self, name: str | None = None) -> CouchDBDatabase:
        """Request core for ``name``, or the connector's default database."""
        return CouchDBDatabase(self.transport, name or self._settings.database)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            log.info("couchdb_connection_closed")

    # -- health -------------------------------------------------------------

    def get_status(self) -> Status:
        """Probe the configured status path.

        Never raises: transport failures are reported as a failing status.
        """
        if self._settings.fake_status is not None:
            return Status(state=self._settings.fake_status, details={"message": "Fake status"})

        path = self._settings.status_test
        if not path:
            return Status(
                state=ConnectionState.UNKNOWN,
                details={"message": "No status_test path specified"},
            )

        verbose = self._settings.status_verbose
        try:
            response = self.transport.send("GET", path, {"Accept": "application/json"})
        except BackendRequestError as exc:
            info: dict[str, Any] = {"status_code": exc.status_code} if verbose else {}
            return Status(
                state=ConnectionState.FAILING,
                details={"message": f"GET failed: {path}", "headers": exc.headers, "info": info},
            )
        except Exception as exc:  # noqa: BLE001
            log.warning("couchdb_status_probe_failed", path=path, error=str(exc))
            return Status(
                state=ConnectionState.FAILING,
                details={"message": f'Error on "{path}": {exc}'},
            )

        info = {}
        if verbose:
            info = {
                "effective_uri": response.url,
                "transfer_time": response.elapsed,
                "status_code": response.status_code,
            }

        if 200 <= response.status_code < 300:
            details: dict[str, Any] = {"message": f"GET succeeded: {path}"}
            if info:
                details["info"] = info
            return Status(state=ConnectionState.WORKING, details=details)

        return Status(
            state=ConnectionState.FAILING,
            details={"message": f"GET failed: {path}", "headers": response.headers, "info": info},
        )
