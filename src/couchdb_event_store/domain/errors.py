"""Error taxonomy for the CouchDB event store.

Not-found on single-item reads is deliberately absent here: readers return
``None`` for it. Everything else a caller may need to branch on is typed.
"""

from __future__ import annotations

from typing import Any


class EventStoreError(Exception):
    """Base class for all errors raised by this package."""


class InvalidMethod(EventStoreError, ValueError):
    """Raised when an operation is built with an unsupported HTTP method."""


class InvalidIdentifier(EventStoreError, ValueError):
    """Raised for blank or non-string document/database identifiers."""


class MissingTypeDiscriminator(EventStoreError):
    """Raised when a stored document has no ``@type`` field to decode it by."""


class UnknownEventType(EventStoreError):
    """Raised when a document's ``@type`` is not in the event registry."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"No event type registered for '{type_name}'")


class InvalidBackendResponse(EventStoreError):
    """Raised when a response body does not have the expected shape."""

    def __init__(self, message: str, payload: Any = None) -> None:
        self.payload = payload
        super().__init__(f"{message}: {payload!r}")


class WriteFailed(EventStoreError):
    """Raised when a write is not acknowledged with both ``ok`` and ``rev``."""


class OperationNotPermitted(EventStoreError):
    """Raised for operations the store refuses by contract."""


class MigrationFailed(EventStoreError):
    """Raised when a database or design document lifecycle step fails."""

    def __init__(self, message: str, reason: str | None = None) -> None:
        self.reason = reason
        if reason:
            message = f"{message}. Reason: {reason}"
        super().__init__(message)


class BackendRequestError(EventStoreError):
    """Raised by a transport when CouchDB answers with an error status.

    Carries the CouchDB ``error``/``reason`` pair so callers can branch on
    ``not_found`` without re-parsing the body.
    """

    def __init__(
        self,
        status_code: int,
        error: str | None = None,
        reason: str | None = None,
        headers: dict[str, str] | None = None,
        body: bytes = b"",
    ) -> None:
        self.status_code = status_code
        self.error = error
        self.reason = reason
        self.headers = headers or {}
        self.body = body
        super().__init__(f"CouchDB responded {status_code}: {error or 'error'} ({reason or 'no reason'})")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.error == "not_found"


class ConcurrencyConflict(BackendRequestError):
    """Raised when CouchDB rejects a write because of a stale or duplicate revision."""
