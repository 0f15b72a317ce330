"""Backend operation builder.

Turns ``(identifier, method, body, params)`` into an ``Operation``: the
method, ``/<database>/<identifier>`` path, query string and JSON body that a
transport sends. Pure data transformation, no I/O, so URL and query shape
can be asserted without a server.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

import orjson

from couchdb_event_store.domain.errors import InvalidIdentifier, InvalidMethod

# Query parameters CouchDB parses as JSON values
JSON_QUERY_PARAMS = frozenset({"key", "keys", "startkey", "endkey", "start_key", "end_key"})

_REPEATED_SLASHES = re.compile(r"/{2,}")


class Method(enum.StrEnum):
    """HTTP methods a storage operation may use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, method: str | Method) -> Method:
        try:
            return cls(str(method).upper())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            msg = f"Invalid method {method!r} given. Expecting one of: {allowed}"
            raise InvalidMethod(msg) from None


@dataclass(frozen=True)
class Operation:
    """One request against CouchDB, ready to hand to a transport."""

    method: Method
    path: str
    params: tuple[tuple[str, str], ...] = ()
    body: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def query(self) -> str:
        return urlencode(self.params)

    @property
    def target(self) -> str:
        """Path plus query string, as sent on the wire."""
        return f"{self.path}?{self.query}" if self.params else self.path

    def encoded_body(self) -> bytes | None:
        return orjson.dumps(self.body) if self.body is not None else None


def encode_query_value(name: str, value: Any) -> str:
    """Render one query parameter value the way CouchDB expects it."""
    if name in JSON_QUERY_PARAMS:
        return orjson.dumps(value).decode()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_identifier(identifier: str) -> str:
    """Percent-encode a document id for use as one path segment.

    Ids starting with ``_`` address CouchDB endpoints (``_design/...``,
    ``_all_docs``, ``_local/...``) and keep their ``/`` separators.
    """
    if identifier.startswith("_"):
        return quote(identifier, safe="/")
    return quote(identifier, safe="")


def build_path(database: str, identifier: str = "") -> str:
    if not isinstance(database, str) or not database.strip():
        msg = f"Database name must be a non-blank string, got {database!r}"
        raise InvalidIdentifier(msg)
    if not isinstance(identifier, str):
        msg = f"Identifier must be a string, got {identifier!r}"
        raise InvalidIdentifier(msg)
    identifier = identifier.lstrip("/")
    path = f"/{database}/{encode_identifier(identifier)}" if identifier else f"/{database}"
    return _REPEATED_SLASHES.sub("/", path)


def build_operation(
    database: str,
    identifier: str,
    method: str | Method,
    body: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
) -> Operation:
    """Build an ``Operation``.

    A ``revision`` key in ``body`` travels as the ``rev`` query parameter and
    is dropped from the body sent on the wire. Neither argument is mutated.
    """
    parsed_method = Method.parse(method)
    query: dict[str, Any] = dict(params or {})
    payload = dict(body) if body else None

    if payload is not None and "revision" in payload:
        revision = payload.pop("revision")
        if revision is not None:
            query["rev"] = revision
        payload = payload or None

    headers = {"Accept": "application/json"}
    if payload is not None:
        headers["Content-Type"] = "application/json"

    return Operation(
        method=parsed_method,
        path=build_path(database, identifier),
        params=tuple((name, encode_query_value(name, value)) for name, value in query.items()),
        body=payload,
        headers=headers,
    )


def ensure_identifier(identifier: Any) -> str:
    """Validate a document identifier passed to a reader or writer."""
    if not isinstance(identifier, str) or not identifier.strip():
        msg = f"Identifier must be a non-blank string, got {identifier!r}"
        raise InvalidIdentifier(msg)
    return identifier
