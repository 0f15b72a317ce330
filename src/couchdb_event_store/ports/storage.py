"""Storage reader/writer ports.

Every reader pages through its data with an explicit cursor value:
``page, cursor = reader.read_all(cursor)``. An empty page means the scan is
exhausted.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, Protocol, TypeVar

CursorT = TypeVar("CursorT")
ItemT = TypeVar("ItemT")


class StorageReader(Protocol[CursorT]):
    """Protocol for single-item reads plus cursor paging."""

    def read(self, identifier: str) -> Any | None:
        """Return the item for ``identifier`` or None when it does not exist."""
        ...

    def read_all(self, cursor: CursorT | None = None) -> tuple[list[Any], CursorT]:
        """Return the next page and the cursor to resume from."""
        ...


class StorageWriter(Protocol):
    """Protocol for writers."""

    def write(self, item: Any) -> None: ...

    def delete(self, identifier: str) -> None: ...


def iterate(
    read_all: Callable[[CursorT | None], tuple[list[ItemT], CursorT]],
) -> Iterator[ItemT]:
    """Yield every item of a paged scan, threading the cursor until a page is empty."""
    cursor: CursorT | None = None
    while True:
        page, cursor = read_all(cursor)
        if not page:
            return
        yield from page
