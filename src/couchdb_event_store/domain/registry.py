"""Closed registry mapping stored ``@type`` discriminators to event classes.

Built once at startup; decoding an unregistered discriminator fails instead of
instantiating whatever class name a document happens to carry.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from couchdb_event_store.domain.errors import MissingTypeDiscriminator, UnknownEventType
from couchdb_event_store.domain.models import TYPE_KEY, DomainEvent


class EventTypeRegistry:
    """Immutable ``type_name -> DomainEvent subclass`` lookup."""

    def __init__(self, event_types: Iterable[type[DomainEvent]]) -> None:
        mapping: dict[str, type[DomainEvent]] = {}
        for event_type in event_types:
            name = event_type.type_name
            if name in mapping and mapping[name] is not event_type:
                msg = f"Duplicate event type name '{name}'"
                raise ValueError(msg)
            mapping[name] = event_type
        self._types: Mapping[str, type[DomainEvent]] = MappingProxyType(mapping)

    @property
    def type_names(self) -> list[str]:
        return sorted(self._types)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def resolve(self, type_name: str) -> type[DomainEvent]:
        try:
            return self._types[type_name]
        except KeyError:
            raise UnknownEventType(type_name) from None

    def decode(self, document: dict[str, Any]) -> DomainEvent:
        """Instantiate the concrete event a stored document describes."""
        type_name = document.get(TYPE_KEY)
        if not type_name:
            msg = f"Missing '{TYPE_KEY}' key within event data of document '{document.get('_id')}'"
            raise MissingTypeDiscriminator(msg)
        return self.resolve(type_name).from_document(document)
