"""Unit tests for domain models and the event type registry.

No external dependencies required.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from couchdb_event_store.domain.errors import MissingTypeDiscriminator, UnknownEventType
from couchdb_event_store.domain.models import (
    TYPE_KEY,
    EventStream,
    FeedCursor,
    StreamCursor,
    StructureVersion,
    StructureVersionList,
)
from couchdb_event_store.domain.registry import EventTypeRegistry
from tests.fixtures.events import AccountCreated, AccountRenamed, make_event, make_registry


class TestDomainEvent:
    def test_document_id_derived_from_aggregate_and_sequence(self) -> None:
        event = make_event(aggregate_root_identifier="account-1", seq_number=7)
        assert event.document_id == "account-1-7"

    def test_to_document_carries_discriminator(self) -> None:
        document = make_event(email="a@example.com").to_document()
        assert document[TYPE_KEY] == "account.created"
        assert document["email"] == "a@example.com"
        assert "revision" not in document

    def test_from_document_keeps_revision(self) -> None:
        document = {**make_event().to_document(), "_id": "x-1", "_rev": "1-abc"}
        event = AccountCreated.from_document(document)
        assert event.revision == "1-abc"

    @pytest.mark.parametrize("seq_number", [0, -1])
    def test_seq_number_must_be_positive(self, seq_number) -> None:
        with pytest.raises(ValidationError):
            make_event(seq_number=seq_number)

    def test_blank_aggregate_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_event(aggregate_root_identifier="")

    def test_events_are_immutable(self) -> None:
        event = make_event()
        with pytest.raises(ValidationError):
            event.seq_number = 2  # type: ignore[misc]


class TestRegistry:
    def test_decode_selects_concrete_type(self) -> None:
        registry = make_registry()
        renamed = AccountRenamed(aggregate_root_identifier="a", seq_number=2, name="bob")
        decoded = registry.decode({**renamed.to_document(), "_id": "a-2", "_rev": "1-x"})
        assert isinstance(decoded, AccountRenamed)
        assert decoded.name == "bob"

    def test_missing_discriminator(self) -> None:
        document = make_event().to_document()
        del document[TYPE_KEY]
        with pytest.raises(MissingTypeDiscriminator):
            make_registry().decode(document)

    def test_unknown_discriminator(self) -> None:
        document = {**make_event().to_document(), TYPE_KEY: "os.system"}
        with pytest.raises(UnknownEventType) as exc_info:
            make_registry().decode(document)
        assert exc_info.value.type_name == "os.system"

    def test_duplicate_names_rejected(self) -> None:
        class Impostor(AccountCreated):
            pass

        with pytest.raises(ValueError, match="Duplicate"):
            EventTypeRegistry([AccountCreated, Impostor])

    def test_type_names_sorted(self) -> None:
        assert make_registry().type_names == ["account.created", "account.renamed"]
        assert "account.created" in make_registry()


class TestStructureVersionList:
    def test_with_version_appends_and_keeps_revision(self) -> None:
        versions = StructureVersionList(identifier="users", revision="2-a")
        updated = versions.with_version(StructureVersion(version="20240101"))
        assert [v.version for v in updated.versions] == ["20240101"]
        assert updated.revision == "2-a"
        assert versions.versions == ()

    def test_contains_compares_as_text(self) -> None:
        versions = StructureVersionList(identifier="users", versions=(StructureVersion(version=1),))
        assert versions.contains("1")
        assert not versions.contains(2)

    def test_extra_metadata_kept(self) -> None:
        version = StructureVersion.model_validate({"version": "3", "author": "ops"})
        assert version.model_dump()["author"] == "ops"

    def test_latest(self) -> None:
        assert StructureVersionList(identifier="x").latest is None


class TestCursors:
    def test_fresh_stream_cursor_not_exhausted(self) -> None:
        assert not StreamCursor().exhausted

    def test_stream_cursor_exhausted_at_end(self) -> None:
        cursor = StreamCursor(identifiers=(("a", 1),), position=1, first=False)
        assert cursor.exhausted

    def test_cursor_is_frozen(self) -> None:
        with pytest.raises(ValidationError):
            FeedCursor().last_key = "x"  # type: ignore[misc]


class TestEventStream:
    def test_seq_numbers(self) -> None:
        events = (make_event(seq_number=1), make_event(seq_number=2))
        stream = EventStream(identifier="a", events=events)
        assert stream.seq_numbers == [1, 2]
        assert stream.last_seq_number == 2
        assert EventStream(identifier="b").last_seq_number == 0
