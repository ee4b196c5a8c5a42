"""Tests for ReferenceResolver."""

from unittest.mock import MagicMock

import pytest

from character_transfer.host import CatalogRecord
from character_transfer.memory_host import MemoryCatalog
from character_transfer.records import LookupReference
from character_transfer.resolver import ReferenceResolver


@pytest.fixture
def resolver():
    catalog = MemoryCatalog({
        "T": [
            {"id": "G1", "name": "Foo"},
            {"id": "G2", "name": "Devil's Bargain"},
            {"id": "G3", "name": "Secret", "hidden": True},
        ],
    })
    return ReferenceResolver(catalog)


class TestResolve:
    """Tests for the resolution order."""

    def test_existing_id_wins(self, resolver):
        assert resolver.resolve("T", "Something Else", "G1") == "G1"

    def test_name_when_id_unknown(self, resolver):
        assert resolver.resolve("T", "Foo", "G9") == "G1"

    def test_name_without_id(self, resolver):
        assert resolver.resolve("T", "Foo", None) == "G1"

    def test_sanitized_scan(self, resolver):
        assert resolver.resolve("T", "devils bargain", None) == "G2"

    def test_hidden_rows_are_skipped(self, resolver):
        assert resolver.resolve("T", "Secret", None) is None

    def test_hidden_row_still_resolves_by_id(self, resolver):
        assert resolver.resolve("T", "Secret", "G3") == "G3"

    def test_passthrough_of_unknown_id(self, resolver):
        assert resolver.resolve("T", "Nothing", "G9") == "G9"

    def test_nothing_to_go_on(self, resolver):
        assert resolver.resolve("T", "Nothing", None) is None
        assert resolver.resolve("T", None, None) is None

    def test_unknown_table(self, resolver):
        assert resolver.resolve("Missing", "Foo", None) is None
        assert resolver.resolve(None, "Foo", "G1") == "G1"

    def test_resolve_reference_table_override(self, resolver):
        ref = LookupReference.create("Other", "", "Foo")
        assert resolver.resolve_reference(ref) is None
        assert resolver.resolve_reference(ref, "T") == "G1"
        assert resolver.resolve_reference(None, "T") is None

    def test_host_lookup_is_used_first(self):
        catalog = MagicMock()
        catalog.get_table.return_value = {}
        catalog.find_existing_item.return_value = CatalogRecord(id="H1", name="Foo")

        resolver = ReferenceResolver(catalog)

        assert resolver.resolve("T", "Foo", None) == "H1"
        catalog.find_existing_item.assert_called_once_with("T", "Foo")


class TestRecordNames:
    """Tests for record lookups by id."""

    def test_record_name(self, resolver):
        assert resolver.record_name("T", "G1") == "Foo"
        assert resolver.record_name("T", "G9") == ""
        assert resolver.record_name(None, "G1") == ""

    def test_id_exists(self, resolver):
        assert resolver.id_exists("T", "G1")
        assert not resolver.id_exists("T", "")
        assert not resolver.id_exists("Missing", "G1")

    def test_make_lookup_carries_name(self, resolver):
        ref = resolver.make_lookup("T", "G2")
        assert (ref.table_name, ref.id, ref.name) == ("T", "G2", "Devil's Bargain")

    def test_make_lookup_unknown_id(self, resolver):
        ref = resolver.make_lookup("T", "G9")
        assert ref.id == "G9"
        assert ref.name == ""
