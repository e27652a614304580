"""
Tests for the static item name index.
"""

import json

import pytest

from loot_ledger.exceptions import ItemIndexError
from loot_ledger.items import index as index_module
from loot_ledger.items.index import (
    ItemIdIndex,
    get_index,
    load_index,
    normalize_item_name,
    pick_best_id,
    to_hash_variant,
)


class TestNameHelpers:
    """Test key normalization helpers."""

    def test_normalize_item_name(self):
        """Names are lowercased, trimmed and lose non-breaking spaces."""
        assert normalize_item_name("  Abyssal\u00a0Whip ") == "abyssal whip"

    def test_hash_variant(self):
        """A trailing parenthetical becomes a hash suffix."""
        assert to_hash_variant("adamant dagger (p++)") == "adamant dagger#(p++)"
        assert to_hash_variant("clue scroll (elite)") == "clue scroll#(elite)"

    def test_hash_variant_unchanged(self):
        """Keys without a trailing group are returned as-is."""
        assert to_hash_variant("abyssal whip") == "abyssal whip"
        assert to_hash_variant("(p) dagger") == "(p) dagger"


class TestItemIdIndex:
    """Test lookups against the bundled index."""

    def test_bundled_index_loads(self, item_index):
        """The bundled index has entries."""
        assert len(item_index) > 0
        assert "Abyssal whip" in item_index
        assert "abyssal WHIP" in item_index
        assert 4151 not in item_index

    def test_exact_lookup(self, item_index):
        """Exact names return every candidate id."""
        assert item_index.find_ids_flex("Abyssal whip") == (4151, 4152)

    def test_hash_variant_lookup(self, item_index):
        """'Foo (bar)' finds an entry stored as 'Foo#(bar)'."""
        assert item_index.find_ids_flex("Adamant dagger (p++)") == (5676, 5677)

    def test_base_name_before_hash(self, item_index):
        """'Foo#bar' falls back to 'Foo'."""
        assert item_index.find_ids_flex("Dragon spear#Unpoisoned") == (1249, 1250)

    def test_parenthetical_stripped(self, item_index):
        """Unknown parenthetical qualifiers are dropped as a last resort."""
        assert item_index.find_ids_flex("Coins (dropped)") == (995, 617)

    def test_parenthetical_kept_when_indexed(self, item_index):
        """Names whose parenthetical is part of the key match exactly."""
        assert item_index.find_ids_flex("Clue scroll (elite)") == (12073,)

    def test_unknown_and_empty(self, item_index):
        """Unknown names give no candidates."""
        assert item_index.find_ids_flex("Mystery relic") == ()
        assert item_index.find_ids_flex("") == ()
        assert item_index.find_ids_flex(None) == ()

    def test_from_mapping_skips_empty_lists(self):
        """Entries without ids are not indexed."""
        idx = ItemIdIndex.from_mapping({"Coins": [995], "Ghost": []})
        assert len(idx) == 1
        assert idx.get("coins") == (995,)
        assert idx.get("ghost") == ()

    def test_from_mapping_rejects_bad_ids(self):
        """Non-integer ids are an index error."""
        with pytest.raises(ItemIndexError):
            ItemIdIndex.from_mapping({"Coins": ["lots"]})

    def test_from_file_rejects_non_object(self, tmp_path):
        """The file must hold a JSON object."""
        path = tmp_path / "items.json"
        path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
        with pytest.raises(ItemIndexError):
            ItemIdIndex.from_file(path)

    def test_from_file_rejects_invalid_json(self, tmp_path):
        """Malformed JSON is an index error."""
        path = tmp_path / "items.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ItemIndexError):
            ItemIdIndex.from_file(path)


class TestPickBestId:
    """Test candidate selection."""

    def test_prefers_canonical_id(self, catalog):
        """An id that is already canonical wins."""
        assert pick_best_id(catalog, (4152, 4151)) == 4151

    def test_canonicalizes_noted_only_candidates(self, catalog):
        """A noted id maps to its base item."""
        assert pick_best_id(catalog, (1212,)) == 1211

    def test_without_catalog(self):
        """Without a catalog the first candidate is used."""
        assert pick_best_id(None, (4152, 4151)) == 4152

    def test_no_candidates(self, catalog):
        """No candidates gives 0."""
        assert pick_best_id(catalog, ()) == 0

    def test_canonicalize_failure_falls_back(self):
        """A failing catalog falls back to the first candidate."""

        class BrokenCatalog:
            def canonicalize(self, item_id):
                raise RuntimeError("catalog offline")

        assert pick_best_id(BrokenCatalog(), (526, 527)) == 526


class TestProcessIndex:
    """Test the process-wide index lifecycle."""

    def test_load_once(self, fresh_index, tmp_path):
        """The first load is published and later loads return it."""
        first = tmp_path / "first.json"
        first.write_text(json.dumps({"Coins": [995]}), encoding="utf-8")
        second = tmp_path / "second.json"
        second.write_text(json.dumps({"Bones": [526]}), encoding="utf-8")

        loaded = load_index(first)
        assert load_index(second) is loaded
        assert get_index() is loaded
        assert loaded.find_ids_flex("Coins") == (995,)

    def test_missing_file_gives_empty_index(self, fresh_index, tmp_path):
        """A missing index file degrades to an empty index."""
        loaded = load_index(tmp_path / "missing.json")
        assert len(loaded) == 0

    def test_invalid_file_raises(self, fresh_index, tmp_path):
        """A corrupt index is reported and nothing is published."""
        path = tmp_path / "broken.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ItemIndexError):
            load_index(path)
        assert index_module._index is None

    def test_get_index_loads_default(self, fresh_index):
        """get_index loads the bundled index on first use."""
        assert "Zulrah's scales" in get_index()
