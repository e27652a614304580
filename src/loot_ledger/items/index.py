"""
Static item name -> item ids index.

The index is a JSON object mapping item display names to one or more item
ids (``{"Abyssal whip": [4151, 4152]}``). Wiki item names are frequently
decorated with a disambiguator, either as ``Foo (Bar)`` or as ``Foo#Bar``,
so lookups try several key variants before giving up.

The index is process-wide state: it is loaded once by :func:`load_index`,
published as an immutable mapping, and only replaced after an explicit
:func:`reset_index`. Readers do not lock.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from ..exceptions import ItemIndexError

if TYPE_CHECKING:
    from .catalog import ItemCatalog

logger = logging.getLogger("loot-ledger.items.index")

DEFAULT_INDEX_PATH = Path(__file__).resolve().parent.parent / "data" / "items.json"

PAREN_GROUP_RE = re.compile(r"\s*\([^)]*\)")


def normalize_item_name(name: str) -> str:
    """Lowercase, turn non-breaking spaces into spaces and trim."""
    return name.lower().replace("\u00a0", " ").strip()


def to_hash_variant(key: str) -> str:
    """Rewrite ``"foo (bar)"`` as ``"foo#(bar)"``.

    Keys that do not end in a parenthetical group (or start with one) are
    returned unchanged.

    Example:
        >>> to_hash_variant("adamant dagger (p++)")
        'adamant dagger#(p++)'
    """
    open_at = key.find("(")
    if open_at > 0 and key.endswith(")"):
        base = key[:open_at].strip()
        return f"{base}#{key[open_at:]}".strip()
    return key


class ItemIdIndex:
    """Immutable lookup table from normalized item name to candidate ids."""

    def __init__(self, entries: Mapping[str, tuple[int, ...]] | None = None) -> None:
        self._entries: Mapping[str, tuple[int, ...]] = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ItemIdIndex:
        """Build an index from a raw ``{display name: [ids]}`` mapping.

        Keys are normalized; entries without ids are skipped.

        Raises:
            ItemIndexError: If an id list contains something that is not an int.
        """
        entries: dict[str, tuple[int, ...]] = {}
        for name, ids in raw.items():
            if not ids:
                continue
            try:
                entries[normalize_item_name(name)] = tuple(int(i) for i in ids)
            except (TypeError, ValueError) as e:
                raise ItemIndexError(f"Invalid id list for item '{name}': {e}") from e
        return cls(entries)

    @classmethod
    def from_file(cls, path: Path) -> ItemIdIndex:
        """Load an index from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ItemIndexError: If the file is not a JSON object of id lists.
        """
        with open(path, "r", encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError as e:
                raise ItemIndexError(f"Invalid JSON in item index {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ItemIndexError(
                f"Item index {path} must be a JSON object, got {type(raw).__name__}"
            )
        return cls.from_mapping(raw)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_item_name(name) in self._entries

    def get(self, key: str) -> tuple[int, ...]:
        """Exact lookup of an already-normalized key."""
        return self._entries.get(key, ())

    def id_lists(self) -> Iterable[tuple[int, ...]]:
        """Return the candidate id tuples of every entry."""
        return self._entries.values()

    def find_ids_flex(self, item_name: str | None) -> tuple[int, ...]:
        """Return candidate ids for an item name, trying several key variants.

        Order: exact key, ``foo#(bar)`` hash variant, base name before ``#``,
        then the key with all parenthetical groups removed.

        Args:
            item_name: Item display name as scraped from the wiki.

        Returns:
            Candidate ids in index order, or an empty tuple.
        """
        if not item_name:
            return ()
        key = normalize_item_name(item_name)

        ids = self._entries.get(key)
        if ids:
            return ids

        hash_variant = to_hash_variant(key)
        if hash_variant != key:
            ids = self._entries.get(hash_variant)
            if ids:
                return ids

        hash_at = key.find("#")
        if hash_at > 0:
            ids = self._entries.get(key[:hash_at].strip())
            if ids:
                return ids

        stripped = PAREN_GROUP_RE.sub("", key).strip()
        if stripped != key:
            ids = self._entries.get(stripped)
            if ids:
                return ids

        return ()


def pick_best_id(catalog: ItemCatalog | None, candidates: tuple[int, ...] | list[int]) -> int:
    """Pick the most suitable id from a candidate set.

    Prefers an id that is already canonical (not a noted or placeholder
    variant). Otherwise returns the canonical form of the first candidate
    that could be canonicalized, and finally the first candidate verbatim.

    Args:
        catalog: Item catalog used for canonicalization, or None.
        candidates: Candidate ids from the index.

    Returns:
        The chosen id, or 0 when there are no candidates.
    """
    if not candidates:
        return 0
    fallback = candidates[0]
    if catalog is None:
        return fallback

    first_canonical = 0
    for item_id in candidates:
        try:
            canonical = catalog.canonicalize(item_id)
        except Exception as e:
            logger.debug(f"Could not canonicalize item {item_id}: {e}")
            continue
        if first_canonical == 0:
            first_canonical = canonical
        if canonical == item_id:
            return item_id

    return first_canonical if first_canonical != 0 else fallback


# ----------------------------------------------------------------------
# Process-wide index
# ----------------------------------------------------------------------

_index: ItemIdIndex | None = None
_load_lock = threading.Lock()


def load_index(path: Path | str | None = None) -> ItemIdIndex:
    """Load the process-wide index once and return it.

    Subsequent calls return the already-published index until
    :func:`reset_index` is called. A missing file publishes an empty index
    so item resolution degrades to the catalog search.

    Args:
        path: JSON file to load. Defaults to the bundled ``data/items.json``,
            a sample until ``scripts/build_item_index.py`` regenerates it.

    Returns:
        The published index.

    Raises:
        ItemIndexError: If the file exists but cannot be parsed.
    """
    global _index
    with _load_lock:
        if _index is not None:
            return _index

        index_path = Path(path) if path is not None else DEFAULT_INDEX_PATH
        try:
            loaded = ItemIdIndex.from_file(index_path)
        except FileNotFoundError:
            logger.warning(f"Item index not found at {index_path}, using an empty index")
            loaded = ItemIdIndex()
        except ItemIndexError as e:
            logger.error(f"Failed to load item index: {e}")
            raise

        _index = loaded
        logger.info(f"Loaded {len(loaded)} item-name keys from {index_path.name}")
        return _index


def get_index() -> ItemIdIndex:
    """Return the published index, loading the default one on first use."""
    if _index is None:
        return load_index()
    return _index


def reset_index() -> None:
    """Forget the published index so the next load starts fresh."""
    global _index
    with _load_lock:
        _index = None


__all__ = [
    "ItemIdIndex",
    "normalize_item_name",
    "to_hash_variant",
    "pick_best_id",
    "load_index",
    "get_index",
    "reset_index",
    "DEFAULT_INDEX_PATH",
]
