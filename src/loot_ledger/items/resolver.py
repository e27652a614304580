"""
Resolve item display names to canonical item ids.
"""

from __future__ import annotations

import logging

from ..drops.models import DropTableSection, NpcDropData
from .catalog import ItemCatalog
from .index import ItemIdIndex, get_index, pick_best_id

logger = logging.getLogger("loot-ledger.items.resolver")

NON_ITEMS = {"nothing", "unknown"}


class ItemNameResolver:
    """Resolves wiki item names to canonical item ids.

    The static name index is consulted first since it also covers untradeable
    items. When it has no entry, the catalog's tradeable-item search is used
    and only an exact (case-insensitive) name match is accepted.

    All methods must run on the catalog owner thread.

    Args:
        catalog: External item catalog.
        index: Name index to use. Defaults to the process-wide index.
    """

    def __init__(self, catalog: ItemCatalog, index: ItemIdIndex | None = None) -> None:
        self.catalog = catalog
        self._index = index

    @property
    def index(self) -> ItemIdIndex:
        return self._index if self._index is not None else get_index()

    def resolve(self, name: str | None) -> int:
        """Resolve an item name to its canonical id.

        Args:
            name: Item display name.

        Returns:
            The canonical item id, or 0 when the name is empty, a placeholder
            such as "Nothing", or unknown to both index and catalog.
        """
        if not name or not name.strip():
            return 0
        if name.strip().lower() in NON_ITEMS:
            return 0

        candidates = self.index.find_ids_flex(name)
        if candidates:
            best = pick_best_id(self.catalog, candidates)
            if best > 0:
                return self._canonicalize(best)

        try:
            results = self.catalog.search(name)
        except Exception as e:
            logger.warning(f"Item catalog search failed for '{name}': {e}")
            return 0

        wanted = name.strip().lower()
        for item in results:
            if item.name and item.name.lower() == wanted:
                return self._canonicalize(item.id)

        logger.debug(f"No item id found for '{name}'")
        return 0

    def _canonicalize(self, item_id: int) -> int:
        try:
            return self.catalog.canonicalize(item_id)
        except Exception as e:
            logger.debug(f"Could not canonicalize item {item_id}: {e}")
            return item_id

    def resolve_record(self, record: NpcDropData) -> NpcDropData:
        """Return a copy of the record with every item id resolved."""
        sections = [
            DropTableSection(
                header=section.header,
                items=[item.with_item_id(self.resolve(item.name)) for item in section.items],
            )
            for section in record.sections
        ]
        return record.model_copy(update={"sections": sections})


__all__ = ["ItemNameResolver"]
