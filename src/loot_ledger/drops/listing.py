"""
Turn resolved drop records into display-ready item lists.

Section filtering follows the wiki's shared-table naming: the rare drop
table, the gem drop table and the combined "rare and gem drop table" can be
hidden independently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from .models import DropItem, DropTableSection, NpcDropData

if TYPE_CHECKING:
    from ..config import LootLedgerSettings

RARE_AND_GEM_TABLE = "rare and gem drop table"
RARE_TABLE = "rare drop table"
GEM_TABLE = "gem drop table"


def filter_sections(
    sections: Iterable[DropTableSection],
    show_rare_drop_table: bool = True,
    show_gem_drop_table: bool = True,
) -> list[DropTableSection]:
    """Drop shared-table sections the user chose to hide.

    Args:
        sections: Sections of one NPC record.
        show_rare_drop_table: Keep sections headed "... rare drop table".
        show_gem_drop_table: Keep sections headed "... gem drop table".

    Returns:
        The kept sections in their original order.
    """
    kept: list[DropTableSection] = []
    for section in sections:
        header = (section.header or "").lower()
        if RARE_AND_GEM_TABLE in header:
            if show_rare_drop_table and show_gem_drop_table:
                kept.append(section)
            continue
        if not show_rare_drop_table and RARE_TABLE in header:
            continue
        if not show_gem_drop_table and GEM_TABLE in header:
            continue
        kept.append(section)
    return kept


def dedupe_and_sort(items: Iterable[DropItem], sort_by_rarity: bool = True) -> list[DropItem]:
    """Deduplicate drops by item id and order them.

    Items without a resolved id are discarded and the first occurrence of
    each id wins. With rarity sorting the list runs from most common to
    rarest (unknown rarities last), ties broken by item id; otherwise it is
    ordered by item id.

    Args:
        items: Drop items, typically flattened from several sections.
        sort_by_rarity: Order by rarity instead of by item id.

    Returns:
        A new list of unique, resolved items.
    """
    unique: dict[int, DropItem] = {}
    for item in items:
        if item is None or item.item_id <= 0:
            continue
        unique.setdefault(item.item_id, item)

    if sort_by_rarity:
        return sorted(unique.values(), key=lambda d: (d.rarity_value, d.item_id))
    return sorted(unique.values(), key=lambda d: d.item_id)


def flatten_drops(record: NpcDropData, settings: LootLedgerSettings) -> list[DropItem]:
    """Apply the section filters from settings and return the ordered drop list."""
    sections = filter_sections(
        record.sections,
        show_rare_drop_table=settings.show_rare_drop_table,
        show_gem_drop_table=settings.show_gem_drop_table,
    )
    items = [item for section in sections for item in section.items]
    return dedupe_and_sort(items, sort_by_rarity=settings.sort_drops_by_rarity)


__all__ = [
    "filter_sections",
    "dedupe_and_sort",
    "flatten_drops",
]
