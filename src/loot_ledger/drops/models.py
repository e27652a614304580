"""
Data models for NPC drop tables.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from . import rarity as rarity_rules


class DropItem(BaseModel):
    """A single lootable item as listed in a wiki drop table.

    Items are created during HTML parsing with ``item_id=0`` and receive
    their resolved id through :meth:`with_item_id`; nothing else about an
    item changes after parsing.

    Attributes:
        item_id: Canonical item id, 0 while unresolved or unresolvable.
        name: Item display name from the wiki.
        rarity: Raw rarity text from the wiki (e.g. "2 x 1/128").
    """
    model_config = ConfigDict(frozen=True)

    item_id: int = Field(default=0, ge=0, description="Canonical item id (0 = unresolved)")
    name: str = Field(..., description="Item display name")
    rarity: str = Field(default="", description="Raw rarity text")

    @property
    def one_over_rarity(self) -> str:
        """Rarity in normalized one-over form, e.g. "1/64" or "1/128–1/64"."""
        return rarity_rules.normalize(self.rarity)

    @property
    def rarity_value(self) -> float:
        """Numeric rarity used for sorting; unknown rarities are infinite."""
        return rarity_rules.sort_key(self.rarity)

    def with_item_id(self, item_id: int) -> DropItem:
        """Return a copy of this item carrying the resolved item id."""
        return self.model_copy(update={"item_id": item_id})


class DropTableSection(BaseModel):
    """One drop-table block on a wiki page (e.g. "Rare drop table")."""
    model_config = ConfigDict(frozen=True)

    header: str = Field(default="Drops", description="Heading above the table")
    items: list[DropItem] = Field(default_factory=list, description="Items in page order")


class NpcDropData(BaseModel):
    """Resolved drop data for one NPC.

    Attributes:
        npc_id: Wiki page id of the NPC, 0 when it could not be resolved.
        name: NPC display name.
        level: Combat level, 0 when unknown.
        sections: Drop table sections in page order.
    """
    model_config = ConfigDict(frozen=True)

    npc_id: int = Field(default=0, description="Wiki page id of the NPC")
    name: str = Field(..., description="NPC display name")
    level: int = Field(default=0, description="Combat level")
    sections: list[DropTableSection] = Field(default_factory=list, description="Drop table sections")

    @property
    def has_drops(self) -> bool:
        """True when at least one section lists at least one item."""
        return any(section.items for section in self.sections)

    def all_items(self) -> list[DropItem]:
        """Return every item across all sections in page order."""
        return [item for section in self.sections for item in section.items]


__all__ = [
    "DropItem",
    "DropTableSection",
    "NpcDropData",
]
