"""
Item catalog collaborators.

The catalog answers two questions the static index cannot: what the
canonical id of an item is (noted and placeholder variants collapse onto
their base item) and which tradeable items match a free-text name. Catalog
calls are only made from the catalog owner thread, see
:mod:`loot_ledger.items.owner`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import WikiFetchError

if TYPE_CHECKING:
    from ..config import LootLedgerSettings
    from .index import ItemIdIndex

logger = logging.getLogger("loot-ledger.items.catalog")


class CatalogItem(BaseModel):
    """An item known to the catalog."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., gt=0, description="Item id")
    name: str = Field(..., description="Item display name")
    tradeable: bool = Field(default=True, description="Whether the item can be traded")


@runtime_checkable
class ItemCatalog(Protocol):
    """Interface of the external item catalog."""

    def canonicalize(self, item_id: int) -> int:
        """Return the base id for noted/placeholder variants, else the id itself."""
        ...

    def search(self, name: str) -> list[CatalogItem]:
        """Return tradeable items whose name matches the query."""
        ...

    def get_name(self, item_id: int) -> str | None:
        """Return the display name of an item, or None when unknown."""
        ...


class StaticItemCatalog:
    """In-memory item catalog.

    Args:
        items: Known items.
        noted: Mapping of noted/placeholder ids to their base item id.
    """

    def __init__(
        self,
        items: Iterable[CatalogItem] = (),
        noted: Mapping[int, int] | None = None,
    ) -> None:
        self._items: dict[int, CatalogItem] = {item.id: item for item in items}
        self._noted: dict[int, int] = dict(noted or {})

    def __len__(self) -> int:
        return len(self._items)

    def canonicalize(self, item_id: int) -> int:
        return self._noted.get(item_id, item_id)

    def search(self, name: str) -> list[CatalogItem]:
        """Case-insensitive substring search over tradeable items, exact matches first."""
        needle = name.strip().lower()
        if not needle:
            return []
        matches = [
            item for item in self._items.values()
            if item.tradeable and needle in item.name.lower()
        ]
        matches.sort(key=lambda item: (item.name.lower() != needle, item.id))
        return matches

    def get_name(self, item_id: int) -> str | None:
        item = self._items.get(item_id)
        return item.name if item else None


class WikiPricesCatalog(StaticItemCatalog):
    """Catalog built from the wiki's real-time prices item mapping.

    The mapping lists tradeable items by their base id only. Noted ids are
    learned from the static index: when an entry lists a mapped base id
    followed by the id right after it, and that id is not in the mapping,
    it is the noted form and canonicalizes to the base id.
    """

    @classmethod
    def from_mapping(cls, payload: Any, index: ItemIdIndex | None = None) -> WikiPricesCatalog:
        """Build a catalog from the mapping endpoint's JSON payload.

        Entries without a positive id or a name are skipped.

        Args:
            payload: Decoded JSON of the mapping endpoint.
            index: Static name index used to learn noted ids.

        Raises:
            ValueError: If the payload is not a JSON list.
        """
        if not isinstance(payload, list):
            raise ValueError(f"Expected a JSON list of items, got {type(payload).__name__}")

        items: list[CatalogItem] = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            item_id = entry.get("id")
            name = entry.get("name")
            if not isinstance(item_id, int) or item_id <= 0 or not name:
                continue
            items.append(CatalogItem(id=item_id, name=str(name), tradeable=True))

        known = {item.id for item in items}
        noted: dict[int, int] = {}
        if index is not None:
            for ids in index.id_lists():
                for item_id in ids:
                    if item_id in known and item_id + 1 in ids and item_id + 1 not in known:
                        noted[item_id + 1] = item_id
        return cls(items, noted)

    @classmethod
    async def fetch(
        cls,
        client: httpx.AsyncClient,
        settings: LootLedgerSettings,
        index: ItemIdIndex | None = None,
    ) -> WikiPricesCatalog:
        """Download the item mapping and build the catalog.

        Args:
            client: HTTP client to use.
            settings: Provides the mapping URL, user agent and timeout.
            index: Static name index used to learn noted ids.

        Returns:
            The populated catalog.

        Raises:
            WikiFetchError: If the mapping cannot be downloaded or parsed.
        """
        url = settings.prices_mapping_url
        try:
            response = await client.get(
                url,
                headers={"User-Agent": settings.user_agent},
                timeout=settings.http_timeout,
            )
            response.raise_for_status()
            catalog = cls.from_mapping(response.json(), index=index)
        except httpx.HTTPStatusError as e:
            raise WikiFetchError(
                f"Item mapping returned HTTP {e.response.status_code}",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise WikiFetchError(f"Failed to download item mapping: {e}", url=url) from e
        except ValueError as e:
            raise WikiFetchError(f"Invalid item mapping payload: {e}", url=url) from e

        logger.info(f"Loaded {len(catalog)} tradeable items from the prices mapping")
        return catalog


__all__ = [
    "CatalogItem",
    "ItemCatalog",
    "StaticItemCatalog",
    "WikiPricesCatalog",
]
