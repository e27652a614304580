"""
Service facade wiring the drop lookup core together.
"""

from __future__ import annotations

import logging

import httpx

from .config import LootLedgerSettings
from .drops.cache import DropCache
from .drops.listing import flatten_drops
from .drops.models import DropItem, NpcDropData
from .drops.wiki import WikiPageClient
from .exceptions import WikiFetchError
from .items.catalog import ItemCatalog, StaticItemCatalog, WikiPricesCatalog
from .items.index import ItemIdIndex, load_index
from .items.owner import CatalogOwner
from .items.resolver import ItemNameResolver
from .search import NpcSearchService

logger = logging.getLogger("loot-ledger.service")


class LootLedgerService:
    """Owns every component of the drop lookup core for one session.

    Use :meth:`create` to build a fully initialized service and
    :meth:`aclose` to tear it down.
    """

    def __init__(
        self,
        settings: LootLedgerSettings,
        catalog: ItemCatalog,
        index: ItemIdIndex | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.owner = CatalogOwner()
        self.resolver = ItemNameResolver(catalog, index=index)
        self.wiki = WikiPageClient(settings, self.resolver, self.owner, client=client)
        self.cache = DropCache(self.wiki)
        self.searcher = NpcSearchService(self.cache, candidate_limit=settings.search_candidate_limit)

    @classmethod
    async def create(
        cls,
        settings: LootLedgerSettings | None = None,
        catalog: ItemCatalog | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> LootLedgerService:
        """Load the item index and catalog, then build the service.

        When no catalog is given, the tradeable item mapping is downloaded.
        If that fails the service starts with an empty catalog, so only
        names present in the static index resolve.

        Args:
            settings: Settings to use. Defaults to the environment.
            catalog: Item catalog to use instead of the downloaded one.
            client: Shared HTTP client. When omitted the wiki client owns one.

        Returns:
            The ready service.
        """
        settings = settings or LootLedgerSettings.from_env()
        index = load_index(settings.items_index_path)

        if catalog is None:
            try:
                if client is not None:
                    catalog = await WikiPricesCatalog.fetch(client, settings, index=index)
                else:
                    async with httpx.AsyncClient(timeout=settings.http_timeout) as mapping_client:
                        catalog = await WikiPricesCatalog.fetch(mapping_client, settings, index=index)
            except WikiFetchError as e:
                logger.warning(f"Item catalog unavailable, using the static index only: {e}")
                catalog = StaticItemCatalog()

        return cls(settings, catalog, index=index, client=client)

    async def get_record(self, npc_id: int = 0, name: str = "", level: int = 0) -> NpcDropData | None:
        """Return the cached or freshly fetched record for an NPC."""
        return await self.cache.get(npc_id, name, level)

    async def get_drops(self, npc_id: int = 0, name: str = "", level: int = 0) -> list[DropItem]:
        """Return the filtered, deduplicated and ordered drop list for an NPC.

        Returns:
            Resolved drop items; empty when the NPC has no drop table.
        """
        record = await self.get_record(npc_id, name, level)
        if record is None:
            return []
        return flatten_drops(record, self.settings)

    async def search(self, query: str) -> list[NpcDropData]:
        """Fuzzy NPC search, best match first."""
        return await self.searcher.search(query)

    async def search_names(self, query: str) -> list[str]:
        """Wiki page titles matching a query."""
        return await self.cache.search_names(query)

    async def aclose(self) -> None:
        """Cancel in-flight fetches, stop the catalog owner and close HTTP."""
        cancelled = self.cache.cancel_pending()
        if cancelled:
            logger.debug(f"Cancelled {cancelled} in-flight fetches")
        self.owner.shutdown()
        await self.wiki.aclose()


__all__ = ["LootLedgerService"]
