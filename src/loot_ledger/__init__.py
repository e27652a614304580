"""
Loot Ledger - NPC drop tables from the wiki with resolved item ids, rarity
normalization, single-flight caching and fuzzy NPC search.
"""

from .config import LootLedgerSettings
from .drops import DropCache, DropItem, DropTableSection, NpcDropData, WikiPageClient
from .exceptions import LootLedgerError, WikiFetchError
from .items import ItemNameResolver
from .search import NpcSearchService, parse_query
from .service import LootLedgerService

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("loot-ledger")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "LootLedgerSettings",
    "LootLedgerService",
    "LootLedgerError",
    "WikiFetchError",
    "DropCache",
    "DropItem",
    "DropTableSection",
    "NpcDropData",
    "WikiPageClient",
    "ItemNameResolver",
    "NpcSearchService",
    "parse_query",
]
