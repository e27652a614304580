"""
NPC drop tables: models, rarity normalization, wiki scraping and caching.
"""

from .cache import DropCache, cache_key
from .listing import dedupe_and_sort, filter_sections, flatten_drops
from .models import DropItem, DropTableSection, NpcDropData
from .rarity import normalize, sort_key
from .wiki import WikiPageClient

__all__ = [
    "DropCache",
    "cache_key",
    "dedupe_and_sort",
    "filter_sections",
    "flatten_drops",
    "DropItem",
    "DropTableSection",
    "NpcDropData",
    "normalize",
    "sort_key",
    "WikiPageClient",
]
