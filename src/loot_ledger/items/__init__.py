"""
Item name resolution: the static name index, the item catalog and the
single-thread context catalog calls run on.
"""

from .catalog import CatalogItem, ItemCatalog, StaticItemCatalog, WikiPricesCatalog
from .index import ItemIdIndex, get_index, load_index, pick_best_id, reset_index
from .owner import CatalogOwner
from .resolver import ItemNameResolver

__all__ = [
    "CatalogItem",
    "ItemCatalog",
    "StaticItemCatalog",
    "WikiPricesCatalog",
    "ItemIdIndex",
    "get_index",
    "load_index",
    "pick_best_id",
    "reset_index",
    "CatalogOwner",
    "ItemNameResolver",
]
