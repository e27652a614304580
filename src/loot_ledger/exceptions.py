"""
Exception taxonomy for loot-ledger.

Only genuine failures are raised. A creature without a drop table, an item
name that cannot be resolved, or a creature id that cannot be looked up are
all valid outcomes and are reported through return values instead.
"""

from __future__ import annotations


class LootLedgerError(Exception):
    """Base class for all loot-ledger errors."""


class WikiFetchError(LootLedgerError):
    """Raised when a wiki request fails (non-2xx status, I/O error or timeout).

    Attributes:
        url: The URL that was requested.
        status_code: HTTP status code, or None for transport-level failures.
    """

    def __init__(self, message: str, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ItemIndexError(LootLedgerError):
    """Raised when the static item name index cannot be parsed."""


class CatalogOwnerClosedError(LootLedgerError):
    """Raised when work is handed to an item catalog owner that was shut down."""


__all__ = [
    "LootLedgerError",
    "WikiFetchError",
    "ItemIndexError",
    "CatalogOwnerClosedError",
]
