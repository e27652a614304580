"""
Single-flight cache for NPC drop records.

Every lookup maps to a cache key: the NPC id when it is known, otherwise the
normalized name plus level. Records are stored under the key of the lookup
that fetched them and nothing else. Concurrent lookups for the same key share one
underlying fetch, and successful records are kept for the rest of the
session so repeated lookups never touch the network.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from .models import NpcDropData

logger = logging.getLogger("loot-ledger.drops.cache")

WHITESPACE_RE = re.compile(r"\s+")


class DropFetcher(Protocol):
    """What the cache needs from the wiki client."""

    async def fetch(self, npc_id: int, name: str, level: int) -> NpcDropData | None:
        ...

    async def search_names(self, query: str) -> list[str]:
        ...


def normalize_npc_name(name: str) -> str:
    """Lowercase, treat underscores and non-breaking spaces as spaces, collapse whitespace."""
    text = (name or "").replace("_", " ").replace("\u00a0", " ")
    return WHITESPACE_RE.sub(" ", text).strip().lower()


def cache_key(npc_id: int, name: str, level: int) -> str:
    """Return the cache key for a lookup.

    Example:
        >>> cache_key(2042, "", 0)
        'npc:2042'
        >>> cache_key(0, "King  Black_Dragon", 276)
        'name:king black dragon|276'
    """
    if npc_id > 0:
        return f"npc:{npc_id}"
    return f"name:{normalize_npc_name(name)}|{max(level, 0)}"


@dataclass
class DropCacheStats:
    """Statistics for the drop cache.

    Attributes:
        total_entries: Number of keys holding a record.
        hit_count: Lookups answered from stored records.
        miss_count: Lookups that started a new fetch.
        shared_count: Lookups that joined a fetch already in flight.
        inflight_count: Fetches currently running.
    """
    total_entries: int
    hit_count: int
    miss_count: int
    shared_count: int
    inflight_count: int


class DropCache:
    """Session cache with per-key single-flight fetching.

    Records without drops are never stored. Id-based lookups that found no
    drop table are remembered as missing for the session; name-based ones
    are not, so a later search can try the name again.

    Usage:
        cache = DropCache(wiki_client)
        record = await cache.get(0, "Zulrah", 725)
    """

    def __init__(self, fetcher: DropFetcher) -> None:
        self._fetcher = fetcher
        self._records: dict[str, NpcDropData] = {}
        self._inflight: dict[str, asyncio.Task[NpcDropData | None]] = {}
        self._missing: set[str] = set()
        self._hit_count = 0
        self._miss_count = 0
        self._shared_count = 0

    async def get(self, npc_id: int, name: str, level: int) -> NpcDropData | None:
        """Return the drop record for an NPC, fetching it at most once per key.

        Args:
            npc_id: NPC id, or 0 when unknown.
            name: NPC name, or "" when unknown.
            level: Combat level, or 0 when unknown.

        Returns:
            The record, or None when the NPC has no drop table.

        Raises:
            WikiFetchError: If the shared fetch failed. Every waiter on the
                key receives the same error and nothing is cached.
        """
        key = cache_key(npc_id, name, level)

        record = self._records.get(key)
        if record is not None:
            self._hit_count += 1
            logger.debug(f"Drop cache: hit for '{key}'")
            return record

        if key in self._missing:
            self._hit_count += 1
            logger.debug(f"Drop cache: known missing '{key}'")
            return None

        task = self._inflight.get(key)
        if task is None:
            self._miss_count += 1
            logger.debug(f"Drop cache: miss for '{key}', fetching")
            task = asyncio.ensure_future(self._load(key, npc_id, name, level))
            task.add_done_callback(_consume_failure)
            self._inflight[key] = task
        else:
            self._shared_count += 1
            logger.debug(f"Drop cache: joining in-flight fetch for '{key}'")

        # A cancelled waiter must not cancel the fetch other waiters share
        return await asyncio.shield(task)

    async def _load(self, key: str, npc_id: int, name: str, level: int) -> NpcDropData | None:
        try:
            record = await self._fetcher.fetch(npc_id, name, level)
            if record is None or not record.has_drops:
                if npc_id > 0:
                    self._missing.add(key)
                return None

            # Stored under the request key only; record.npc_id is a wiki page
            # id and does not share a namespace with game NPC ids
            self._records[key] = record
            logger.debug(
                f"Drop cache: stored '{record.name}' (page {record.npc_id}) under '{key}'"
            )
            return record
        finally:
            # cancel_pending may have handed the key to a newer fetch already
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    async def search_names(self, query: str) -> list[str]:
        """Search NPC names on the wiki; results are not cached."""
        return await self._fetcher.search_names(query)

    def peek(self, npc_id: int, name: str, level: int) -> NpcDropData | None:
        """Return a stored record without fetching."""
        return self._records.get(cache_key(npc_id, name, level))

    def invalidate(self, npc_id: int, name: str = "", level: int = 0) -> bool:
        """Forget the stored record (or missing marker) for one lookup.

        Returns:
            True if anything was removed.
        """
        key = cache_key(npc_id, name, level)
        removed = self._records.pop(key, None) is not None
        if key in self._missing:
            self._missing.discard(key)
            removed = True
        return removed

    def clear(self) -> None:
        """Forget every stored record and missing marker."""
        count = len(self._records)
        self._records.clear()
        self._missing.clear()
        if count > 0:
            logger.debug(f"Drop cache: cleared {count} entries")

    def cancel_pending(self) -> int:
        """Cancel every fetch in flight; their waiters receive CancelledError.

        Returns:
            Number of fetches cancelled.
        """
        pending = [task for task in self._inflight.values() if not task.done()]
        for task in pending:
            task.cancel()
        # Tasks cancelled before their first step never reach their cleanup
        self._inflight.clear()
        return len(pending)

    def get_stats(self) -> DropCacheStats:
        """Return cache statistics."""
        return DropCacheStats(
            total_entries=len(self._records),
            hit_count=self._hit_count,
            miss_count=self._miss_count,
            shared_count=self._shared_count,
            inflight_count=len(self._inflight),
        )

    @property
    def size(self) -> int:
        """Return the number of keys holding a record."""
        return len(self._records)


def _consume_failure(task: asyncio.Task) -> None:
    """Retrieve a fetch failure so it is not reported as unhandled."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Drop cache: fetch failed: {error}")


__all__ = [
    "DropCache",
    "DropCacheStats",
    "DropFetcher",
    "cache_key",
    "normalize_npc_name",
]
