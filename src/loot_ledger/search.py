"""
Fuzzy NPC search over wiki drop data.

Queries can name an NPC, give its id, or mix either with a combat level:
``"Zulrah"``, ``"2042"``, ``"Zulrah 725"``, ``"lvl 200 Vorkath"``,
``"2042 level 725"``. Name searches ask the wiki for candidate titles, fetch
the candidates concurrently through the drop cache, drop NPCs without drop
tables and rank the rest by edit distance to the query.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from .drops.cache import DropCache
from .drops.models import NpcDropData

logger = logging.getLogger("loot-ledger.search")

NAME_FETCH_LIMIT = 10

ID_ONLY_RE = re.compile(r"^\d+$")
ID_LEVEL_RE = re.compile(r"^(\d+)\s+(?:lvl|level)?\s*(\d+)$", re.IGNORECASE)
NAME_LEVEL_RE = re.compile(r"^(.*)\s+(?:lvl|level)\s*(\d+)$", re.IGNORECASE)
LEVEL_NAME_RE = re.compile(r"^(?:lvl|level)\s*(\d+)\s+(.*)$", re.IGNORECASE)
NAME_NUMBER_RE = re.compile(r"^(.*\D)\s+(\d+)$")
NUMBER_NAME_RE = re.compile(r"^(\d+)\s+(\D.*)$")


@dataclass(frozen=True)
class ParsedQuery:
    """A search query split into its parts; missing parts are None."""
    npc_id: int | None = None
    level: int | None = None
    name: str | None = None


def parse_query(query: str | None) -> ParsedQuery | None:
    """Split a free-text query into id, level and name.

    The first matching form wins:

    1. ``"2042"`` -> id
    2. ``"2042 725"`` / ``"2042 lvl 725"`` -> id + level
    3. ``"Zulrah lvl 725"`` -> name + level
    4. ``"lvl 725 Zulrah"`` -> level + name
    5. ``"Zulrah 725"`` -> name + level
    6. ``"725 Zulrah"`` -> level + name
    7. anything else -> name

    Args:
        query: Raw user input.

    Returns:
        The parsed query, or None for blank input.
    """
    if query is None:
        return None
    text = query.strip()
    if not text:
        return None

    if ID_ONLY_RE.match(text):
        return ParsedQuery(npc_id=int(text))

    match = ID_LEVEL_RE.match(text)
    if match:
        return ParsedQuery(npc_id=int(match.group(1)), level=int(match.group(2)))

    match = NAME_LEVEL_RE.match(text)
    if match:
        return ParsedQuery(name=match.group(1).strip(), level=int(match.group(2)))

    match = LEVEL_NAME_RE.match(text)
    if match:
        return ParsedQuery(level=int(match.group(1)), name=match.group(2).strip())

    match = NAME_NUMBER_RE.match(text)
    if match:
        return ParsedQuery(name=match.group(1).strip(), level=int(match.group(2)))

    match = NUMBER_NAME_RE.match(text)
    if match:
        return ParsedQuery(level=int(match.group(1)), name=match.group(2).strip())

    return ParsedQuery(name=text)


def levenshtein(a: str, b: str) -> int:
    """Case-insensitive edit distance between two strings.

    Example:
        >>> levenshtein("abc", "abd")
        1
    """
    return Levenshtein.distance(a.casefold(), b.casefold())


def dedupe_by_id(records: list[NpcDropData]) -> list[NpcDropData]:
    """Keep the first record per NPC id."""
    unique: dict[int, NpcDropData] = {}
    for record in records:
        unique.setdefault(record.npc_id, record)
    return list(unique.values())


def rank_by_name(records: list[NpcDropData], name: str) -> list[NpcDropData]:
    """Order records by edit distance between their name and the query name."""
    key = name.lower()
    return sorted(records, key=lambda record: levenshtein(record.name.lower(), key))


class NpcSearchService:
    """Search NPC drop data by name, id and/or level.

    Args:
        cache: Drop cache used for every lookup.
        candidate_limit: Maximum number of name-search titles fetched.
    """

    def __init__(self, cache: DropCache, candidate_limit: int = NAME_FETCH_LIMIT) -> None:
        self.cache = cache
        self.candidate_limit = candidate_limit

    async def search(self, query: str | None) -> list[NpcDropData]:
        """Search for NPCs with drop tables, best match first.

        Args:
            query: Free-text query, see :func:`parse_query`.

        Returns:
            Matching records; empty for blank queries or when nothing matches.
            Individual lookup failures never fail the search.
        """
        parsed = parse_query(query)
        if parsed is None:
            return []

        # Name only
        if parsed.npc_id is None and parsed.level is None and parsed.name is not None:
            titles = await self._candidate_titles(parsed.name)
            records = await self.fetch_all(titles, 0)
            return rank_by_name(dedupe_by_id(records), parsed.name)

        # Id, optionally with level
        if parsed.npc_id is not None and parsed.name is None:
            level = parsed.level if parsed.level is not None else 0
            try:
                record = await self.cache.get(parsed.npc_id, "", level)
            except Exception as e:
                logger.warning(f"Lookup for NPC id {parsed.npc_id} failed: {e}")
                return []
            if record is None or not record.has_drops:
                return []
            return [record]

        # Mixed or partial
        name_filter = parsed.name or ""
        titles = await self._candidate_titles(name_filter)
        records = await self.fetch_all(titles, parsed.level or 0)

        if parsed.npc_id is not None:
            records = [r for r in records if r.npc_id == parsed.npc_id]
        if parsed.level is not None:
            records = [r for r in records if r.level == parsed.level]

        return rank_by_name(dedupe_by_id(records), name_filter)

    async def _candidate_titles(self, name: str) -> list[str]:
        try:
            titles = await self.cache.search_names(name)
        except Exception as e:
            logger.warning(f"NPC name search failed for '{name}': {e}")
            return []
        return titles[: self.candidate_limit]

    async def fetch_all(self, names: list[str], level: int) -> list[NpcDropData]:
        """Fetch drop data for several names concurrently.

        Waits for every lookup. A failed lookup is logged and treated as "no
        result" for that name only.

        Args:
            names: Candidate NPC names.
            level: Combat level passed to every lookup.

        Returns:
            Records that have drops, in candidate order.
        """
        if not names:
            return []

        results = await asyncio.gather(
            *(self.cache.get(0, name, level) for name in names),
            return_exceptions=True,
        )

        records: list[NpcDropData] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(f"Lookup for '{name}' failed: {result}")
                continue
            if result is not None and result.has_drops:
                records.append(result)
        return records


__all__ = [
    "ParsedQuery",
    "parse_query",
    "levenshtein",
    "dedupe_by_id",
    "rank_by_name",
    "NpcSearchService",
]
