"""
Fetch and parse NPC drop tables from the wiki.

A fetch goes through four stages:

1. Download the NPC page through ``Special:Lookup`` (by id and/or name).
2. Parse the display name, combat level and every ``table.item-drops``
   section out of the HTML.
3. Resolve the NPC's canonical page id with a second API call.
4. Hand the parsed record to the item catalog owner, which resolves the
   item ids of every drop.

Stages 1 to 3 run concurrently across fetches, bounded by
``max_concurrent_fetches``. Stage 4 is serialized on the owner thread.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Any
from urllib.parse import quote_plus, unquote

import httpx
from bs4 import BeautifulSoup, Tag

from ..exceptions import WikiFetchError
from .models import DropItem, DropTableSection, NpcDropData

if TYPE_CHECKING:
    from ..config import LootLedgerSettings
    from ..items.owner import CatalogOwner
    from ..items.resolver import ItemNameResolver

logger = logging.getLogger("loot-ledger.drops.wiki")

DEFAULT_SECTION_HEADER = "Drops"
HEADING_TAGS = ["h2", "h3", "h4"]
MIN_DROP_COLUMNS = 6
NAME_COLUMN = 1
RARITY_COLUMN = 3
MEMBERS_MARKER = "(m)"
SEARCH_LIMIT = 20

NON_DIGITS_RE = re.compile(r"[^0-9]+")
WHITESPACE_RE = re.compile(r"\s+")


# ----------------------------------------------------------------------
# URL builders
# ----------------------------------------------------------------------

def build_lookup_url(base_url: str, npc_id: int, name: str) -> str:
    """Build the ``Special:Lookup`` URL for an NPC, anchored at its drops.

    Args:
        base_url: Wiki base URL without trailing slash.
        npc_id: NPC id, ignored unless positive.
        name: NPC name, ignored when empty.

    Returns:
        The lookup URL ending in ``#Drops``.
    """
    url = f"{base_url}/w/Special:Lookup?type=npc"
    if npc_id > 0:
        url += f"&id={npc_id}"
    encoded_name = quote_plus((name or "").replace(" ", "_"))
    if encoded_name:
        url += f"&name={encoded_name}"
    return url + "#Drops"


def build_search_url(base_url: str, query: str) -> str:
    """Build the opensearch URL used for NPC name suggestions."""
    return (
        f"{base_url}/api.php?action=opensearch&format=json&limit={SEARCH_LIMIT}"
        f"&namespace=0&search={quote_plus(query)}"
    )


def build_page_info_url(base_url: str, title: str) -> str:
    """Build the page-info query URL for a page title."""
    return f"{base_url}/api.php?action=query&format=json&prop=info&titles={quote_plus(title)}"


# ----------------------------------------------------------------------
# HTML parsing
# ----------------------------------------------------------------------

def _text(element: Tag) -> str:
    """Element text with whitespace collapsed."""
    return WHITESPACE_RE.sub(" ", element.get_text()).strip()


def parse_display_name(soup: BeautifulSoup, fallback: str) -> str:
    """Return the page's primary heading, or the fallback when it is missing."""
    heading = soup.select_one("h1#firstHeading")
    if heading is not None:
        text = _text(heading)
        if text:
            return text
    return fallback


def parse_combat_level(soup: BeautifulSoup) -> int:
    """Read the combat level from the NPC infobox.

    Looks for an infobox row whose label mentions "combat level" and returns
    the first integer in its value cell.

    Returns:
        The combat level, or 0 when the infobox has none.
    """
    infobox = soup.select_one("table.infobox")
    if infobox is None:
        return 0

    for row in infobox.find_all("tr"):
        label = row.find("th")
        value = row.find("td")
        if label is None or value is None:
            continue
        if "combat level" not in _text(label).lower():
            continue
        for part in NON_DIGITS_RE.split(value.get_text()):
            if part:
                return int(part)
    return 0


def _section_header(table: Tag) -> str:
    """Find the nearest heading before a drop table."""
    for sibling in table.find_previous_siblings():
        if sibling.name in HEADING_TAGS:
            return _text(sibling)
        # MediaWiki wraps headings as <div class="mw-heading"><h2>..</h2>..</div>
        if sibling.name == "div" and "mw-heading" in (sibling.get("class") or []):
            heading = sibling.find(HEADING_TAGS)
            if heading is not None:
                return _text(heading)
    return DEFAULT_SECTION_HEADER


def parse_drop_rows(table: Tag) -> list[DropItem]:
    """Extract unresolved drop items from one ``table.item-drops``."""
    items: list[DropItem] = []
    for row in table.select("tbody > tr"):
        cells = row.find_all("td")
        if len(cells) < MIN_DROP_COLUMNS:
            continue
        name = _text(cells[NAME_COLUMN]).replace(MEMBERS_MARKER, "").strip()
        if not name or name.lower() == "nothing":
            continue
        rarity = _text(cells[RARITY_COLUMN])
        items.append(DropItem(item_id=0, name=name, rarity=rarity))
    return items


def parse_sections(soup: BeautifulSoup) -> list[DropTableSection]:
    """Extract every non-empty drop table section from an NPC page."""
    sections: list[DropTableSection] = []
    for table in soup.select("table.item-drops"):
        items = parse_drop_rows(table)
        if items:
            sections.append(DropTableSection(header=_section_header(table), items=items))
    return sections


def parse_canonical_title(soup: BeautifulSoup) -> str | None:
    """Return the page title from the canonical link, in API form.

    The last path segment of the canonical URL is decoded, spaces become
    underscores and the first letter is upper-cased the way the wiki
    normalizes titles.
    """
    link = soup.select_one('link[rel="canonical"]')
    if link is None:
        return None
    href = link.get("href")
    if not href:
        return None

    title = unquote(str(href).rstrip("/").rsplit("/", 1)[-1]).replace(" ", "_")
    if not title:
        return None
    return title[0].upper() + title[1:]


def parse_page_id(payload: Any) -> int:
    """Return the first page id in a ``prop=info`` query response, else 0."""
    if not isinstance(payload, dict):
        return 0
    pages = (payload.get("query") or {}).get("pages") or {}
    if not isinstance(pages, dict):
        return 0
    for page in pages.values():
        if isinstance(page, dict) and "pageid" in page:
            return int(page["pageid"])
    return 0


def parse_npc_page(html: str, requested_name: str, level: int) -> tuple[NpcDropData | None, str | None]:
    """Parse an NPC page into an unresolved record.

    Args:
        html: Page HTML.
        requested_name: Name used for the lookup, the fallback display name.
        level: Caller-supplied combat level; parsed from the page when not positive.

    Returns:
        ``(record, canonical_title)``. The record is None when the page has
        no drop tables. Item ids and the NPC id are not resolved yet.
    """
    soup = BeautifulSoup(html, "html.parser")
    sections = parse_sections(soup)
    title = parse_canonical_title(soup)
    if not sections:
        return None, title

    record = NpcDropData(
        npc_id=0,
        name=parse_display_name(soup, requested_name),
        level=level if level > 0 else parse_combat_level(soup),
        sections=sections,
    )
    return record, title


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------

class WikiPageClient:
    """Async client for NPC drop pages and NPC name search.

    Args:
        settings: Endpoint, user agent, timeout and concurrency settings.
        resolver: Item name resolver, run on the owner thread.
        owner: Catalog owner that serializes item resolution.
        client: HTTP client to use. When omitted, one is created and closed
            by :meth:`aclose`.
    """

    def __init__(
        self,
        settings: LootLedgerSettings,
        resolver: ItemNameResolver,
        owner: CatalogOwner,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.owner = owner
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=settings.http_timeout)
        self._semaphore = asyncio.Semaphore(settings.max_concurrent_fetches)

    async def __aenter__(self) -> WikiPageClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, url: str) -> httpx.Response:
        """GET a URL, turning every failure into a WikiFetchError."""
        logger.debug(f"GET {url}")
        try:
            response = await self._client.get(
                url,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.http_timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise WikiFetchError(f"Wiki request timed out: {url}", url=url) from e
        except httpx.HTTPStatusError as e:
            raise WikiFetchError(
                f"Wiki returned HTTP {e.response.status_code}: {e.response.reason_phrase}",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise WikiFetchError(f"Failed to connect to the wiki: {e}", url=url) from e
        return response

    async def fetch(self, npc_id: int, name: str, level: int) -> NpcDropData | None:
        """Fetch, parse and resolve one NPC's drop table.

        Args:
            npc_id: NPC id, or 0 when unknown.
            name: NPC name, or "" when unknown.
            level: Combat level, or 0 to read it from the page.

        Returns:
            The resolved record, or None when the NPC has no drop table.

        Raises:
            WikiFetchError: If the page cannot be downloaded.
            CatalogOwnerClosedError: If the owner shut down before resolution.
        """
        async with self._semaphore:
            url = build_lookup_url(self.settings.wiki_base_url, npc_id, name)
            response = await self._get(url)

            loop = asyncio.get_running_loop()
            record, title = await loop.run_in_executor(
                None, parse_npc_page, response.text, name, level
            )
            if record is None:
                logger.debug(f"No drop table on {url}")
                return None

            resolved_id = await self.resolve_npc_id(title)

        record = record.model_copy(update={"npc_id": resolved_id})
        return await self.owner.submit(self.resolver.resolve_record, record)

    async def resolve_npc_id(self, title: str | None) -> int:
        """Look up the canonical page id for a page title.

        Failures are logged and reported as 0; they never abort a fetch.
        """
        if not title:
            return 0
        url = build_page_info_url(self.settings.wiki_base_url, title)
        try:
            response = await self._get(url)
            page_id = parse_page_id(response.json())
        except (WikiFetchError, ValueError) as e:
            logger.warning(f"Failed to resolve NPC id for {title}: {e}")
            return 0

        if page_id == 0:
            logger.warning(f"No page id found for title {title}")
        return page_id

    async def search_names(self, query: str) -> list[str]:
        """Return wiki page titles matching a free-text query.

        Raises:
            WikiFetchError: If the search request fails or returns an
                unexpected payload.
        """
        url = build_search_url(self.settings.wiki_base_url, query)
        response = await self._get(url)
        try:
            payload = response.json()
        except ValueError as e:
            raise WikiFetchError(f"Invalid search response: {e}", url=url) from e

        if not isinstance(payload, list) or len(payload) < 2 or not isinstance(payload[1], list):
            raise WikiFetchError("Unexpected search response format", url=url)
        return [str(title) for title in payload[1]]


__all__ = [
    "WikiPageClient",
    "build_lookup_url",
    "build_search_url",
    "build_page_info_url",
    "parse_npc_page",
    "parse_sections",
    "parse_drop_rows",
    "parse_combat_level",
    "parse_display_name",
    "parse_canonical_title",
    "parse_page_id",
]
