"""
Tests for wiki page parsing and the wiki page client.

Parsing tests run against saved NPC pages in ``fixtures/wiki``; client tests
serve the same pages through an ``httpx.MockTransport``.
"""

from __future__ import annotations

import httpx
import pytest
from bs4 import BeautifulSoup

from wiki_stub import WIKI_BASE, WikiStub, load_page
from loot_ledger.drops.wiki import (
    WikiPageClient,
    build_lookup_url,
    build_page_info_url,
    build_search_url,
    parse_canonical_title,
    parse_combat_level,
    parse_npc_page,
    parse_page_id,
)
from loot_ledger.exceptions import WikiFetchError
from loot_ledger.items.resolver import ItemNameResolver

pytestmark = pytest.mark.anyio


@pytest.fixture
def resolver(catalog, item_index) -> ItemNameResolver:
    return ItemNameResolver(catalog, index=item_index)


@pytest.fixture
async def wiki_client(settings, resolver, owner, wiki):
    async with wiki.client() as http:
        yield WikiPageClient(settings, resolver, owner, client=http)


class TestUrlBuilders:
    """Test wiki URL construction."""

    def test_lookup_by_name(self):
        """Names are underscored, encoded and anchored at the drops."""
        url = build_lookup_url(WIKI_BASE, 0, "King Black Dragon")
        assert url == f"{WIKI_BASE}/w/Special:Lookup?type=npc&name=King_Black_Dragon#Drops"

    def test_lookup_by_id_and_name(self):
        """Both id and name are sent when known."""
        url = build_lookup_url(WIKI_BASE, 2042, "Zulrah")
        assert url == f"{WIKI_BASE}/w/Special:Lookup?type=npc&id=2042&name=Zulrah#Drops"

    def test_lookup_by_id_only(self):
        """An empty name is omitted."""
        assert build_lookup_url(WIKI_BASE, 2042, "") == f"{WIKI_BASE}/w/Special:Lookup?type=npc&id=2042#Drops"

    def test_lookup_encodes_special_characters(self):
        """Reserved characters are percent-encoded."""
        url = build_lookup_url(WIKI_BASE, 0, "Goblin (level 5)")
        assert "name=Goblin_%28level_5%29#Drops" in url

    def test_search_url(self):
        """Search queries are form-encoded."""
        url = build_search_url(WIKI_BASE, "king black")
        assert url.startswith(f"{WIKI_BASE}/api.php?action=opensearch")
        assert url.endswith("search=king+black")

    def test_page_info_url(self):
        """Page info queries carry the title."""
        url = build_page_info_url(WIKI_BASE, "Zulrah")
        assert url == f"{WIKI_BASE}/api.php?action=query&format=json&prop=info&titles=Zulrah"


class TestParseNpcPage:
    """Test HTML parsing of saved NPC pages."""

    def test_zulrah_sections(self):
        """Every non-empty drop table becomes a section under its heading."""
        record, title = parse_npc_page(load_page("zulrah.html"), "zulrah", 0)

        assert title == "Zulrah"
        assert record is not None
        assert record.name == "Zulrah"
        assert record.level == 725
        assert record.npc_id == 0
        assert [s.header for s in record.sections] == [
            "Weapons and armour",
            "Other",
            "Rare drop table",
        ]

    def test_zulrah_rows(self):
        """Placeholder rows and short rows are skipped, markers stripped."""
        record, _ = parse_npc_page(load_page("zulrah.html"), "Zulrah", 0)
        names = [item.name for item in record.all_items()]

        assert "Nothing" not in names
        assert "Uncut onyx" in names
        assert names.count("Coins") == 2
        assert "Mystery relic" in names
        assert all(item.item_id == 0 for item in record.all_items())

        other = record.sections[1]
        assert [item.rarity for item in other.items][:2] == ["Always", "12.5%"]

    def test_caller_level_wins(self):
        """A positive caller level is used instead of the infobox."""
        record, _ = parse_npc_page(load_page("zulrah.html"), "Zulrah", 100)
        assert record.level == 100

    def test_default_section_header(self):
        """A table without a heading gets the default header."""
        record, title = parse_npc_page(load_page("goblin.html"), "Goblin", 0)

        assert title == "Goblin_(level_5)"
        assert [s.header for s in record.sections] == ["Drops"]
        assert [item.name for item in record.all_items()] == ["Bones", "Bronze spear"]

    def test_first_integer_combat_level(self):
        """Multi-level infoboxes report their first level."""
        record, _ = parse_npc_page(load_page("goblin.html"), "Goblin", 0)
        assert record.level == 2

    def test_page_without_drops(self):
        """A page without drop tables yields no record but still a title."""
        record, title = parse_npc_page(load_page("hans.html"), "Hans", 0)
        assert record is None
        assert title == "Hans"

    def test_missing_heading_uses_requested_name(self):
        """The requested name is the fallback display name."""
        html = (
            '<table class="item-drops"><tbody>'
            "<tr><td></td><td>Bones</td><td>1</td><td>Always</td><td>1</td><td>1</td></tr>"
            "</tbody></table>"
        )
        record, title = parse_npc_page(html, "Chicken", 0)
        assert record.name == "Chicken"
        assert record.level == 0
        assert title is None


class TestSmallParsers:
    """Test the individual parsing helpers."""

    def test_canonical_title_decoding(self):
        """Titles are URL-decoded and start upper-case."""
        soup = BeautifulSoup(
            '<link rel="canonical" href="https://wiki.test/w/king%20black_dragon">', "html.parser"
        )
        assert parse_canonical_title(soup) == "King_black_dragon"

    def test_combat_level_absent(self):
        """No infobox means level 0."""
        assert parse_combat_level(BeautifulSoup("<p>hi</p>", "html.parser")) == 0

    def test_page_id(self):
        """The first page id in a query response is returned."""
        payload = {"query": {"pages": {"37712": {"pageid": 37712, "title": "Zulrah"}}}}
        assert parse_page_id(payload) == 37712

    def test_page_id_missing(self):
        """Missing pages and malformed payloads give 0."""
        assert parse_page_id({"query": {"pages": {"-1": {"missing": ""}}}}) == 0
        assert parse_page_id({}) == 0
        assert parse_page_id([]) == 0


class TestWikiPageClient:
    """Test fetching through the client."""

    async def test_fetch_resolves_ids(self, wiki_client, wiki):
        """A fetch parses the page, resolves the NPC id and every item id."""
        record = await wiki_client.fetch(0, "Zulrah", 0)

        assert record.npc_id == 37712
        assert record.level == 725
        ids = {item.name: item.item_id for item in record.all_items()}
        assert ids["Zulrah's scales"] == 12934
        assert ids["Coins"] == 995
        assert ids["Loop half of key"] == 987
        assert ids["Mystery relic"] == 0

    async def test_fetch_sends_user_agent(self, wiki_client, wiki, settings):
        """Every request carries the configured user agent."""
        await wiki_client.fetch(0, "Zulrah", 0)
        assert wiki.requests
        assert all(r.headers["User-Agent"] == settings.user_agent for r in wiki.requests)

    async def test_fetch_by_id(self, wiki_client):
        """Id-only lookups work."""
        record = await wiki_client.fetch(2042, "", 0)
        assert record.name == "Zulrah"

    async def test_fetch_without_drops(self, wiki_client, wiki):
        """Pages without drops give None and skip the page id lookup."""
        assert await wiki_client.fetch(0, "Hans", 0) is None
        assert all(r.url.path != "/api.php" for r in wiki.requests)

    async def test_fetch_unresolved_npc_id(self, wiki_client, wiki):
        """A page id that cannot be found leaves the NPC id at 0."""
        wiki.page_ids.clear()
        record = await wiki_client.fetch(0, "Goblin", 0)
        assert record.npc_id == 0
        assert record.has_drops

    async def test_fetch_not_found(self, wiki_client):
        """A 404 becomes WikiFetchError with the status code."""
        with pytest.raises(WikiFetchError) as exc_info:
            await wiki_client.fetch(0, "Nonexistent", 0)
        assert exc_info.value.status_code == 404
        assert "Special:Lookup" in exc_info.value.url

    async def test_fetch_server_error(self, wiki_client, wiki):
        """5xx responses become WikiFetchError."""
        wiki.failing_names.add("zulrah")
        with pytest.raises(WikiFetchError) as exc_info:
            await wiki_client.fetch(0, "Zulrah", 0)
        assert exc_info.value.status_code == 503

    async def test_fetch_timeout(self, settings, resolver, owner):
        """Timeouts become WikiFetchError without a status."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = WikiPageClient(settings, resolver, owner, client=http)
            with pytest.raises(WikiFetchError) as exc_info:
                await client.fetch(0, "Zulrah", 0)
        assert exc_info.value.status_code is None

    async def test_search_names(self, wiki_client, wiki):
        """Search returns the titles from the opensearch payload."""
        wiki.search_results["zul"] = ["Zulrah", "Zulrah/Strategies"]
        assert await wiki_client.search_names("zul") == ["Zulrah", "Zulrah/Strategies"]

    async def test_search_names_error(self, wiki_client, wiki):
        """Search failures raise WikiFetchError."""
        wiki.fail_search = True
        with pytest.raises(WikiFetchError):
            await wiki_client.search_names("zul")

    async def test_search_names_bad_payload(self, settings, resolver, owner):
        """Unexpected payloads raise WikiFetchError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = WikiPageClient(settings, resolver, owner, client=http)
            with pytest.raises(WikiFetchError):
                await client.search_names("zul")

    async def test_borrowed_client_stays_open(self, settings, resolver, owner):
        """Closing the wiki client leaves a caller-supplied HTTP client open."""
        stub = WikiStub()
        async with stub.client() as http:
            async with WikiPageClient(settings, resolver, owner, client=http):
                pass
            assert not http.is_closed
