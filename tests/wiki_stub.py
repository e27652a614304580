"""
In-memory wiki used by the tests, served through ``httpx.MockTransport``,
and the paths of the on-disk fixtures.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx

WIKI_FIXTURES = Path(__file__).parent / "fixtures" / "wiki"
ITEMS_FIXTURE = Path(__file__).parent / "fixtures" / "items.json"
WIKI_BASE = "https://wiki.test"


def load_page(name: str) -> str:
    """Read an HTML page fixture."""
    return (WIKI_FIXTURES / name).read_text(encoding="utf-8")


class WikiStub:
    """In-memory stand-in for the wiki, served through httpx.MockTransport.

    Pages are keyed by lowercase NPC name (underscores as spaces) or by NPC
    id. Every request is recorded so tests can count network calls.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.pages_by_name: dict[str, str] = {}
        self.pages_by_id: dict[int, str] = {}
        self.page_ids: dict[str, int] = {}
        self.search_results: dict[str, list[str]] = {}
        self.failing_names: set[str] = set()
        self.fail_search = False
        self.requests: list[httpx.Request] = []

    def add_page(self, name: str, html: str, npc_id: int | None = None, page_id: int | None = None) -> None:
        self.pages_by_name[name.lower()] = html
        if npc_id is not None:
            self.pages_by_id[npc_id] = html
        if page_id is not None:
            self.page_ids[name.replace(" ", "_")] = page_id

    def lookups(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/w/Special:Lookup"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        params = request.url.params
        if request.url.path == "/w/Special:Lookup":
            name = params.get("name", "").replace("_", " ").lower()
            if name in self.failing_names:
                return httpx.Response(503, text="Service Unavailable")
            npc_id = int(params.get("id", "0"))
            html = self.pages_by_id.get(npc_id) or self.pages_by_name.get(name)
            if html is None:
                return httpx.Response(404, text="Not Found")
            return httpx.Response(200, text=html)

        if request.url.path == "/api.php" and params.get("action") == "opensearch":
            if self.fail_search:
                return httpx.Response(500, text="Internal Server Error")
            query = params.get("search", "")
            titles = self.search_results.get(query.lower(), [])
            return httpx.Response(200, json=[query, titles, [""] * len(titles), [""] * len(titles)])

        if request.url.path == "/api.php" and params.get("action") == "query":
            title = params.get("titles", "")
            page_id = self.page_ids.get(title)
            if page_id is None:
                pages = {"-1": {"ns": 0, "title": title, "missing": ""}}
            else:
                pages = {str(page_id): {"pageid": page_id, "ns": 0, "title": title}}
            return httpx.Response(200, json={"batchcomplete": "", "query": {"pages": pages}})

        return httpx.Response(404, text="Not Found")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
