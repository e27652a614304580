"""
Pytest configuration and fixtures for loot-ledger tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path to allow importing loot_ledger
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from loot_ledger.config import LootLedgerSettings  # noqa: E402
from loot_ledger.items.catalog import CatalogItem, StaticItemCatalog  # noqa: E402
from loot_ledger.items.index import ItemIdIndex, reset_index  # noqa: E402
from loot_ledger.items.owner import CatalogOwner  # noqa: E402
from wiki_stub import ITEMS_FIXTURE, WIKI_BASE, WikiStub, load_page  # noqa: E402


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings() -> LootLedgerSettings:
    return LootLedgerSettings(
        wiki_base_url=WIKI_BASE,
        user_agent="loot-ledger-tests/1.0",
        items_index_path=ITEMS_FIXTURE,
    )


@pytest.fixture
def item_index() -> ItemIdIndex:
    """The sample item name index under tests/fixtures."""
    return ItemIdIndex.from_file(ITEMS_FIXTURE)


@pytest.fixture
def catalog() -> StaticItemCatalog:
    """A small tradeable catalog with a few noted variants."""
    items = [
        CatalogItem(id=995, name="Coins"),
        CatalogItem(id=4151, name="Abyssal whip"),
        CatalogItem(id=1237, name="Bronze spear"),
        CatalogItem(id=1239, name="Iron spear"),
        CatalogItem(id=12934, name="Zulrah's scales"),
        CatalogItem(id=12922, name="Tanzanite fang"),
        CatalogItem(id=22006, name="Skeletal visage"),
        CatalogItem(id=9999, name="Quest relic", tradeable=False),
    ]
    noted = {
        4152: 4151,
        617: 995,
        1212: 1211,
        1238: 1237,
        5677: 5676,
    }
    return StaticItemCatalog(items, noted=noted)


@pytest.fixture
def owner():
    catalog_owner = CatalogOwner()
    yield catalog_owner
    catalog_owner.shutdown()


@pytest.fixture
def wiki() -> WikiStub:
    """A wiki stub serving the Zulrah, Goblin and Hans pages."""
    stub = WikiStub()
    stub.add_page("Zulrah", load_page("zulrah.html"), npc_id=2042, page_id=37712)
    stub.add_page("Goblin", load_page("goblin.html"))
    stub.page_ids["Goblin_(level_5)"] = 3046
    stub.add_page("Hans", load_page("hans.html"), npc_id=3105, page_id=1922)
    return stub


@pytest.fixture
def fresh_index():
    """Reset the process-wide item index around a test."""
    reset_index()
    yield
    reset_index()
