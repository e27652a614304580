"""
Loot Ledger MCP Server
Look up NPC drop tables from the wiki, with resolved item ids and rarities.
"""

import asyncio
import logging
from typing import Annotated

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

from .config import LootLedgerSettings
from .drops.models import DropItem, NpcDropData
from .exceptions import LootLedgerError
from .service import LootLedgerService

logger = logging.getLogger("loot-ledger")

if not load_dotenv():
    logger.debug(".env file not found, using environment variables only")

settings = LootLedgerSettings.from_env()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    )

mcp = FastMCP(
    name="loot-ledger"
)

_service: LootLedgerService | None = None
_service_lock = asyncio.Lock()


async def get_service() -> LootLedgerService:
    """Create the shared service on first use."""
    global _service
    async with _service_lock:
        if _service is None:
            _service = await LootLedgerService.create(settings)
            logger.info("Loot ledger service initialized")
    return _service


def format_drops(record: NpcDropData, drops: list[DropItem]) -> str:
    """Render a drop list as text."""
    header = f"{record.name}"
    if record.level > 0:
        header += f" (level {record.level})"
    if record.npc_id > 0:
        header += f" [id {record.npc_id}]"

    lines = [f"💰 {header}: {len(drops)} drops"]
    for drop in drops:
        rarity = drop.one_over_rarity or drop.rarity or "?"
        lines.append(f"  - {drop.name} (item {drop.item_id}): {rarity}")
    return "\n".join(lines)


def format_matches(records: list[NpcDropData]) -> str:
    """Render search matches as text."""
    lines = [f"🔍 {len(records)} matching NPCs:"]
    for record in records:
        item_count = len({item.item_id for item in record.all_items() if item.item_id > 0})
        level = f"level {record.level}" if record.level > 0 else "level ?"
        lines.append(f"  - {record.name} ({level}, id {record.npc_id}): {item_count} items")
    return "\n".join(lines)


async def describe_npc_drops(service: LootLedgerService, npc_id: int, name: str, level: int) -> str:
    """Look up an NPC's drops and render them, or an error line."""
    if npc_id <= 0 and not name.strip():
        return "❌ Provide an NPC id or a name."

    try:
        record = await service.get_record(npc_id, name, level)
        if record is None:
            return f"❌ No drop table found for '{name or npc_id}'."
        drops = await service.get_drops(npc_id, name, level)
    except LootLedgerError as e:
        logger.error(f"Drop lookup failed for '{name or npc_id}': {e}")
        return f"❌ Drop lookup failed: {e}"

    return format_drops(record, drops)


async def describe_npc_matches(service: LootLedgerService, query: str) -> str:
    try:
        records = await service.search(query)
    except LootLedgerError as e:
        logger.error(f"NPC search failed for '{query}': {e}")
        return f"❌ NPC search failed: {e}"

    if not records:
        return f"❌ No NPCs with drop tables match '{query}'."
    return format_matches(records)


async def describe_npc_names(service: LootLedgerService, query: str) -> str:
    try:
        titles = await service.search_names(query)
    except LootLedgerError as e:
        logger.error(f"Name search failed for '{query}': {e}")
        return f"❌ Name search failed: {e}"

    if not titles:
        return f"❌ No wiki pages match '{query}'."
    return "\n".join(f"  - {title}" for title in titles)


# ----------------------------------------------------------------------
# Tools
# ----------------------------------------------------------------------

@mcp.tool
async def get_npc_drops(
    npc_id: Annotated[int, Field(description="NPC id, 0 if unknown", ge=0)] = 0,
    name: Annotated[str, Field(description="NPC name, empty if unknown")] = "",
    level: Annotated[int, Field(description="Combat level, 0 to read it from the wiki", ge=0)] = 0,
) -> str:
    """Get the resolved, deduplicated drop list of an NPC, most common first."""
    return await describe_npc_drops(await get_service(), npc_id, name, level)


@mcp.tool
async def search_npcs(
    query: Annotated[str, Field(description="NPC name, id, or either with a level (e.g. 'Zulrah 725', 'lvl 200 Vorkath')")],
) -> str:
    """Fuzzy search for NPCs that have drop tables, best match first."""
    return await describe_npc_matches(await get_service(), query)


@mcp.tool
async def search_npc_names(
    query: Annotated[str, Field(description="Text to search wiki page titles for")],
) -> str:
    """List wiki page titles matching a query."""
    return await describe_npc_names(await get_service(), query)


def main() -> None:
    """Run the MCP server."""
    logger.info("Starting loot-ledger MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
