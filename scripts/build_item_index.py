#!/usr/bin/env python3
"""
Build the item name index from the wiki's item infoboxes.

The bundled ``src/loot_ledger/data/items.json`` is a small sample. This
script downloads every item infobox through the wiki's bucket API and
writes the full ``{name: [ids]}`` index, covering untradeable items
(pets, clue scrolls, quest items) that the prices mapping does not list.

Usage:
    python scripts/build_item_index.py --output src/loot_ledger/data/items.json

Keys are the versioned page names drop tables link to (``Adamant dagger#(p++)``)
plus the plain item names. Ids of each key are sorted ascending, so a base id
comes before its noted form.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Iterator

import httpx

DEFAULT_WIKI_BASE = "https://oldschool.runescape.wiki"
DEFAULT_OUTPUT = Path(__file__).resolve().parent.parent / "src" / "loot_ledger" / "data" / "items.json"
FIELDS = ("item_id", "item_name", "page_name", "page_name_sub")


class IndexBuildError(Exception):
    """Raised when the wiki cannot be read or returns something unexpected."""
    pass


def parse_ids(raw: Any) -> list[int]:
    """Turn a bucket ``item_id`` value into positive ints.

    The field is repeated, so it arrives as a list, but single values and
    comma separated strings are accepted too.
    """
    if raw is None:
        return []
    values = raw if isinstance(raw, list) else str(raw).split(",")
    ids: list[int] = []
    for value in values:
        try:
            item_id = int(str(value).strip())
        except ValueError:
            continue
        if item_id > 0:
            ids.append(item_id)
    return ids


def entry_names(row: dict[str, Any]) -> list[str]:
    """Names an infobox row is indexed under, most specific first."""
    names: list[str] = []
    for field in ("page_name_sub", "item_name", "page_name"):
        value = row.get(field)
        if isinstance(value, str) and value.strip() and value.strip() not in names:
            names.append(value.strip())
    return names


def build_index(rows: list[dict[str, Any]]) -> dict[str, list[int]]:
    """Merge infobox rows into a ``{name: sorted ids}`` index."""
    merged: dict[str, set[int]] = {}
    for row in rows:
        ids = parse_ids(row.get("item_id"))
        if not ids:
            continue
        for name in entry_names(row):
            merged.setdefault(name, set()).update(ids)
    return {name: sorted(ids) for name, ids in sorted(merged.items())}


class ItemIndexBuilder:
    """Pages through the wiki's item infobox bucket."""

    def __init__(
        self,
        client: httpx.Client,
        wiki_base: str = DEFAULT_WIKI_BASE,
        page_size: int = 500,
    ):
        """Initialize the builder.

        Args:
            client: HTTP client carrying the user agent
            wiki_base: Wiki root URL without a trailing slash
            page_size: Rows requested per bucket query
        """
        self.client = client
        self.api_url = f"{wiki_base.rstrip('/')}/api.php"
        self.page_size = page_size

    def _query(self, offset: int) -> str:
        select = ",".join(f"'{field}'" for field in FIELDS)
        return (
            f"bucket('infobox_item').select({select})"
            f".limit({self.page_size}).offset({offset}).run()"
        )

    def fetch_page(self, offset: int) -> list[dict[str, Any]]:
        """Fetch one page of infobox rows.

        Raises:
            IndexBuildError: On HTTP failures or an unexpected payload.
        """
        params = {"action": "bucket", "format": "json", "query": self._query(offset)}
        try:
            response = self.client.get(self.api_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise IndexBuildError(f"Bucket query returned HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise IndexBuildError(f"Bucket query failed: {e}") from e
        except ValueError as e:
            raise IndexBuildError(f"Bucket query returned invalid JSON: {e}") from e

        if not isinstance(payload, dict) or "error" in payload:
            raise IndexBuildError(f"Bucket query rejected: {payload!r:.200}")
        rows = payload.get("bucket")
        if not isinstance(rows, list):
            raise IndexBuildError("Bucket payload has no 'bucket' list")
        return [row for row in rows if isinstance(row, dict)]

    def iter_rows(self) -> Iterator[dict[str, Any]]:
        """Yield every infobox row, page by page."""
        offset = 0
        while True:
            rows = self.fetch_page(offset)
            yield from rows
            if len(rows) < self.page_size:
                return
            offset += self.page_size

    def build(self) -> dict[str, list[int]]:
        """Download all rows and return the merged index."""
        return build_index(list(self.iter_rows()))


def write_index(index: dict[str, list[int]], output: Path) -> None:
    """Write the index as compact JSON, replacing the file atomically."""
    output.parent.mkdir(parents=True, exist_ok=True)
    temp = output.with_suffix(output.suffix + ".tmp")
    temp.write_text(json.dumps(index, ensure_ascii=False, separators=(",", ":")), encoding="utf-8")
    temp.replace(output)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Build the item name index from the wiki",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Rebuild the bundled index
  python scripts/build_item_index.py

  # Write elsewhere and point the server at it
  python scripts/build_item_index.py --output ~/items.json
  LOOTLEDGER_ITEMS_INDEX=~/items.json loot-ledger
        """,
    )
    parser.add_argument(
        "--output",
        default=DEFAULT_OUTPUT,
        type=Path,
        help="Index file to write (default: the bundled data/items.json)"
    )
    parser.add_argument(
        "--wiki-base",
        default=DEFAULT_WIKI_BASE,
        help=f"Wiki root URL (default: {DEFAULT_WIKI_BASE})"
    )
    parser.add_argument(
        "--user-agent",
        default="loot-ledger-index-builder/0.1",
        help="User-Agent sent to the wiki"
    )
    parser.add_argument(
        "--page-size",
        default=500,
        type=int,
        help="Rows per bucket query (default: 500)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Download and report without writing the file"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the index builder."""
    args = parse_args(argv)

    print(f"📥 Reading item infoboxes from {args.wiki_base}")
    try:
        with httpx.Client(headers={"User-Agent": args.user_agent}, timeout=30.0) as client:
            index = ItemIndexBuilder(client, args.wiki_base, args.page_size).build()
    except IndexBuildError as e:
        print(f"\n❌ Index build failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"  ✓ {len(index):,} item names")
    if args.dry_run:
        print(f"\n💾 [DRY RUN] Would write {args.output}")
        return

    write_index(index, args.output)
    print(f"\n💾 Wrote {args.output}")


if __name__ == "__main__":
    main()
