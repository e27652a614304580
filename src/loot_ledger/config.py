"""
Configuration model for loot-ledger.

Settings are read from ``LOOTLEDGER_*`` environment variables (a ``.env``
file is honoured by the server entry point) and validated by pydantic.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

DEFAULT_WIKI_BASE = "https://oldschool.runescape.wiki"
DEFAULT_PRICES_MAPPING_URL = "https://prices.runescape.wiki/api/v1/osrs/mapping"
DEFAULT_USER_AGENT = "loot-ledger/0.1.0"

ENV_PREFIX = "LOOTLEDGER_"

# Field name -> environment variable suffix
ENV_FIELDS: dict[str, str] = {
    "wiki_base_url": "WIKI_BASE",
    "prices_mapping_url": "PRICES_MAPPING_URL",
    "user_agent": "USER_AGENT",
    "http_timeout": "HTTP_TIMEOUT",
    "max_concurrent_fetches": "MAX_CONCURRENT_FETCHES",
    "search_candidate_limit": "SEARCH_CANDIDATE_LIMIT",
    "items_index_path": "ITEMS_INDEX",
    "show_rare_drop_table": "SHOW_RARE_DROP_TABLE",
    "show_gem_drop_table": "SHOW_GEM_DROP_TABLE",
    "sort_drops_by_rarity": "SORT_BY_RARITY",
    "log_level": "LOG_LEVEL",
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class LootLedgerSettings(BaseModel):
    """Runtime settings for the drop lookup core and its server surface."""

    # Remote endpoints
    wiki_base_url: str = Field(
        default=DEFAULT_WIKI_BASE,
        description="Base URL of the wiki (no trailing slash)"
    )
    prices_mapping_url: str = Field(
        default=DEFAULT_PRICES_MAPPING_URL,
        description="Item mapping endpoint used to build the tradeable item catalog"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        min_length=1,
        description="User-Agent header sent with every request"
    )

    # Networking
    http_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout in seconds for every HTTP request"
    )
    max_concurrent_fetches: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum number of page fetches in flight at once"
    )
    search_candidate_limit: int = Field(
        default=10,
        ge=1,
        le=20,
        description="Maximum number of name-search candidates fetched per search"
    )

    # Static resources
    items_index_path: Path | None = Field(
        default=None,
        description="Path to the item name -> ids JSON index (bundled index when unset)"
    )

    # Drop list presentation
    show_rare_drop_table: bool = Field(
        default=True,
        description="Include rare drop table sections in drop lists"
    )
    show_gem_drop_table: bool = Field(
        default=True,
        description="Include gem drop table sections in drop lists"
    )
    sort_drops_by_rarity: bool = Field(
        default=True,
        description="Sort drops from common to rare (unknown rarities last)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level for the loot-ledger logger"
    )

    @field_validator("wiki_base_url", "prices_mapping_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Remove trailing slashes so URLs can be joined with a leading '/'."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got '{v}'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is one the logging module understands."""
        level = v.strip().upper()
        valid = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
        if level not in valid:
            raise ValueError(f"log_level must be one of {sorted(valid)}, got '{v}'")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LootLedgerSettings:
        """Build settings from ``LOOTLEDGER_*`` environment variables.

        Unset or blank variables fall back to the field defaults.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            Validated settings.

        Raises:
            ValueError: If a boolean variable holds an unrecognised value.
            pydantic.ValidationError: If a value fails field validation.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        for field_name, suffix in ENV_FIELDS.items():
            raw = env.get(f"{ENV_PREFIX}{suffix}")
            if raw is None or not raw.strip():
                continue
            if cls.model_fields[field_name].annotation is bool:
                values[field_name] = _parse_bool(f"{ENV_PREFIX}{suffix}", raw)
            else:
                values[field_name] = raw.strip()

        return cls(**values)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got '{raw}'")


__all__ = ["LootLedgerSettings"]
