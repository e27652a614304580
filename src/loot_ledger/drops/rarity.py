"""
Rarity normalization for wiki drop tables.

The wiki writes drop rates in many notations: ``1/128``, ``2 x 1/128``,
``12.5%``, ``1 in 128``, ``~1/64``, ranges such as ``1/128 – 1/64`` and
annotated values like ``1/512 [confirmation needed]``. This module folds all
of them into a "one-over" form (``1/N``) and derives a numeric sort key so
drops can be ordered from most common to rarest.

Example:
    >>> normalize("2 x 1/128")
    '1/64'
    >>> sort_key("12.5%")
    8.0
"""

from __future__ import annotations

import math
import re

# Segment separators: ";" (any spacing) or "," followed by whitespace
SEGMENT_SPLIT_RE = re.compile(r"\s*;\s*|,\s+")
# Range separators: en dash, em dash or hyphen
RANGE_SPLIT_RE = re.compile(r"\s*[–—-]\s*")

NUMBER = r"(\d+(?:\.\d+)?)"
PERCENT_RE = re.compile(rf"^{NUMBER}%$")
MULTIPLIER_RE = re.compile(rf"^{NUMBER}\s*[xX]\s*{NUMBER}\s*/\s*{NUMBER}$")
FRACTION_RE = re.compile(rf"^{NUMBER}\s*/\s*{NUMBER}$")

BRACKETS_RE = re.compile(r"\[[^\]]*\]")
TRAILING_PAREN_RE = re.compile(r"\s*\([^)]*\)$")
IN_WORD_RE = re.compile(r"\bin\b", re.IGNORECASE)
ONE_OVER_RE = re.compile(r"1/(\d+(?:\.\d+)?)")

ALWAYS = "always"


def _split(pattern: re.Pattern[str], text: str) -> list[str]:
    """Split text on a pattern, dropping trailing empty parts."""
    parts = pattern.split(text)
    while len(parts) > 1 and parts[-1] == "":
        parts.pop()
    return parts


def _safe_float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return math.nan


def format_one_over(denominator: float) -> str:
    """Render a denominator as ``1/N``.

    Values within 0.01 of an integer are rendered as integers, anything else
    with two decimals. NaN and infinite denominators render as an empty
    string.

    Args:
        denominator: The N in 1/N.

    Returns:
        The one-over string, or "" when the denominator is not finite.
    """
    if math.isnan(denominator) or math.isinf(denominator):
        return ""
    rounded = round(denominator)
    if abs(denominator - rounded) < 0.01:
        return f"1/{int(rounded)}"
    return f"1/{denominator:.2f}"


def simplify(text: str) -> str:
    """Simplify a single cleaned rarity value (no ranges, no separators)."""
    if not text:
        return ""

    match = PERCENT_RE.match(text)
    if match:
        percent = _safe_float(match.group(1))
        if percent == 0:
            return "0"
        return format_one_over(100.0 / percent)

    match = MULTIPLIER_RE.match(text)
    if match:
        factor = _safe_float(match.group(1))
        numerator = _safe_float(match.group(2))
        denominator = _safe_float(match.group(3))
        if factor != 0 and numerator != 0:
            return format_one_over(denominator / (numerator * factor))

    match = FRACTION_RE.match(text)
    if match:
        numerator = _safe_float(match.group(1))
        denominator = _safe_float(match.group(2))
        if numerator != 0:
            return format_one_over(denominator / numerator)

    return text


def clean_segment(raw: str) -> str:
    """Strip annotations, approximation marks and separators from one segment."""
    cleaned = BRACKETS_RE.sub("", raw or "")
    cleaned = (
        cleaned.replace("×", "x")
        .replace(",", "")
        .replace("≈", "")
        .replace("~", "")
    )
    cleaned = TRAILING_PAREN_RE.sub("", cleaned)
    cleaned = IN_WORD_RE.sub("/", cleaned)
    return cleaned.strip()


def normalize_segment(raw: str) -> str:
    """Normalize one rarity segment, preserving ranges such as ``1/128–1/64``."""
    cleaned = clean_segment(raw)
    bounds = _split(RANGE_SPLIT_RE, cleaned)
    if len(bounds) > 1:
        return "–".join(simplify(bound) for bound in bounds)
    return simplify(cleaned)


def normalize(raw: str | None) -> str:
    """Convert a raw wiki rarity string into one-over form.

    Multiple values separated by ``;`` or ``", "`` are normalized one by one
    and joined with ``"; "``. Values that match no known notation (for
    example ``"Always"`` or ``"Varies"``) pass through cleaned but otherwise
    unchanged.

    Args:
        raw: Rarity text as scraped from the drop table.

    Returns:
        Normalized rarity text.

    Example:
        >>> normalize("12.5%")
        '1/8'
        >>> normalize("1/128 – 1/64")
        '1/128–1/64'
    """
    if raw is None:
        return ""
    segments = _split(SEGMENT_SPLIT_RE, raw)
    return "; ".join(normalize_segment(segment) for segment in segments)


def sort_key(raw: str | None) -> float:
    """Return the numeric rarity used for ordering drops.

    The first ``1/N`` in the normalized form gives N. ``"Always"`` sorts
    first with 0. Everything else (empty, unparsed) is ``inf`` and sorts as
    the rarest.

    Args:
        raw: Rarity text as scraped from the drop table.

    Returns:
        The denominator of the rarity, 0.0 for "Always", or ``math.inf``.
    """
    one_over = normalize(raw)
    if not one_over:
        return math.inf

    match = ONE_OVER_RE.search(one_over)
    if match:
        return _safe_float(match.group(1))

    if one_over.lower() == ALWAYS:
        return 0.0

    return math.inf


__all__ = [
    "normalize",
    "normalize_segment",
    "clean_segment",
    "simplify",
    "format_one_over",
    "sort_key",
]
