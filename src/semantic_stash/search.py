"""
Hybrid search helpers.

The fuzzy pass tolerates spacing, underscore and hyphen differences so that
"resource type" finds "resourceType" and vice versa. The vector pass and the
merge happen in ItemStore.search_items; the pieces here are pure.
"""

import logging
import re
from typing import TYPE_CHECKING, Dict, Iterable, List

if TYPE_CHECKING:
    from semantic_stash.models import Item
    from semantic_stash.storage.models import RawItemRow
    from semantic_stash.storage.protocols import RawItemStore

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\s_-]+")

# Normalized queries this short match almost everything
MIN_NORMALIZED_LENGTH = 2


def normalize_for_search(text: str) -> str:
    """Lowercase and drop whitespace, underscores and hyphens."""
    return _SEPARATORS.sub("", text.lower()).strip()


def create_search_patterns(query: str) -> List[str]:
    """
    Patterns tried by the fuzzy pass, in order.

    The lowercased query, its normalized form, and every word of at least two
    characters. Duplicates and empty patterns are dropped.

    Example:
        >>> create_search_patterns("Resource Type")
        ['resource type', 'resourcetype', 'resource', 'type']
    """
    lowered = query.lower().strip()
    candidates = [lowered, normalize_for_search(query)]
    candidates.extend(word for word in lowered.split() if len(word) > 1)

    patterns: List[str] = []
    for pattern in candidates:
        if pattern and pattern not in patterns:
            patterns.append(pattern)
    return patterns


def fuzzy_text_search(raw_store: "RawItemStore", query: str) -> List["RawItemRow"]:
    """
    Substring search over description and payload.

    Every pattern is matched case-insensitively against the raw fields. When
    the normalized query is longer than two characters it is also matched
    against the normalized fields. Results are unioned by id in first-seen
    order.
    """
    matches: Dict[str, "RawItemRow"] = {}

    def collect(rows: Iterable["RawItemRow"]) -> None:
        for row in rows:
            matches.setdefault(row.id, row)

    for pattern in create_search_patterns(query):
        collect(raw_store.search_text(pattern))

    normalized = normalize_for_search(query)
    if len(normalized) > MIN_NORMALIZED_LENGTH:
        collect(raw_store.search_text(normalized, normalize_fields=True))

    logger.debug(f"Fuzzy pass for '{query}' matched {len(matches)} items")
    return list(matches.values())


def merge_results(
    fuzzy_items: List["Item"], vector_items: List["Item"], limit: int
) -> List["Item"]:
    """
    Merge both passes keyed by id.

    Fuzzy hits come first and win over a vector hit for the same id; vector
    hits follow in score order.
    """
    merged: Dict[str, "Item"] = {}
    for item in fuzzy_items:
        merged.setdefault(item.id, item)
    for item in vector_items:
        merged.setdefault(item.id, item)
    return list(merged.values())[:limit]
