"""
Schema migrations.

Version 1 kept raw content and vectors in a single ``items`` table.
Version 2 splits them into ``items_raw`` and ``items_embeddings``.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from semantic_stash.models import UNKNOWN_MODEL, utc_now_iso
from semantic_stash.storage.models import EmbeddingRecord, RawItemRow
from semantic_stash.storage.protocols import ItemDatabase

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
SCHEMA_VERSION_MARKER = "schema_version"


def _legacy_vector(value: Any) -> Optional[List[float]]:
    if value is None:
        return None
    if isinstance(value, (str, bytes)):
        value = json.loads(value)
    vector = [float(x) for x in value]
    return vector or None


def _migrate_row(database: ItemDatabase, data: Dict[str, Any]) -> bool:
    item_id = data.get("id")
    if not item_id or database.raw.get(item_id) is not None:
        return False

    now = utc_now_iso()
    created_at = data.get("created_at") or now
    database.raw.add(
        RawItemRow(
            id=item_id,
            type=data.get("type") or "text",
            payload=data.get("payload") or "",
            description=data.get("description") or "",
            created_at=created_at,
            last_accessed_at=data.get("last_accessed_at") or created_at,
        )
    )

    try:
        vector = _legacy_vector(data.get("vector"))
    except (TypeError, ValueError) as e:
        logger.warning(f"Dropping unreadable legacy vector of item {item_id}: {e}")
        vector = None

    # Items without a usable vector are re-embedded lazily
    if vector is not None:
        database.embeddings.add(
            EmbeddingRecord(
                id=item_id,
                embedding_model=data.get("embedding_model") or UNKNOWN_MODEL,
                vector=vector,
                created_at=now,
            )
        )
    return True


def migrate(database: ItemDatabase) -> int:
    """
    Bring the database to the current schema version.

    Copies rows of a legacy single-table layout into the two tables. Ids
    already present in the raw table are skipped, and the legacy table is
    left in place.

    Returns:
        Number of migrated items
    """
    version = database.get_marker(SCHEMA_VERSION_MARKER)
    if version is not None and int(version) >= SCHEMA_VERSION:
        return 0

    migrated = 0
    legacy_rows = database.legacy_rows()
    if legacy_rows:
        logger.info(f"Migrating {len(legacy_rows)} items from the single-table layout")
        for data in legacy_rows:
            try:
                if _migrate_row(database, data):
                    migrated += 1
            except Exception as e:
                logger.error(f"Failed to migrate legacy item {data.get('id')}: {e}")
        logger.info(f"Migrated {migrated} legacy items")

    database.set_marker(SCHEMA_VERSION_MARKER, str(SCHEMA_VERSION))
    return migrated
