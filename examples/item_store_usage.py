"""
Item Store Usage Example

Demonstrates adding, searching and exporting items, and switching the
embedding model with rebuild progress reporting.
"""

import asyncio
import logging
import tempfile
from pathlib import Path

from semantic_stash import CallbackRebuildEventSink, ItemStore, ModelType, StoreConfig


async def main():
    logging.basicConfig(level=logging.INFO)

    with tempfile.TemporaryDirectory() as tmp:
        config = StoreConfig(storage_path=Path(tmp) / "stash")
        sink = CallbackRebuildEventSink(
            on_started=lambda e: print(f"Rebuilding {e.total} embeddings with {e.model}"),
            on_progress=lambda e: print(f"  {e.current}/{e.total}"),
            on_complete=lambda e: print(f"Done: {e.success_count} ok, {e.error_count} failed"),
        )
        store = await ItemStore.open(config, sink=sink)

        try:
            await store.add_item(
                {"type": "link", "payload": "https://github.com", "description": "GitHub homepage"}
            )
            await store.add_item(
                {
                    "type": "kusto_query",
                    "payload": "Resources | where resourceType == 'microsoft.compute/virtualmachines'",
                    "description": "All virtual machines",
                }
            )

            for query in ("github", "resource type"):
                print(f"\nSearch: {query}")
                for item in await store.search_items(query):
                    print(f"  [{item.type}] {item.description} ({item.embedding_model})")

            if store.can_use_heavy_model():
                state = await store.set_embedding_model(ModelType.SENTENCE_ENCODER)
                if state.is_fallback:
                    print(f"Sentence encoder unavailable: {state.fallback_reason}")

            print("\nModel:", store.model_info())
            print("\nExport (CSV):")
            print(await store.export_items("csv"))
        finally:
            store.close()


if __name__ == "__main__":
    asyncio.run(main())
