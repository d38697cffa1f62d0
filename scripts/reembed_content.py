"""Script to retry embedding for items stored without embeddings.

Embedding failures during ingestion are not fatal: the item is stored with
embeddings set to null and served by keyword search. This script:
1. Finds processed items without embeddings
2. Reprocesses each one (re-chunk and re-embed, replacing the record)
3. Reports which items still have no embeddings
"""

import argparse
import asyncio

from src.ingestion.config import get_config
from src.ingestion.pipeline import IngestionPipeline
from src.ingestion.storage_service import StorageService


async def reembed(content_ids: list[str] | None = None, assume_yes: bool = False) -> None:
    """Reprocess items that have no embeddings."""
    config = get_config()

    if not config.storage_enabled:
        raise ValueError("Missing SUPABASE_URL or SUPABASE_SERVICE_KEY")

    storage = StorageService(config)
    pipeline = IngestionPipeline(config, storage_service=storage)

    if pipeline.embedding_service is None:
        raise ValueError("Embeddings are disabled - set EMBEDDING_API_KEY first")

    targets = content_ids or await storage.list_content_without_embeddings()

    print("Current state:")
    print(f"  Items without embeddings: {len(targets)}")

    if not targets:
        print("Nothing to do")
        await pipeline.aclose()
        return

    if not assume_yes:
        confirm = input("\nReprocess these items? Type 'yes' to continue: ")
        if confirm.lower() != "yes":
            print("Aborted")
            await pipeline.aclose()
            return

    still_missing: list[str] = []
    try:
        for content_id in targets:
            content = await pipeline.reprocess(content_id)
            status = "ok" if content.has_valid_embeddings else "no embeddings"
            if not content.has_valid_embeddings:
                still_missing.append(content_id)
            print(f"  {content_id}: {len(content.chunks)} chunks, {status}")
    finally:
        await pipeline.aclose()

    print(f"\nDone! {len(targets) - len(still_missing)} of {len(targets)} items embedded.")
    if still_missing:
        print("Still missing embeddings:")
        for content_id in still_missing:
            print(f"  {content_id}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Retry embedding for stored items")
    parser.add_argument("content_ids", nargs="*", help="Specific content IDs (default: all missing)")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    args = parser.parse_args()

    asyncio.run(reembed(args.content_ids or None, assume_yes=args.yes))
