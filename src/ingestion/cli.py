"""Command-line interface for ingesting and searching learning material."""

import argparse
import asyncio
import uuid
from pathlib import Path

from src.utils.logging import get_logger

from .config import get_config
from .exceptions import PipelineError
from .pipeline import IngestionPipeline
from .schemas import ProcessedContent, RetrievalResult

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        description="Learning material pipeline - ingest sources and search them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest a YouTube video and ask a question without writing to the database
  python -m src.ingestion.cli youtube https://youtu.be/dQw4w9WgXcQ --dry-run --query "chorus"

  # Ingest a PDF under a fixed content ID
  python -m src.ingestion.cli pdf notes.pdf --content-id biology-ch1

  # Ingest a text file
  python -m src.ingestion.cli text summary.txt

  # Search a stored item
  python -m src.ingestion.cli search biology-ch1 "photosynthesis" --top-k 3
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, target_help in (
        ("youtube", "YouTube URL or video ID"),
        ("pdf", "Path to a PDF file"),
        ("text", "Path to a UTF-8 text file"),
    ):
        sub = subparsers.add_parser(name, help=f"Ingest a {name} source")
        sub.add_argument("source", help=target_help)
        sub.add_argument(
            "--content-id",
            type=str,
            help="Content ID to store the item under (default: random UUID)",
        )
        sub.add_argument(
            "--query",
            type=str,
            help="Run a search against the item after ingesting it",
        )
        sub.add_argument(
            "--top-k",
            type=int,
            help="Number of search results to show",
        )
        sub.add_argument(
            "--dry-run",
            action="store_true",
            help="Dry run mode - process but don't write to database",
        )

    search_parser = subparsers.add_parser("search", help="Search a stored item")
    search_parser.add_argument("content_id", help="Content ID of a processed item")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--top-k", type=int, help="Number of search results to show")

    return parser


def _print_content(content: ProcessedContent) -> None:
    print("\n" + "=" * 60)
    print("Ingestion Results")
    print("=" * 60)
    print(f"Content ID: {content.content_id}")
    print(f"Source type: {content.source_type.value}")
    print(f"Text length: {len(content.extracted_text.text)} characters")
    print(f"Chunks created: {len(content.chunks)}")
    if content.source_type.value == "youtube":
        print(f"Transcript source: {content.extracted_text.metadata.get('source')}")
    if content.has_valid_embeddings:
        print("\n✅ Embeddings generated")
    else:
        print("\n⚠️  No embeddings - search will use keyword matching")
    print("=" * 60 + "\n")


def _print_results(query: str, results: list[RetrievalResult]) -> None:
    print("=" * 60)
    print(f"Search: {query}")
    print("=" * 60)
    if not results:
        print("No matching chunks found.")
    for result in results:
        chunk = result.chunk
        location = ""
        if chunk.timestamp is not None:
            location = f" [{chunk.timestamp}]"
        elif chunk.page is not None:
            location = f" [page {chunk.page}]"
        print(f"\n#{result.rank} (score: {result.score:.3f}){location}")
        print(chunk.text.strip())
    print("=" * 60 + "\n")


async def run(args: argparse.Namespace) -> int:
    """Execute a parsed CLI command. Returns the process exit code."""
    config = get_config()
    dry_run = getattr(args, "dry_run", False)

    logger.info("cli_started", command=args.command, dry_run=dry_run)

    print("\n" + "=" * 60)
    print("Learning Material Pipeline")
    print("=" * 60)
    print(f"Embedding provider: {config.embedding_provider}")
    print(f"Embedding model: {config.embedding_model}")
    print(f"Chunk size: {config.chunk_size} characters (overlap {config.chunk_overlap})")
    if dry_run:
        print("\n⚠️  DRY RUN MODE - No database writes will occur")
    elif not config.storage_enabled:
        print("\n⚠️  Supabase not configured - results are kept in memory only")
    print("=" * 60 + "\n")

    pipeline = IngestionPipeline(config, dry_run=dry_run)

    try:
        if args.command == "search":
            results = await pipeline.search(args.content_id, args.query, args.top_k)
            _print_results(args.query, results)
            return 0

        content_id = args.content_id or str(uuid.uuid4())
        if args.command == "youtube":
            content = await pipeline.ingest_youtube(content_id, args.source)
        elif args.command == "pdf":
            buffer = Path(args.source).read_bytes()
            content = await pipeline.ingest_pdf(content_id, buffer, raw_location=args.source)
        else:
            text = Path(args.source).read_text(encoding="utf-8")
            content = await pipeline.ingest_text(content_id, text)

        _print_content(content)

        if args.query:
            results = await pipeline.search(content_id, args.query, args.top_k)
            _print_results(args.query, results)

    except PipelineError as e:
        logger.error("cli_command_failed", error_type=type(e).__name__, error=e.message)
        print(f"\n❌ {e.message}")
        if e.hint:
            print(f"   {e.hint}")
        return 1

    except Exception as e:
        logger.exception("cli_command_failed", error_type=type(e).__name__)
        print(f"\n❌ Command failed: {str(e)}")
        return 1

    finally:
        await pipeline.aclose()

    logger.info("cli_completed", command=args.command, content_id=content.content_id)
    return 0


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
