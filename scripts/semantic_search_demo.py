#!/usr/bin/env python
"""Index a directory of text files and run semantic searches against it.

Every *.txt and *.md file becomes one page (page id = relative path, title =
file stem). The index lives in memory for the duration of the run.

Usage:
    python scripts/semantic_search_demo.py docs/ "how do I rotate credentials?"
    python scripts/semantic_search_demo.py notes/ "pcr protocol" --top-k 3 --min-score 0.3
    python scripts/semantic_search_demo.py notes/ "query" -o chunking.max_words_per_chunk=120
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import click
from loguru import logger

from semantic_index.config import load_config
from semantic_index.indexer import ContentIndexer
from semantic_index.models import PageInput, SearchOptions

# Configure logging
logger.remove()
logger.add(sys.stderr, level="INFO", format="<level>{message}</level>")

TEXT_SUFFIXES = {".txt", ".md"}


def collect_pages(root: Path) -> list[PageInput]:
    """Read every text file under root into a PageInput."""
    pages = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in TEXT_SUFFIXES:
            continue
        relative = path.relative_to(root).as_posix()
        pages.append(
            PageInput(
                page_id=relative,
                url=path.resolve().as_uri(),
                title=path.stem.replace("_", " ").replace("-", " "),
                content=path.read_text(encoding="utf-8", errors="replace"),
            )
        )
    return pages


def log_event(event: str, fields: dict) -> None:
    logger.debug(f"[{event}] {fields}")


async def run(
    directory: Path,
    queries: tuple[str, ...],
    top_k: int,
    min_score: float | None,
    overrides: tuple[str, ...],
) -> None:
    config = load_config("default", overrides=list(overrides))
    indexer = ContentIndexer.from_config(config, hook=log_event)

    pages = collect_pages(directory)
    if not pages:
        logger.warning(f"No .txt or .md files found under {directory}")
        return

    logger.info("=" * 60)
    logger.info(f"Indexing {len(pages)} files from {directory}")
    logger.info("=" * 60)

    try:
        outcomes = await indexer.index_content_batch(pages)
        for outcome in outcomes:
            if not outcome.success:
                logger.error(f"❌ {outcome.page_id}: {outcome.error}")

        stats = indexer.get_stats()
        logger.info(
            f"Index holds {stats.total_vectors} vectors from {stats.indexed_pages_count} pages "
            f"(capacity used: {stats.capacity_usage})\n"
        )

        options = SearchOptions(min_score=min_score)
        for query in queries:
            logger.info(f"🔍 Searching: '{query}'")
            hits = await indexer.search_content(query, top_k=top_k, options=options)
            if not hits:
                logger.warning("No results found!\n")
                continue

            for hit in hits:
                logger.info(f"{'=' * 60}")
                logger.info(f"Result {hit.rank} (similarity: {hit.similarity:.4f})")
                logger.info(f"📄 Page: {hit.title} [{hit.page_id}]")
                logger.info(f"🔗 URL: {hit.url}")
                logger.info(f"\n📝 Snippet:\n{hit.snippet}\n")
    finally:
        await indexer.dispose()


@click.command()
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.argument("queries", nargs=-1, required=True)
@click.option("--top-k", default=5, show_default=True, help="Number of results per query")
@click.option("--min-score", type=float, default=None, help="Drop results below this similarity")
@click.option(
    "-o",
    "--override",
    "overrides",
    multiple=True,
    help="Hydra-style config override, e.g. chunking.max_words_per_chunk=120",
)
@click.option("--verbose", is_flag=True, help="Log lifecycle events")
def cli(
    directory: Path,
    queries: tuple[str, ...],
    top_k: int,
    min_score: float | None,
    overrides: tuple[str, ...],
    verbose: bool,
):
    """Index DIRECTORY in memory and answer each of QUERIES."""
    if verbose:
        logger.remove()
        logger.add(sys.stderr, level="DEBUG", format="<level>{message}</level>")
    asyncio.run(run(directory, queries, top_k, min_score, overrides))


if __name__ == "__main__":
    cli()
