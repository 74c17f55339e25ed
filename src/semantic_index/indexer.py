"""End-to-end content indexing and semantic search.

Combines chunking, embedding, vector storage and result post-processing:

Indexing:
1. Chunk the page title and content
2. Embed all chunks in one passage batch
3. Store each (chunk, embedding) pair in chunk order
4. Record an IndexedPageEntry for the page

Searching:
1. Embed the query
2. Over-fetch candidates from the vector store
3. Keep the best hit per page
4. Build snippets around the query words
"""

import asyncio
import time
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from semantic_index.chunking import Chunker, ChunkingConfig, SentenceChunker
from semantic_index.concurrency import InitializationGuard
from semantic_index.config import SemanticIndexConfig
from semantic_index.embedding import EmbeddingEngine, create_embedding_client
from semantic_index.errors import SemanticIndexError
from semantic_index.hooks import (
    CHUNK_INSERT_FAILED,
    INDEX_CLEARED,
    INITIALIZE_END,
    INITIALIZE_FAILED,
    INITIALIZE_START,
    PAGE_FAILED,
    PAGE_INDEXED,
    PAGE_REMOVED,
    LifecycleHook,
    emit_event,
)
from semantic_index.models import (
    IndexedPageEntry,
    IndexerStats,
    IndexResult,
    PageIndexOutcome,
    PageInput,
    SearchHit,
    SearchOptions,
)
from semantic_index.retrieval import dedupe_by_page, generate_snippet
from semantic_index.vector_store import InMemoryVectorStore, VectorStore


class ContentIndexer:
    """Indexes page content into a vector store and answers semantic queries.

    Designed for one caller at a time: each operation completes before its
    result is returned. Concurrent initialize() calls share one attempt.
    """

    def __init__(
        self,
        engine: EmbeddingEngine,
        store: VectorStore,
        chunking_config: ChunkingConfig | None = None,
        hook: LifecycleHook | None = None,
        chunker: Chunker | None = None,
    ):
        """Initialize content indexer.

        Args:
            engine: Role-aware embedding capability
            store: Vector store for chunk embeddings
            chunking_config: Configuration for text chunking (uses defaults if None)
            hook: Optional lifecycle hook for observability
            chunker: Custom chunker; overrides chunking_config when given

        Raises:
            ValueError: If the engine and store disagree on dimension
        """
        store_dimension = store.stats().dimension
        if store_dimension != engine.dimension:
            raise ValueError(
                f"Embedding dimension {engine.dimension} does not match "
                f"store dimension {store_dimension}"
            )

        self.engine = engine
        self.store = store
        self.hook = hook
        self.chunker: Chunker = chunker or SentenceChunker(chunking_config or ChunkingConfig())

        self._indexed_pages: dict[str, IndexedPageEntry] = {}
        self._init_guard = InitializationGuard()

    @classmethod
    def from_config(
        cls, config: SemanticIndexConfig, hook: LifecycleHook | None = None
    ) -> "ContentIndexer":
        """Build the full pipeline from a loaded configuration.

        Example:
            >>> from semantic_index.config import load_config
            >>> indexer = ContentIndexer.from_config(load_config("default"))
        """
        client = create_embedding_client(config.embedding)
        engine = EmbeddingEngine(client, config.embedding, hook=hook)
        store = InMemoryVectorStore(
            dimension=config.embedding.dimensions,
            max_elements=config.store.max_elements,
        )
        return cls(engine, store, chunking_config=config.chunking, hook=hook)

    @property
    def is_initialized(self) -> bool:
        return self._init_guard.completed

    async def initialize(self) -> None:
        """Initialise the embedding engine and the store.

        Raises:
            ModelError: If the embedding model cannot be loaded
        """
        await self._init_guard.run(self._initialize_components)

    async def _initialize_components(self) -> None:
        emit_event(self.hook, INITIALIZE_START, model=self.engine.model_name)
        logger.info("Initializing content indexer...")
        start = time.perf_counter()
        try:
            await asyncio.gather(self.engine.initialize(), self.store.initialize())
        except Exception as exc:
            logger.error(f"Content indexer failed to initialize: {exc}")
            emit_event(self.hook, INITIALIZE_FAILED, error=str(exc))
            raise

        elapsed = time.perf_counter() - start
        logger.info(f"Content indexer ready ({elapsed:.2f}s)")
        emit_event(self.hook, INITIALIZE_END, time_elapsed=elapsed)

    async def index_content(self, page_id: str, url: str, title: str, content: str) -> IndexResult:
        """Index a single page.

        Re-indexing a page replaces its previously stored vectors. Empty
        content is not an error and leaves the store untouched.

        Args:
            page_id: Page identifier
            url: Page URL
            title: Page title (indexed as its own chunk when long enough)
            content: Page body text

        Returns:
            IndexResult with chunk count, elapsed seconds and stored vector ids

        Raises:
            ModelError: If the embedding model cannot be initialised
        """
        await self.initialize()

        logger.info(f"Indexing page '{title}' (ID: {page_id}, {len(content)} chars)")
        start = time.perf_counter()

        chunks = self.chunker.chunk(content, title)
        if not chunks:
            logger.warning(f"No chunks produced for page {page_id}; skipping")
            return IndexResult(
                page_id=page_id,
                chunks_indexed=0,
                time_elapsed=time.perf_counter() - start,
            )

        embeddings = await self.engine.embed_batch([c.text for c in chunks], role="passage")

        removed = await self.store.remove_by_owner(page_id)
        if removed:
            logger.debug(f"Replaced {removed} previously stored vectors for page {page_id}")

        vector_ids: list[int] = []
        failed = 0
        for position, (chunk, embedding) in enumerate(zip(chunks, embeddings, strict=True)):
            try:
                vector_id = await self.store.insert(page_id, url, title, chunk, embedding)
            except (SemanticIndexError, ValueError) as exc:
                failed += 1
                logger.warning(f"  Chunk {position + 1}/{len(chunks)} not stored: {exc}")
                emit_event(
                    self.hook,
                    CHUNK_INSERT_FAILED,
                    page_id=page_id,
                    chunk_index=chunk.index,
                    error=str(exc),
                )
                continue
            vector_ids.append(vector_id)

        self._indexed_pages[page_id] = IndexedPageEntry(
            page_id=page_id,
            url=url,
            title=title,
            chunks_count=len(chunks),
            vector_ids=vector_ids,
            indexed_at=datetime.now(UTC),
        )

        elapsed = time.perf_counter() - start
        logger.info(
            f"Indexed {len(vector_ids)}/{len(chunks)} chunks for page '{title}' "
            f"in {elapsed:.2f}s"
        )
        emit_event(
            self.hook,
            PAGE_INDEXED,
            page_id=page_id,
            chunks_indexed=len(chunks),
            vectors_stored=len(vector_ids),
            time_elapsed=elapsed,
        )

        return IndexResult(
            page_id=page_id,
            chunks_indexed=len(chunks),
            time_elapsed=elapsed,
            vector_ids=vector_ids,
            chunks_failed=failed,
        )

    async def index_content_batch(
        self, pages: Sequence[PageInput | Mapping[str, Any]]
    ) -> list[PageIndexOutcome]:
        """Index pages one after another, isolating failures per page.

        Args:
            pages: PageInput objects or dicts with page_id, url, title, content

        Returns:
            One outcome per input page, in input order
        """
        logger.info(f"Batch indexing {len(pages)} pages...")
        outcomes: list[PageIndexOutcome] = []

        for number, raw_page in enumerate(pages, start=1):
            page_id = _raw_page_id(raw_page)
            logger.debug(f"Progress: {number}/{len(pages)}")

            try:
                page = (
                    raw_page
                    if isinstance(raw_page, PageInput)
                    else PageInput.model_validate(raw_page)
                )
                result = await self.index_content(page.page_id, page.url, page.title, page.content)
            except Exception as exc:
                logger.error(f"Page {page_id} failed to index: {exc}")
                emit_event(self.hook, PAGE_FAILED, page_id=page_id, error=str(exc))
                outcomes.append(PageIndexOutcome(page_id=page_id, success=False, error=str(exc)))
                continue

            outcomes.append(
                PageIndexOutcome(
                    page_id=result.page_id,
                    success=True,
                    chunks_indexed=result.chunks_indexed,
                    time_elapsed=result.time_elapsed,
                    vector_ids=result.vector_ids,
                )
            )

        succeeded = sum(1 for o in outcomes if o.success)
        logger.info(
            f"Batch indexing done: {succeeded} succeeded, {len(outcomes) - succeeded} failed"
        )
        return outcomes

    async def search_content(
        self, query: str, top_k: int = 10, options: SearchOptions | None = None
    ) -> list[SearchHit]:
        """Semantic search over indexed pages, one result per page.

        Args:
            query: Natural language query
            top_k: Maximum number of results
            options: Optional search tuning (score floor, snippet window)

        Returns:
            Up to top_k hits ranked by similarity

        Raises:
            ValueError: If top_k is not positive
            ModelError: If the query cannot be embedded
            DimensionMismatchError: If the query embedding has the wrong length
        """
        if top_k <= 0:
            raise ValueError(f"top_k must be positive, got {top_k}")
        options = options or SearchOptions()

        await self.initialize()
        start = time.perf_counter()

        query_embedding = await self.engine.embed(query, role="query")
        candidates = await self.store.search(query_embedding, top_k * options.overfetch_factor)

        unique = dedupe_by_page(candidates)
        if options.min_score is not None:
            unique = [r for r in unique if r.similarity >= options.min_score]
        top_results = unique[:top_k]

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"Search {query!r}: {len(candidates)} candidates, "
            f"{len(top_results)} results ({elapsed_ms:.0f}ms)"
        )

        return [
            SearchHit(
                rank=rank,
                page_id=result.page_id,
                url=result.url,
                title=result.title,
                similarity=result.similarity,
                snippet=generate_snippet(
                    result.chunk.text, query, options.snippet_length, options.snippet_step
                ),
                chunk_source=result.chunk.source,
                matched_text=result.chunk.text,
            )
            for rank, result in enumerate(top_results, start=1)
        ]

    async def remove_page_index(self, page_id: str) -> int:
        """Delete a page's vectors and its IndexedPageEntry.

        Returns:
            Number of vectors removed (0 if the page was not indexed)
        """
        removed = await self.store.remove_by_owner(page_id)
        self._indexed_pages.pop(page_id, None)

        logger.info(f"Removed page {page_id} ({removed} vectors)")
        emit_event(self.hook, PAGE_REMOVED, page_id=page_id, vectors_removed=removed)
        return removed

    def clear_all(self) -> None:
        """Drop every vector, page entry and cached embedding."""
        self.store.clear()
        self._indexed_pages.clear()
        self.engine.clear_cache()

        logger.info("All indexes cleared")
        emit_event(self.hook, INDEX_CLEARED)

    def get_stats(self) -> IndexerStats:
        store_stats = self.store.stats()
        engine_stats = self.engine.stats()

        return IndexerStats(
            is_initialized=self.is_initialized,
            indexed_pages_count=len(self._indexed_pages),
            total_documents=store_stats.total_documents,
            total_vectors=store_stats.total_vectors,
            capacity_usage=store_stats.capacity_usage,
            model_name=engine_stats.model_name,
            dimension=engine_stats.dimension,
            cache_size=engine_stats.cache_size,
        )

    def get_indexed_pages(self) -> list[IndexedPageEntry]:
        return list(self._indexed_pages.values())

    def is_page_indexed(self, page_id: str) -> bool:
        return page_id in self._indexed_pages

    async def dispose(self) -> None:
        """Release the model and drop all indexed state."""
        await self.engine.dispose()
        self.store.clear()
        self._indexed_pages.clear()
        self._init_guard.reset()

        logger.info("Content indexer disposed")


def _raw_page_id(page: PageInput | Mapping[str, Any]) -> str:
    if isinstance(page, PageInput):
        return page.page_id
    return str(page.get("page_id", ""))
