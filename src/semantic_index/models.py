"""Pydantic models for semantic index data structures.

Everything that crosses a component boundary (store records, search hits,
indexing results, statistics) is validated against these schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from semantic_index.chunking import Chunk


class StoredDocument(BaseModel):
    """Document metadata paired one-to-one with a stored vector.

    Attributes:
        vector_id: Monotonic id shared with the vector record
        page_id: Owning page; many documents may share one page
        url: Page URL
        title: Page title
        chunk: The chunk whose embedding is stored under vector_id
        timestamp: Insertion time (UTC)
    """

    vector_id: int = Field(ge=0)
    page_id: str = Field(min_length=1)
    url: str
    title: str
    chunk: Chunk
    timestamp: datetime


class ScoredDocument(StoredDocument):
    """A stored document ranked against a query embedding.

    Attributes:
        similarity: Cosine similarity in [-1, 1], higher is better
        distance: 1 - similarity
        rank: Result rank in the returned list (1-indexed)
    """

    similarity: float
    distance: float
    rank: int = Field(ge=1)


class StoreStats(BaseModel):
    """Statistics about the vector store.

    Attributes:
        total_documents: Number of stored documents
        total_vectors: Number of stored vectors (always equals total_documents)
        dimension: Configured embedding dimension
        max_elements: Configured capacity
        capacity_usage: Utilisation as a percentage string (e.g. "12.50%")
    """

    total_documents: int = Field(ge=0)
    total_vectors: int = Field(ge=0)
    dimension: int = Field(ge=1)
    max_elements: int = Field(ge=1)
    capacity_usage: str


class IndexedPageEntry(BaseModel):
    """Summary of the latest indexing run for one page."""

    page_id: str
    url: str
    title: str
    chunks_count: int = Field(ge=0)
    vector_ids: list[int] = Field(default_factory=list)
    indexed_at: datetime


class IndexResult(BaseModel):
    """Outcome of indexing a single page.

    Attributes:
        page_id: Page that was indexed
        chunks_indexed: Number of chunks produced for the page
        time_elapsed: Wall-clock seconds spent indexing
        vector_ids: Ids of successfully stored vectors, in chunk order
        chunks_failed: Chunks whose store insert failed and were skipped
    """

    page_id: str
    chunks_indexed: int = Field(ge=0)
    time_elapsed: float = Field(ge=0.0)
    vector_ids: list[int] = Field(default_factory=list)
    chunks_failed: int = Field(default=0, ge=0)


class PageInput(BaseModel):
    """A page submitted for batch indexing."""

    page_id: str = Field(min_length=1)
    url: str
    title: str = ""
    content: str = ""


class PageIndexOutcome(BaseModel):
    """Per-page result of a batch indexing run."""

    page_id: str
    success: bool
    chunks_indexed: int = Field(default=0, ge=0)
    time_elapsed: float = Field(default=0.0, ge=0.0)
    vector_ids: list[int] = Field(default_factory=list)
    error: str | None = None


class SearchOptions(BaseModel):
    """Tuning knobs for a content search.

    Attributes:
        min_score: Optional similarity floor applied after page deduplication
        overfetch_factor: Candidates fetched per requested result, so that
            page deduplication does not starve the final result count
        snippet_length: Snippet window size in characters
        snippet_step: Snippet window stride in characters
    """

    min_score: float | None = Field(default=None, ge=-1.0, le=1.0)
    overfetch_factor: int = Field(default=3, ge=1, le=20)
    snippet_length: int = Field(default=200, ge=20)
    snippet_step: int = Field(default=50, ge=1)


class SearchHit(BaseModel):
    """A single ranked, page-deduplicated search result."""

    rank: int = Field(ge=1)
    page_id: str
    url: str
    title: str
    similarity: float
    snippet: str
    chunk_source: str
    matched_text: str


class EngineStats(BaseModel):
    """Statistics about the embedding engine."""

    model_config = ConfigDict(protected_namespaces=())

    is_initialized: bool
    model_name: str
    dimension: int = Field(ge=1)
    cache_size: int = Field(ge=0)
    max_cache_size: int = Field(ge=0)


class IndexerStats(BaseModel):
    """Combined statistics for the content indexer."""

    model_config = ConfigDict(protected_namespaces=())

    is_initialized: bool
    indexed_pages_count: int = Field(ge=0)
    total_documents: int = Field(ge=0)
    total_vectors: int = Field(ge=0)
    capacity_usage: str
    model_name: str
    dimension: int = Field(ge=1)
    cache_size: int = Field(ge=0)
