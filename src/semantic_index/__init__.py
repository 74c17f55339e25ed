"""Semantic indexing and retrieval for free-form text pages.

This package splits pages into overlapping chunks, embeds them with a
role-aware embedding model, stores the vectors in an exact in-memory store, and
answers natural-language queries with page-deduplicated, snippeted results.

Architecture:
    - chunking: Sentence-aware splitting for mixed Latin/CJK text
    - embedding: Model clients (OpenAI, local sentence-transformers) behind a
      cached, role-aware EmbeddingEngine
    - vector_store: Exact cosine-similarity store with capacity limits
    - retrieval: Page-level deduplication and snippet extraction
    - indexer: ContentIndexer orchestrating indexing and search
    - models: Pydantic schemas for documents, hits, results and stats

Usage:
    >>> from semantic_index import ContentIndexer
    >>> from semantic_index.config import load_config
    >>> indexer = ContentIndexer.from_config(load_config("default"))
    >>> await indexer.index_content("42", "https://example.com", "Title", "Body text...")
    >>> hits = await indexer.search_content("what does the body say", top_k=5)
"""

__version__ = "0.1.0"

from semantic_index.chunking import Chunk, ChunkingConfig, SentenceChunker
from semantic_index.embedding import EmbeddingConfig, EmbeddingEngine
from semantic_index.errors import (
    CapacityExceededError,
    DimensionMismatchError,
    ModelError,
    SemanticIndexError,
)
from semantic_index.indexer import ContentIndexer
from semantic_index.models import IndexResult, ScoredDocument, SearchHit, SearchOptions
from semantic_index.vector_store import InMemoryVectorStore

__all__ = [
    "CapacityExceededError",
    "Chunk",
    "ChunkingConfig",
    "ContentIndexer",
    "DimensionMismatchError",
    "EmbeddingConfig",
    "EmbeddingEngine",
    "InMemoryVectorStore",
    "IndexResult",
    "ModelError",
    "ScoredDocument",
    "SearchHit",
    "SearchOptions",
    "SemanticIndexError",
    "SentenceChunker",
]
