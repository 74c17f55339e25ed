"""Vector store management and exact similarity search.

Provides an abstract store interface plus an in-memory implementation with:
- Dimension and capacity checks on insert
- Exact cosine-similarity ranking by linear scan (no approximate index)
- Delete-by-page, clear, and statistics

Vectors and document metadata live in twin mappings keyed by one monotonic
integer id. Ids are never reused until clear() resets the counter.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import UTC, datetime

import numpy as np
from loguru import logger

from semantic_index.chunking import Chunk
from semantic_index.errors import CapacityExceededError, DimensionMismatchError
from semantic_index.models import ScoredDocument, StoredDocument, StoreStats


class VectorStore(ABC):
    """Abstract base class for vector store implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the store for use. Safe to call more than once."""
        ...

    @abstractmethod
    async def insert(
        self,
        page_id: str,
        url: str,
        title: str,
        chunk: Chunk,
        embedding: Sequence[float],
    ) -> int:
        """Store one embedding with its document metadata.

        Args:
            page_id: Owning page
            url: Page URL
            title: Page title
            chunk: Chunk the embedding was computed from
            embedding: Embedding vector of the configured dimension

        Returns:
            Newly assigned vector id

        Raises:
            DimensionMismatchError: If len(embedding) != dimension
            CapacityExceededError: If the store is full
        """
        ...

    @abstractmethod
    async def search(
        self, query_embedding: Sequence[float], top_k: int = 10
    ) -> list[ScoredDocument]:
        """Rank stored documents by cosine similarity to a query embedding.

        Args:
            query_embedding: Query vector of the configured dimension
            top_k: Maximum number of results

        Returns:
            Up to top_k documents, most similar first

        Raises:
            DimensionMismatchError: If the query has the wrong length
        """
        ...

    @abstractmethod
    async def remove_by_owner(self, page_id: str) -> int:
        """Delete every record owned by a page.

        Returns:
            Number of records removed (0 if the page had none)
        """
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drop all records and reset the id counter."""
        ...

    @abstractmethod
    def stats(self) -> StoreStats:
        """Get store statistics."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is usable.

        Returns:
            True if healthy, False otherwise
        """
        ...


def cosine_similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine similarity of each row of `matrix` against `query`.

    Rows (or a query) with zero norm score 0.
    """
    row_norms = np.linalg.norm(matrix, axis=1)
    query_norm = float(np.linalg.norm(query))
    if query_norm == 0.0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    denominators = row_norms * query_norm
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denominators > 0.0, dots / denominators, 0.0)
    return scores


class InMemoryVectorStore(VectorStore):
    """Exact linear-scan vector store held in process memory.

    Intended for small-to-medium corpora (up to max_elements vectors). Search
    cost is O(n·d) per query and results are exact top-K.

    Thread Safety:
        - Mutations are serialised by a per-instance writer lock
        - Search ranks a snapshot taken under the same lock, so it never sees
          a vector without its document (or vice versa)
    """

    def __init__(self, dimension: int = 384, max_elements: int = 10_000):
        """Initialize an empty store.

        Args:
            dimension: Required embedding length
            max_elements: Maximum number of stored vectors
        """
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        if max_elements <= 0:
            raise ValueError(f"max_elements must be positive, got {max_elements}")

        self.dimension = dimension
        self.max_elements = max_elements
        self.is_initialized = False

        self._vectors: dict[int, np.ndarray] = {}
        self._documents: dict[int, StoredDocument] = {}
        self._next_vector_id = 0
        self._lock = threading.RLock()

        # Stacked copy of _vectors for search; rebuilt lazily after mutation
        self._matrix: np.ndarray | None = None
        self._matrix_ids: list[int] = []

    async def initialize(self) -> None:
        """Mark the store ready. Nothing to load for an in-memory store."""
        if self.is_initialized:
            return
        self.is_initialized = True
        logger.debug(
            f"Vector store ready (dimension={self.dimension}, max_elements={self.max_elements})"
        )

    async def insert(
        self,
        page_id: str,
        url: str,
        title: str,
        chunk: Chunk,
        embedding: Sequence[float],
    ) -> int:
        """Store one embedding with its document metadata.

        Raises:
            DimensionMismatchError: If len(embedding) != dimension
            CapacityExceededError: If the store already holds max_elements vectors
        """
        if not self.is_initialized:
            await self.initialize()

        vector = np.asarray(embedding, dtype=np.float32)
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            actual = int(vector.shape[0]) if vector.ndim == 1 else int(vector.size)
            raise DimensionMismatchError(self.dimension, actual, operation="insert")

        with self._lock:
            if len(self._vectors) >= self.max_elements:
                logger.warning(f"Vector store reached capacity: {self.max_elements}")
                raise CapacityExceededError(self.max_elements)

            vector_id = self._next_vector_id
            document = StoredDocument(
                vector_id=vector_id,
                page_id=page_id,
                url=url,
                title=title,
                chunk=chunk,
                timestamp=datetime.now(UTC),
            )
            # State changes only after the document validates
            self._next_vector_id += 1
            self._vectors[vector_id] = vector
            self._documents[vector_id] = document
            self._matrix = None

        return vector_id

    async def search(
        self, query_embedding: Sequence[float], top_k: int = 10
    ) -> list[ScoredDocument]:
        """Rank stored documents by cosine similarity to a query embedding.

        Ties are broken by insertion order (lower vector id first).

        Raises:
            DimensionMismatchError: If the query has the wrong length
        """
        if not self.is_initialized:
            await self.initialize()

        query = np.asarray(query_embedding, dtype=np.float64)
        if query.ndim != 1 or query.shape[0] != self.dimension:
            actual = int(query.shape[0]) if query.ndim == 1 else int(query.size)
            raise DimensionMismatchError(self.dimension, actual, operation="search")

        if top_k <= 0:
            return []

        with self._lock:
            if not self._vectors:
                logger.debug("Vector store is empty, returning no results")
                return []
            matrix, ids = self._snapshot()
            documents = [self._documents[vector_id] for vector_id in ids]

        scores = cosine_similarities(matrix.astype(np.float64), query)
        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[: min(top_k, len(ids))]

        results: list[ScoredDocument] = []
        for rank, position in enumerate(order, start=1):
            similarity = float(scores[position])
            results.append(
                ScoredDocument(
                    **dict(documents[position]),
                    similarity=similarity,
                    distance=1.0 - similarity,
                    rank=rank,
                )
            )
        return results

    def _snapshot(self) -> tuple[np.ndarray, list[int]]:
        """Return the stacked vector matrix and its row ids. Caller holds the lock."""
        if self._matrix is None:
            self._matrix_ids = list(self._vectors)
            self._matrix = np.stack([self._vectors[i] for i in self._matrix_ids])
        return self._matrix, self._matrix_ids

    async def remove_by_owner(self, page_id: str) -> int:
        """Delete every vector and document owned by a page.

        Returns:
            Number of records removed (0 if none matched)
        """
        with self._lock:
            doomed = [vid for vid, doc in self._documents.items() if doc.page_id == page_id]
            for vector_id in doomed:
                del self._documents[vector_id]
                del self._vectors[vector_id]
            if doomed:
                self._matrix = None

        if doomed:
            logger.debug(f"Removed {len(doomed)} vectors for page {page_id!r}")
        return len(doomed)

    def clear(self) -> None:
        """Drop all records and reset the id counter to 0."""
        with self._lock:
            self._vectors.clear()
            self._documents.clear()
            self._next_vector_id = 0
            self._matrix = None
            self._matrix_ids = []
        logger.info("Vector store cleared")

    def stats(self) -> StoreStats:
        """Get store statistics."""
        with self._lock:
            total_vectors = len(self._vectors)
            total_documents = len(self._documents)

        return StoreStats(
            total_documents=total_documents,
            total_vectors=total_vectors,
            dimension=self.dimension,
            max_elements=self.max_elements,
            capacity_usage=f"{total_vectors / self.max_elements * 100:.2f}%",
        )

    async def health_check(self) -> bool:
        """Check that the twin mappings are consistent.

        Returns:
            True if every vector has exactly one document
        """
        with self._lock:
            return self._vectors.keys() == self._documents.keys()

    def page_ids(self) -> list[str]:
        """List distinct page ids, in first-insertion order."""
        with self._lock:
            return list(dict.fromkeys(doc.page_id for doc in self._documents.values()))

    def documents_for_page(self, page_id: str) -> list[StoredDocument]:
        """Return all documents owned by a page, in insertion order."""
        with self._lock:
            return [doc for doc in self._documents.values() if doc.page_id == page_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._vectors)
