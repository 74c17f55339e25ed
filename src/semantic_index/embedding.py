"""Embedding capability for role-aware vector generation.

Model clients (OpenAI API, local sentence-transformers) produce raw vectors.
EmbeddingEngine wraps a client with what the indexer relies on:
- a single in-flight initialisation shared by concurrent callers
- query/passage prefixing for E5-family models
- a fixed-capacity FIFO cache keyed by role and text
- per-item zero-vector fallback during batch embedding
"""

import asyncio
import time
from collections import OrderedDict
from typing import Literal, Protocol

import httpx
from loguru import logger
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)
from pydantic import BaseModel, Field

from semantic_index.concurrency import InitializationGuard
from semantic_index.errors import ModelError
from semantic_index.hooks import CHUNK_EMBED_FAILED, LifecycleHook, emit_event
from semantic_index.models import EngineStats

EmbeddingRole = Literal["query", "passage"]


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation.

    Attributes:
        model: Model identifier with backend prefix
            (e.g., "local/intfloat/multilingual-e5-small", "openai/text-embedding-3-small")
        version: Version tag for reindexing triggers (e.g., "v1")
        dimensions: Expected embedding dimensionality
        batch_size: Number of texts to embed per model call
        max_retries: Maximum retry attempts for transient failures
        timeout_seconds: API request timeout
        max_cache_size: Embedding cache capacity (0 disables caching)
        api_key: API key for external services (set via env var)
        cache_dir: Download cache directory for local models
    """

    model: str
    version: str
    dimensions: int = Field(ge=1, le=4096)
    batch_size: int = Field(default=32, ge=1, le=500)
    max_retries: int = Field(default=3, ge=1, le=10)
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    max_cache_size: int = Field(default=1000, ge=0)
    api_key: str | None = None
    cache_dir: str | None = None


class EmbeddingClient(Protocol):
    """Protocol for raw model clients. Texts arrive already role-prefixed."""

    async def initialize(self) -> None:
        """Load the model or open the connection."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of input texts (max batch_size)

        Returns:
            List of embedding vectors (same order as inputs)
        """
        ...

    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        ...

    async def close(self) -> None:
        """Release the model or connection."""
        ...


class OpenAIEmbedding:
    """OpenAI embedding client with retry logic and batching."""

    def __init__(self, config: EmbeddingConfig):
        """Initialize OpenAI client.

        Args:
            config: Embedding configuration with API key
        """
        self.config = config
        self.model_name = config.model.removeprefix("openai/")
        self.client: AsyncOpenAI | None = None
        self._open_client()

    def _open_client(self) -> None:
        # Retries are handled here, not inside the SDK
        self.client = AsyncOpenAI(
            api_key=self.config.api_key,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            max_retries=0,
        )

    async def initialize(self) -> None:
        """Reopen the HTTP client if close() released it."""
        if self.client is None:
            self._open_client()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a batch of texts with retry logic.

        Raises:
            ValueError: If batch size exceeds config limit or dimensions are wrong
            RuntimeError: If the client was closed and not reinitialized
            openai.APIError: For API failures after all retries
        """
        if len(texts) > self.config.batch_size:
            raise ValueError(f"Batch size {len(texts)} exceeds limit {self.config.batch_size}")

        if not texts:
            return []

        if self.client is None:
            raise RuntimeError("OpenAI client is closed; call initialize() first")

        for attempt in range(self.config.max_retries):
            try:
                response = await self.client.embeddings.create(model=self.model_name, input=texts)
                embeddings = [item.embedding for item in response.data]

                for i, emb in enumerate(embeddings):
                    if len(emb) != self.config.dimensions:
                        raise ValueError(
                            f"Expected {self.config.dimensions} dimensions, "
                            f"got {len(emb)} for text {i}"
                        )

                logger.debug(
                    f"Embedded {len(texts)} texts with {self.model_name} "
                    f"(attempt {attempt + 1}/{self.config.max_retries})"
                )
                return embeddings

            except (APITimeoutError, APIConnectionError) as e:
                logger.warning(
                    f"Timeout or connection error embedding batch "
                    f"(attempt {attempt + 1}/{self.config.max_retries}): {e}"
                )
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(2**attempt)
                else:
                    raise

            except RateLimitError as e:
                logger.warning(
                    f"Rate limited (attempt {attempt + 1}/{self.config.max_retries}): {e}"
                )
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(2 ** (attempt + 1))
                else:
                    raise

            except APIStatusError as e:
                # Non-retryable HTTP error
                logger.error(f"HTTP error embedding batch: {e}")
                raise

        raise RuntimeError("Exhausted all retry attempts")

    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None


class LocalEmbedding:
    """Local sentence-transformers model, mean-pooled and L2-normalised.

    The model is loaded in initialize() and encoding runs in a worker thread so
    the event loop stays responsive.
    """

    def __init__(self, config: EmbeddingConfig):
        """Record configuration; the model itself is loaded lazily.

        Args:
            config: Embedding configuration
        """
        self.config = config
        self.model_name = config.model.removeprefix("local/")
        self._model = None

    async def initialize(self) -> None:
        """Load (and download if needed) the sentence-transformers model.

        Raises:
            ValueError: If the model's dimension differs from config.dimensions
        """
        if self._model is not None:
            return

        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading local embedding model {self.model_name}")
        model = await asyncio.to_thread(
            SentenceTransformer, self.model_name, cache_folder=self.config.cache_dir
        )

        model_dimension = model.get_sentence_embedding_dimension()
        if model_dimension is not None and model_dimension != self.config.dimensions:
            raise ValueError(
                f"Model {self.model_name} produces {model_dimension} dimensions, "
                f"config expects {self.config.dimensions}"
            )
        self._model = model

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings using the local model.

        Raises:
            ValueError: If batch size exceeds config limit
            RuntimeError: If initialize() has not completed
        """
        if len(texts) > self.config.batch_size:
            raise ValueError(f"Batch size {len(texts)} exceeds limit {self.config.batch_size}")

        if not texts:
            return []

        if self._model is None:
            raise RuntimeError("Local embedding model is not loaded; call initialize() first")

        vectors = await asyncio.to_thread(
            self._model.encode,
            texts,
            batch_size=self.config.batch_size,
            normalize_embeddings=True,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return vectors.tolist()

    async def embed_single(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def close(self) -> None:
        self._model = None


def create_embedding_client(config: EmbeddingConfig) -> EmbeddingClient:
    """Factory function to create embedding client based on model config.

    Args:
        config: Embedding configuration

    Returns:
        Embedding client implementation

    Example:
        >>> config = EmbeddingConfig(
        ...     model="local/intfloat/multilingual-e5-small",
        ...     version="v1",
        ...     dimensions=384,
        ... )
        >>> client = create_embedding_client(config)
    """
    if config.model.startswith("openai/"):
        return OpenAIEmbedding(config)
    elif config.model.startswith("local/"):
        return LocalEmbedding(config)
    else:
        raise ValueError(
            f"Unknown model prefix in {config.model!r}. " f"Expected 'openai/' or 'local/'"
        )


class EmbeddingCache:
    """Fixed-capacity embedding cache with FIFO eviction.

    Keys are evicted strictly in the order they were first stored; reading a
    key does not refresh it.
    """

    def __init__(self, max_size: int = 1000):
        if max_size < 0:
            raise ValueError(f"max_size must be non-negative, got {max_size}")
        self.max_size = max_size
        self._entries: OrderedDict[str, list[float]] = OrderedDict()

    def get(self, key: str) -> list[float] | None:
        """Return a copy of the stored vector, or None on a miss."""
        vector = self._entries.get(key)
        return None if vector is None else list(vector)

    def put(self, key: str, vector: list[float]) -> None:
        if self.max_size == 0:
            return
        if key in self._entries:
            self._entries[key] = list(vector)
            return
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = list(vector)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class EmbeddingEngine:
    """Role-aware embedding capability consumed by the content indexer.

    Failure policy:
        - embed(): any model failure raises ModelError (a query has no fallback)
        - embed_batch(): a failing item gets a zero vector and the batch goes on
    """

    def __init__(
        self,
        client: EmbeddingClient,
        config: EmbeddingConfig,
        hook: LifecycleHook | None = None,
    ):
        """Initialize the engine around a model client.

        Args:
            client: Raw model client
            config: Embedding configuration (dimension, batch size, cache size)
            hook: Optional lifecycle hook notified of per-item failures
        """
        self.client = client
        self.config = config
        self.model_name = config.model
        self.dimension = config.dimensions
        self.hook = hook
        self.cache = EmbeddingCache(config.max_cache_size)
        self._init_guard = InitializationGuard()

    @property
    def is_initialized(self) -> bool:
        return self._init_guard.completed

    async def initialize(self) -> None:
        """Load the model once; concurrent callers share one attempt.

        Raises:
            ModelError: If the model fails to load. A later call retries.
        """
        await self._init_guard.run(self._load)

    async def _load(self) -> None:
        logger.info(f"Loading embedding model {self.model_name}...")
        start = time.perf_counter()
        try:
            await self.client.initialize()
        except Exception as exc:
            logger.error(f"Embedding model {self.model_name} failed to load: {exc}")
            raise ModelError(
                f"Failed to initialize embedding model {self.model_name}",
                context={"model": self.model_name},
            ) from exc
        logger.info(f"Embedding model loaded in {time.perf_counter() - start:.2f}s")

    def add_prefix(self, text: str, role: EmbeddingRole) -> str:
        """Apply the role prefix E5-family models are trained with."""
        if "e5" not in self.model_name.lower():
            return text
        prefix = f"{role}:"
        if text.startswith(prefix):
            return text
        return f"{prefix} {text}"

    @staticmethod
    def cache_key(text: str, role: EmbeddingRole) -> str:
        return f"{role}:{text}"

    def zero_vector(self) -> list[float]:
        return [0.0] * self.dimension

    def _check_dimension(self, vector: list[float]) -> list[float]:
        if len(vector) != self.dimension:
            raise ModelError(
                f"Model returned {len(vector)} dimensions, expected {self.dimension}",
                context={"model": self.model_name},
            )
        return list(vector)

    async def embed(self, text: str, role: EmbeddingRole = "query") -> list[float]:
        """Embed a single text.

        Raises:
            ModelError: If the model is unavailable or returns a bad vector
        """
        await self.initialize()

        key = self.cache_key(text, role)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            raw = await self.client.embed_single(self.add_prefix(text, role))
        except Exception as exc:
            raise ModelError(
                f"Failed to embed {role} text", context={"model": self.model_name}
            ) from exc

        vector = self._check_dimension(raw)
        self.cache.put(key, vector)
        return vector

    async def embed_batch(
        self, texts: list[str], role: EmbeddingRole = "passage"
    ) -> list[list[float]]:
        """Embed many texts, aligned positionally with the input.

        A batch call that fails is retried item by item; items that still fail
        get a zero-vector placeholder. Placeholders are never cached.

        Raises:
            ModelError: Only if the model cannot be initialised at all
        """
        await self.initialize()

        results: list[list[float]] = [[] for _ in texts]
        pending: list[int] = []
        for position, text in enumerate(texts):
            cached = self.cache.get(self.cache_key(text, role))
            if cached is not None:
                results[position] = cached
            else:
                pending.append(position)

        if pending:
            logger.debug(f"Embedding {len(pending)} uncached {role} texts")

        batch_size = self.config.batch_size
        for start in range(0, len(pending), batch_size):
            positions = pending[start : start + batch_size]
            prefixed = [self.add_prefix(texts[p], role) for p in positions]

            try:
                raw_vectors = await self.client.embed_batch(prefixed)
                if len(raw_vectors) != len(positions):
                    raise ModelError(
                        f"Model returned {len(raw_vectors)} vectors for {len(positions)} texts"
                    )
                vectors: list[list[float] | None] = [
                    self._check_dimension(raw) for raw in raw_vectors
                ]
            except Exception as exc:
                logger.warning(
                    f"Batch of {len(positions)} texts failed ({exc}); retrying one by one"
                )
                vectors = [await self._embed_item(text) for text in prefixed]

            for position, vector in zip(positions, vectors, strict=True):
                if vector is None:
                    logger.warning(f"Text {position} could not be embedded; using zero vector")
                    emit_event(self.hook, CHUNK_EMBED_FAILED, position=position, role=role)
                    results[position] = self.zero_vector()
                else:
                    self.cache.put(self.cache_key(texts[position], role), vector)
                    results[position] = vector

        return results

    async def _embed_item(self, prefixed_text: str) -> list[float] | None:
        """Embed one already-prefixed text, returning None on failure."""
        try:
            return self._check_dimension(await self.client.embed_single(prefixed_text))
        except Exception as exc:
            logger.debug(f"Item embedding failed: {exc}")
            return None

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.debug("Embedding cache cleared")

    def stats(self) -> EngineStats:
        return EngineStats(
            is_initialized=self.is_initialized,
            model_name=self.model_name,
            dimension=self.dimension,
            cache_size=len(self.cache),
            max_cache_size=self.cache.max_size,
        )

    async def dispose(self) -> None:
        """Release the model and drop cached vectors."""
        await self.client.close()
        self.clear_cache()
        self._init_guard.reset()
        logger.info(f"Embedding engine for {self.model_name} disposed")
