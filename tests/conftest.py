"""Pytest configuration for test discovery and shared fixtures.

This file ensures that:
- `src/` is importable
- Tests can build deterministic embedding engines without loading a model
"""

from __future__ import annotations

import asyncio
import math
import re
import sys
import zlib
from collections.abc import Callable
from pathlib import Path

import pytest

# Ensure src directory is in path for imports
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from semantic_index.embedding import EmbeddingConfig, EmbeddingEngine  # noqa: E402
from semantic_index.vector_store import InMemoryVectorStore  # noqa: E402

_TOKEN = re.compile(r"\w+")


class StubEmbeddingClient:
    """Deterministic hashed bag-of-words embeddings.

    Texts sharing words get similar vectors, identical texts get identical
    vectors. Any text containing one of `fail_on` raises, as does a batch that
    contains such a text.
    """

    def __init__(
        self,
        dimension: int = 64,
        fail_on: set[str] | None = None,
        fixed_vector: list[float] | None = None,
        init_error: Exception | None = None,
        init_delay: float = 0.0,
        wrong_dimension: bool = False,
    ):
        self.dimension = dimension
        self.fail_on = fail_on or set()
        self.fixed_vector = fixed_vector
        self.init_error = init_error
        self.init_delay = init_delay
        self.wrong_dimension = wrong_dimension

        self.initialize_calls = 0
        self.batch_calls: list[list[str]] = []
        self.single_calls: list[str] = []
        self.closed = False

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self.init_delay:
            await asyncio.sleep(self.init_delay)
        if self.init_error is not None:
            raise self.init_error

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        for text in texts:
            self._maybe_fail(text)
        return [self.vector_for(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls.append(text)
        self._maybe_fail(text)
        return self.vector_for(text)

    async def close(self) -> None:
        self.closed = True

    def _maybe_fail(self, text: str) -> None:
        for marker in self.fail_on:
            if marker in text:
                raise RuntimeError(f"stub model refused text containing {marker!r}")

    def vector_for(self, text: str) -> list[float]:
        size = self.dimension + 1 if self.wrong_dimension else self.dimension
        if self.fixed_vector is not None:
            return list(self.fixed_vector)

        vector = [0.0] * size
        for token in _TOKEN.findall(text.lower()):
            vector[zlib.crc32(token.encode()) % size] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]


def make_embedding_config(dimension: int = 64, **overrides) -> EmbeddingConfig:
    values = {
        "model": "local/stub-bag-of-words",
        "version": "v1",
        "dimensions": dimension,
        "batch_size": 8,
        "max_cache_size": 100,
    }
    values.update(overrides)
    return EmbeddingConfig(**values)


@pytest.fixture
def stub_client_factory() -> Callable[..., StubEmbeddingClient]:
    """Factory for StubEmbeddingClient instances."""
    return StubEmbeddingClient


@pytest.fixture
def engine_factory() -> Callable[..., EmbeddingEngine]:
    """Factory building an EmbeddingEngine around a stub client.

    Usage: engine_factory(client, dimension=64, model=..., batch_size=..., hook=...)
    """

    def build(client: StubEmbeddingClient, hook=None, **config_overrides) -> EmbeddingEngine:
        config = make_embedding_config(client.dimension, **config_overrides)
        return EmbeddingEngine(client, config, hook=hook)

    return build


@pytest.fixture
def stub_engine(stub_client_factory, engine_factory) -> EmbeddingEngine:
    """Bag-of-words engine with 64 dimensions."""
    return engine_factory(stub_client_factory())


@pytest.fixture
def store() -> InMemoryVectorStore:
    """Empty 64-dimensional store."""
    return InMemoryVectorStore(dimension=64, max_elements=1000)


@pytest.fixture
def recorded_events() -> list[tuple[str, dict]]:
    """List that the `recording_hook` fixture appends (event, fields) to."""
    return []


@pytest.fixture
def recording_hook(recorded_events):
    def hook(event: str, fields: dict) -> None:
        recorded_events.append((event, fields))

    return hook
