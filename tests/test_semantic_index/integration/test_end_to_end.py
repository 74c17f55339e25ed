"""End-to-end indexing and retrieval through the public package surface.

Uses the Hydra default config for chunking and store settings, with the
embedding model swapped for a deterministic stub so no model is downloaded.
"""

import pytest

from semantic_index import (
    CapacityExceededError,
    ContentIndexer,
    EmbeddingEngine,
    InMemoryVectorStore,
)
from semantic_index.chunking import Chunk
from semantic_index.config import load_config

NOTEBOOK = {
    "n1": (
        "Plasmid Miniprep",
        "Bacterial cultures were grown overnight in LB medium. "
        "Plasmid DNA was extracted with a spin column kit. "
        "The yield was measured on a NanoDrop spectrophotometer.",
    ),
    "n2": (
        "Confocal Imaging",
        "Fixed cells were stained with DAPI and phalloidin. "
        "Images were acquired on a confocal microscope with a 63x objective. "
        "Z stacks were projected before quantification.",
    ),
    "n3": (
        "Mouse Behaviour",
        "Mice were tested in the open field arena for ten minutes. "
        "Distance travelled and time in the centre were scored automatically.",
    ),
}


@pytest.fixture
def pipeline(stub_client_factory):
    """Indexer built from the default config with a stub embedding model."""

    def build(dimension=128, **client_options):
        config = load_config(
            "default",
            overrides=[
                "embedding.model=local/stub-bag-of-words",
                f"embedding.dimensions={dimension}",
            ],
        )
        client = stub_client_factory(dimension=dimension, **client_options)
        engine = EmbeddingEngine(client, config.embedding)
        store = InMemoryVectorStore(
            dimension=config.embedding.dimensions, max_elements=config.store.max_elements
        )
        return ContentIndexer(engine, store, chunking_config=config.chunking)

    return build


@pytest.mark.asyncio
async def test_fixed_vector_round_trip(pipeline):
    """A page embedded with a fixed unit vector is found with similarity 1.0."""
    unit = [0.0] * 8
    unit[3] = 1.0
    indexer = pipeline(dimension=8, fixed_vector=unit)

    result = await indexer.index_content(
        "doc-1", "https://example.com/doc-1", "", "This is sentence one. This is sentence two."
    )
    hits = await indexer.search_content("This is sentence one.", top_k=5)

    assert result.chunks_indexed == 1
    assert len(hits) == 1
    assert hits[0].rank == 1
    assert hits[0].page_id == "doc-1"
    assert hits[0].similarity == pytest.approx(1.0)
    assert hits[0].chunk_source == "content_chunk_0"
    assert hits[0].snippet == "This is sentence one. This is sentence two."


@pytest.mark.asyncio
async def test_semantic_search_over_notebook(pipeline):
    indexer = pipeline()
    outcomes = await indexer.index_content_batch(
        [
            {"page_id": page_id, "url": f"https://example.com/{page_id}", "title": t, "content": c}
            for page_id, (t, c) in NOTEBOOK.items()
        ]
    )
    assert all(o.success for o in outcomes)

    hits = await indexer.search_content("confocal microscope images of stained cells")

    assert hits[0].page_id == "n2"
    assert len({h.page_id for h in hits}) == len(hits)
    similarities = [h.similarity for h in hits]
    assert similarities == sorted(similarities, reverse=True)

    await indexer.remove_page_index("n2")
    hits_after = await indexer.search_content("confocal microscope images of stained cells")
    assert "n2" not in {h.page_id for h in hits_after}


@pytest.mark.asyncio
async def test_store_capacity_is_enforced():
    store = InMemoryVectorStore(dimension=4, max_elements=2)
    chunk = Chunk(text="some chunk text", source="content_chunk_0", index=0, word_count=3)

    await store.insert("p1", "u", "t", chunk, [1.0, 0.0, 0.0, 0.0])
    await store.insert("p1", "u", "t", chunk, [0.0, 1.0, 0.0, 0.0])
    with pytest.raises(CapacityExceededError):
        await store.insert("p1", "u", "t", chunk, [0.0, 0.0, 1.0, 0.0])

    stats = store.stats()
    assert stats.total_vectors == 2
    assert stats.capacity_usage == "100.00%"


@pytest.mark.asyncio
async def test_long_page_is_split_and_deduplicated(pipeline):
    indexer = pipeline()
    sentences = [
        f"Replicate {i} of the assay showed consistent fluorescence readings." for i in range(40)
    ]

    result = await indexer.index_content(
        "long", "https://example.com/long", "Fluorescence Assay Log", " ".join(sentences)
    )
    hits = await indexer.search_content("consistent fluorescence readings", top_k=5)

    assert result.chunks_indexed > 2
    assert [h.page_id for h in hits] == ["long"]
    assert len(indexer.store.documents_for_page("long")) == result.chunks_indexed
