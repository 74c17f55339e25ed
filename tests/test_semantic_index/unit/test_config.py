"""Unit tests for configuration loading.

Tests cover:
- Hydra config loading from YAML
- Environment variable interpolation
- Config validation
- Override mechanism
"""

import pytest

from semantic_index.chunking import ChunkingConfig
from semantic_index.config import (
    SemanticIndexConfig,
    StoreConfig,
    create_default_config,
    load_config,
)


class TestConfigCreation:
    """Tests for default config creation."""

    def test_create_default_config(self) -> None:
        config_dict = create_default_config()

        assert config_dict["chunking"]["max_words_per_chunk"] == 80
        assert config_dict["embedding"]["model"] == "local/intfloat/multilingual-e5-small"
        assert config_dict["embedding"]["dimensions"] == 384
        assert config_dict["store"]["max_elements"] == 10000

    def test_default_config_has_all_sections(self) -> None:
        config_dict = create_default_config()

        assert set(config_dict) == {"chunking", "embedding", "store"}


class TestConfigModels:
    """Tests for config model validation."""

    def test_store_capacity_must_be_positive(self) -> None:
        StoreConfig(max_elements=1)

        with pytest.raises(ValueError):
            StoreConfig(max_elements=0)

    def test_chunking_section_is_validated(self) -> None:
        with pytest.raises(ValueError):
            SemanticIndexConfig(
                chunking={"max_words_per_chunk": 0},
                embedding={"model": "local/m", "version": "v1", "dimensions": 8},
            )

    def test_sections_default(self) -> None:
        config = SemanticIndexConfig(
            embedding={"model": "local/m", "version": "v1", "dimensions": 8}
        )

        assert config.chunking == ChunkingConfig()
        assert config.store.max_elements == 10_000


class TestConfigLoading:
    """Tests for loading config from Hydra YAML."""

    def test_load_default_config(self) -> None:
        config = load_config("default")

        assert isinstance(config, SemanticIndexConfig)
        assert isinstance(config.chunking, ChunkingConfig)
        assert config.chunking.max_words_per_chunk == 80
        assert config.chunking.overlap_sentences == 1
        assert config.embedding.model == "local/intfloat/multilingual-e5-small"
        assert config.embedding.dimensions == 384
        assert config.store.max_elements == 10000

    def test_load_config_with_overrides(self) -> None:
        config = load_config(
            "default",
            overrides=[
                "chunking.max_words_per_chunk=120",
                "store.max_elements=500",
                "embedding.version=v2",
            ],
        )

        assert config.chunking.max_words_per_chunk == 120
        assert config.store.max_elements == 500
        assert config.embedding.version == "v2"

    def test_api_key_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

        config = load_config("default")

        assert config.embedding.api_key == "sk-from-env"

    def test_api_key_defaults_to_none(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        config = load_config("default")

        assert config.embedding.api_key is None

    def test_invalid_override_rejected(self) -> None:
        with pytest.raises(ValueError):
            load_config("default", overrides=["store.max_elements=0"])

    def test_load_config_missing_dir_raises(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_config("nonexistent", config_path="/nonexistent/path")

    def test_custom_config_dir(self, tmp_path) -> None:
        (tmp_path / "small.yaml").write_text(
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  version: v1\n"
            "  dimensions: 1536\n"
            "store:\n"
            "  max_elements: 50\n"
        )

        config = load_config("small", config_path=tmp_path)

        assert config.embedding.dimensions == 1536
        assert config.store.max_elements == 50
        assert config.chunking == ChunkingConfig()
