"""Configuration management for the semantic index using Hydra.

All configuration is loaded from YAML files in conf/semantic_index/.
This module provides typed config objects and validation.
"""

from pathlib import Path

from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field

from semantic_index.chunking import ChunkingConfig
from semantic_index.embedding import EmbeddingConfig


class StoreConfig(BaseModel):
    """Vector store configuration.

    Attributes:
        max_elements: Maximum number of vectors the store accepts
    """

    max_elements: int = Field(default=10_000, ge=1)


class SemanticIndexConfig(BaseModel):
    """Top-level configuration for the semantic index.

    Attributes:
        chunking: Text chunking configuration
        embedding: Embedding model configuration (its dimensions also size the store)
        store: Vector store configuration
    """

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig
    store: StoreConfig = Field(default_factory=StoreConfig)


def load_config(
    config_name: str = "default",
    config_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> SemanticIndexConfig:
    """Load semantic index configuration from Hydra YAML files.

    Args:
        config_name: Name of config file (without .yaml extension)
        config_path: Path to config directory (defaults to conf/semantic_index/)
        overrides: List of config overrides (e.g., ["chunking.max_words_per_chunk=120"])

    Returns:
        Validated configuration object

    Example:
        >>> config = load_config("default")
        >>> config.embedding.dimensions
        384

        >>> config = load_config("default", overrides=["store.max_elements=500"])
        >>> config.store.max_elements
        500
    """
    if config_path is None:
        # Default to conf/semantic_index/ relative to repo root
        repo_root = Path(__file__).parent.parent.parent
        config_path = repo_root / "conf" / "semantic_index"

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config directory not found: {config_path}\n" f"Create it with: mkdir -p {config_path}"
        )

    with initialize_config_dir(
        config_dir=str(config_path), version_base=None, job_name="semantic_index"
    ):
        cfg: DictConfig = compose(config_name=config_name, overrides=overrides or [])

    # Convert OmegaConf to dict and validate with Pydantic
    config_dict = OmegaConf.to_container(cfg, resolve=True)
    return SemanticIndexConfig(**config_dict)  # type: ignore


def create_default_config() -> dict[str, dict[str, object]]:
    """Create a default configuration dictionary for bootstrapping.

    Returns:
        Dictionary suitable for writing to YAML

    Example:
        >>> import yaml
        >>> config = create_default_config()
        >>> with open("conf/semantic_index/default.yaml", "w") as f:
        ...     yaml.dump(config, f)
    """
    return {
        "chunking": {
            "max_words_per_chunk": 80,
            "overlap_sentences": 1,
            "min_chunk_length": 20,
            "include_title": True,
        },
        "embedding": {
            "model": "local/intfloat/multilingual-e5-small",
            "version": "v1",
            "dimensions": 384,
            "batch_size": 32,
            "max_retries": 3,
            "timeout_seconds": 30.0,
            "max_cache_size": 1000,
            "api_key": "${oc.env:OPENAI_API_KEY,null}",
            "cache_dir": None,
        },
        "store": {
            "max_elements": 10000,
        },
    }
