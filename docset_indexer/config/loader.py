"""YAML configuration loader with environment variable overrides.

Configuration is resolved in layers, later layers winning:

    1. built-in defaults        (the field defaults of ``Settings``)
    2. config/config.yaml       (checked-in project defaults)
    3. .env / environment vars  (only the values actually set)

``_deep_merge`` does the recursive dict merging, e.g.::

    base      = {"chunking": {"chunk_size": 1024}}
    overrides = {"chunking": {"chunk_overlap": 20}}
    result    = {"chunking": {"chunk_size": 1024, "chunk_overlap": 20}}
"""

from pathlib import Path

import yaml

from docset_indexer.config.settings import Settings

# Settings field -> (section, key) in the nested config dict.
_SECTIONS: dict[str, tuple[str, str]] = {
    "vector_store_type": ("storage", "vector_store_type"),
    "storage_path": ("storage", "storage_path"),
    "sqlite_path": ("storage", "sqlite_path"),
    "chroma_host": ("storage", "chroma_host"),
    "chroma_port": ("storage", "chroma_port"),
    "chunk_size": ("chunking", "chunk_size"),
    "chunk_overlap": ("chunking", "chunk_overlap"),
    "max_expansion_tokens": ("chunking", "max_expansion_tokens"),
    "expansion_tokenizer_model": ("chunking", "expansion_tokenizer_model"),
    "include_metadata_in_chunk_size": ("chunking", "include_metadata_in_chunk_size"),
    "embedding_provider": ("embedding", "provider"),
    "embedding_model": ("embedding", "model"),
    "embed_batch_size": ("embedding", "batch_size"),
    "super_chunk_size": ("embedding", "super_chunk_size"),
    "app_env": ("app", "env"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge it between defaults and environment overrides.

    Args:
        path: Path to the YAML configuration file.  A missing file is fine.
        settings: Pre-built settings, mainly for tests.  Built from the
                  environment when omitted.

    Returns:
        Fully resolved configuration dictionary keyed by section.
    """
    settings = settings or Settings()

    config = _nest(settings.model_dump())

    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    explicit = settings.model_dump(include=settings.model_fields_set)
    _deep_merge(config, _nest(explicit))
    return config


def _nest(flat: dict) -> dict:
    nested: dict = {}
    for field, value in flat.items():
        section, key = _SECTIONS[field]
        nested.setdefault(section, {})[key] = value
    return nested


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
