"""Application settings loaded from environment variables via pydantic-settings.

Field names map to upper-cased environment variables (``chunk_size`` ->
``CHUNK_SIZE``); a ``.env`` file in the working directory is read too.
Environment variables always win over ``.env`` entries, which win over the
defaults below.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docset_indexer settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Storage ===
    # simple -> local JSON files, sqlite -> relational, chroma -> external service
    vector_store_type: str = "simple"
    storage_path: str = "./data/storage"
    sqlite_path: str = "./data/docsets.db"
    chroma_host: str = "localhost"
    chroma_port: int = 8000

    # === Chunking ===
    chunk_size: int = 1024
    chunk_overlap: int = 200
    max_expansion_tokens: int = 100
    expansion_tokenizer_model: str = "text-embedding-3-small"
    include_metadata_in_chunk_size: bool = False

    # === Embedding ===
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embed_batch_size: int = 50
    super_chunk_size: int = 10000

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
