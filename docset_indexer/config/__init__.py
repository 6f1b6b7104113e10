"""Configuration module. Exports Settings, load_config, and a module-level singleton."""

from docset_indexer.config.loader import load_config
from docset_indexer.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "load_config", "settings"]
