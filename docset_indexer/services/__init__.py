"""Pipeline services: splitting, expansion, batching and the embedding service."""
