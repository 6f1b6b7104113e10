"""Persistence orchestration and progress tracking."""

from docset_indexer.pipeline.persistence_orchestrator import (
    IndexHandle,
    PersistenceOrchestrator,
    run_persistence,
)
from docset_indexer.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "IndexHandle",
    "PersistenceOrchestrator",
    "ProgressTracker",
    "run_persistence",
]
