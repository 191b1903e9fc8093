"""Reconciliation of imported and refreshed libraries into a collection."""

from prompt_mixer.reconcile.engine import (
    ReconciliationEngine,
    ReconciliationResult,
    ReconciliationStatus,
)
from prompt_mixer.reconcile.merge import (
    diff_libraries,
    import_master_sheets,
    merge_libraries,
    merge_linked_instructions,
    resolve_replace,
    sync_libraries,
)
from prompt_mixer.reconcile.sources import DirectorySource, SourceAdapter, SourceError

__all__ = [
    # Engine
    "ReconciliationEngine",
    "ReconciliationResult",
    "ReconciliationStatus",
    # Merge functions
    "diff_libraries",
    "import_master_sheets",
    "merge_libraries",
    "merge_linked_instructions",
    "resolve_replace",
    "sync_libraries",
    # Sources
    "DirectorySource",
    "SourceAdapter",
    "SourceError",
]
