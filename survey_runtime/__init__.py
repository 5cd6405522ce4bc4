"""
Survey Runtime — stores and the repair engine.

LocalCache (sqlite3) and a remote adapter sit behind AssessmentStore;
RepairEngine diagnoses and fixes department corruption through it.
"""

from .local_cache import CacheUnavailableError, LocalCache
from .memory_store import InMemoryRemoteStore, RemoteUnavailableError
from .hybrid_store import AssessmentStore, SyncResult, merge_by_key
from .repair import (
    CleanupResult,
    MigrationResult,
    MigrationStep,
    RepairEngine,
    RepairResult,
    StoreMigrationResult,
)

__all__ = [
    "CacheUnavailableError",
    "LocalCache",
    "InMemoryRemoteStore",
    "RemoteUnavailableError",
    "AssessmentStore",
    "SyncResult",
    "merge_by_key",
    "CleanupResult",
    "MigrationResult",
    "MigrationStep",
    "RepairEngine",
    "RepairResult",
    "StoreMigrationResult",
]
