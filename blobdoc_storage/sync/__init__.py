"""
Sync module.

Collection snapshots, tombstone-first deletion, and the client-side
reconciliation cache that masks server latency.
"""

from .cache import DEFAULT_PENDING_DELETIONS_PATH, PendingDeletions, ReconciliationCache
from .orchestrator import StoreStatus, SyncOrchestrator

__all__ = [
    "DEFAULT_PENDING_DELETIONS_PATH",
    "PendingDeletions",
    "ReconciliationCache",
    "StoreStatus",
    "SyncOrchestrator",
]
