"""Identity-driven synchronization of the state container."""

from expenseflow.sync.orchestrator import SyncOrchestrator, SyncSnapshot

__all__ = ["SyncOrchestrator", "SyncSnapshot"]
