"""Session sync: the debounced push task and the orchestrator that owns a session."""

from __future__ import annotations

from promptvault.sync.debounce import Debouncer
from promptvault.sync.orchestrator import SessionState, SyncOrchestrator, SyncStatus

__all__ = ["Debouncer", "SessionState", "SyncOrchestrator", "SyncStatus"]
