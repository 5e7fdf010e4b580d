"""Remote vault stores. GistStore is the only production backend."""

from __future__ import annotations

from promptvault.remote.base import Outcome, RemoteResult, RemoteVaultStore
from promptvault.remote.gist import GistStore

__all__ = ["GistStore", "Outcome", "RemoteResult", "RemoteVaultStore"]
