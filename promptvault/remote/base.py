"""
Remote vault store contract.

The remote account is a collection of named blobs; the vault lives in the one
blob carrying a fixed, well-known label. Every operation is async and never
raises: failures come back as a tagged RemoteResult so the caller can tell an
honest absence (ABSENT) from a failure (ERROR) and still never crash.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

from promptvault.errors import ErrorKind
from promptvault.vault.models import VaultDataset

T = TypeVar("T")


class Outcome(StrEnum):
    OK = "ok"
    ABSENT = "absent"
    ERROR = "error"


@dataclass(frozen=True)
class RemoteResult(Generic[T]):
    """Ok(value) / Absent / Err(kind) from a remote store call."""

    outcome: Outcome
    value: T | None = None
    error: ErrorKind | None = None
    detail: str = ""

    @classmethod
    def ok(cls, value: T) -> RemoteResult[T]:
        return cls(Outcome.OK, value=value)

    @classmethod
    def absent(cls, detail: str = "") -> RemoteResult[T]:
        return cls(Outcome.ABSENT, detail=detail)

    @classmethod
    def err(cls, kind: ErrorKind, detail: str = "") -> RemoteResult[T]:
        return cls(Outcome.ERROR, error=kind, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def is_absent(self) -> bool:
        return self.outcome is Outcome.ABSENT

    @property
    def is_err(self) -> bool:
        return self.outcome is Outcome.ERROR

    def unwrap_or(self, default: T) -> T:
        return self.value if self.is_ok and self.value is not None else default


class RemoteVaultStore(ABC):
    """Abstract remote blob store holding the vault document."""

    @abstractmethod
    async def validate_credential(self, token: str) -> RemoteResult[str]:
        """Check a bearer token. Ok carries the account identity label."""

    @abstractmethod
    async def locate(self, token: str) -> RemoteResult[str]:
        """Find the labeled vault blob. Ok carries its handle."""

    @abstractmethod
    async def fetch(self, token: str, handle: str) -> RemoteResult[VaultDataset]:
        """Download and parse the vault blob."""

    @abstractmethod
    async def upsert(
        self, token: str, handle: str | None, dataset: VaultDataset
    ) -> RemoteResult[str]:
        """Create the blob (handle is None) or replace its whole content. Ok carries the handle."""

    @abstractmethod
    async def remove(self, token: str, handle: str) -> RemoteResult[bool]:
        """Best-effort delete of the vault blob."""

    async def close(self) -> None:
        return
