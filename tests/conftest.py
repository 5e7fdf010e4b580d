"""
Shared fixtures: an in-memory remote store and pre-initialized vault storage.
"""

from __future__ import annotations

import asyncio

import pytest

from promptvault.errors import ErrorKind
from promptvault.remote.base import RemoteResult, RemoteVaultStore
from promptvault.vault.crypto import create_pin_verifier, encrypt
from promptvault.vault.models import PromptRecord, VaultDataset
from promptvault.vault.storage import MemoryStore, VaultStorage

PIN = "1234"
TOKEN = "ghp_valid"
IDENTITY = "octocat"


class FakeRemote(RemoteVaultStore):
    """Remote store backed by a dict of handle -> document JSON.

    Each blob belongs to the token that created it; other tokens cannot see it.
    ``fail`` maps an operation name to the ErrorKind it should return.
    ``upsert_gate``, when set, holds every upsert until the event is set.
    """

    def __init__(self) -> None:
        self.tokens = {TOKEN: IDENTITY}
        self.blobs: dict[str, str] = {}
        self.owners: dict[str, str] = {}
        self.fail: dict[str, ErrorKind] = {}
        self.calls: list[str] = []
        self.upserts: list[VaultDataset] = []
        self.upsert_gate: asyncio.Event | None = None
        self._counter = 0

    def seed(self, dataset: VaultDataset, token: str = TOKEN) -> str:
        self._counter += 1
        handle = f"gist{self._counter}"
        self.blobs[handle] = dataset.to_json()
        self.owners[handle] = token
        return handle

    def dataset(self, handle: str) -> VaultDataset:
        return VaultDataset.from_json(self.blobs[handle])

    def _owns(self, token: str, handle: str) -> bool:
        return handle in self.blobs and self.owners.get(handle) == token

    def _refuse(self, op: str, token: str) -> RemoteResult | None:
        self.calls.append(op)
        if op in self.fail:
            return RemoteResult.err(self.fail[op], "injected")
        if token not in self.tokens:
            return RemoteResult.err(ErrorKind.CREDENTIAL_INVALID, "HTTP 401")
        return None

    async def validate_credential(self, token):
        return self._refuse("validate_credential", token) or RemoteResult.ok(self.tokens[token])

    async def locate(self, token):
        refused = self._refuse("locate", token)
        if refused:
            return refused
        for handle in self.blobs:
            if self._owns(token, handle):
                return RemoteResult.ok(handle)
        return RemoteResult.absent()

    async def fetch(self, token, handle):
        refused = self._refuse("fetch", token)
        if refused:
            return refused
        if not self._owns(token, handle):
            return RemoteResult.absent()
        return RemoteResult.ok(self.dataset(handle))

    async def upsert(self, token, handle, dataset):
        refused = self._refuse("upsert", token)
        if self.upsert_gate is not None:
            await self.upsert_gate.wait()
        if refused:
            return refused
        if handle is not None and not self._owns(token, handle):
            return RemoteResult.err(ErrorKind.NOT_FOUND, "gone")
        if handle is None:
            self._counter += 1
            handle = f"gist{self._counter}"
            self.owners[handle] = token
        self.blobs[handle] = dataset.to_json()
        self.upserts.append(dataset)
        return RemoteResult.ok(handle)

    async def remove(self, token, handle):
        refused = self._refuse("remove", token)
        if refused:
            return refused
        if not self._owns(token, handle):
            return RemoteResult.absent()
        del self.blobs[handle]
        return RemoteResult.ok(True)


def _dataset(count: int, prefix: str = "p", last_sync: int = 0) -> VaultDataset:
    prompts = [
        PromptRecord(
            id=f"{prefix}{i}",
            title=f"Prompt {i}",
            content=f"Body {i}",
            created_at=1_000 + i,
            updated_at=1_000 + i,
        )
        for i in range(count)
    ]
    return VaultDataset(prompts=prompts, last_sync=last_sync)


@pytest.fixture
def pin():
    return PIN


@pytest.fixture
def token():
    return TOKEN


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def storage():
    """Empty, uninitialized vault storage."""
    return VaultStorage(MemoryStore())


@pytest.fixture
def offline_storage(storage):
    """Vault set up with a PIN but no token."""
    storage.pin_verifier = create_pin_verifier(PIN)
    return storage


@pytest.fixture
def online_storage(offline_storage):
    """Vault set up with a PIN and a valid token."""
    offline_storage.encrypted_credential = encrypt(TOKEN, PIN)
    offline_storage.identity_label = IDENTITY
    return offline_storage


@pytest.fixture
def make_dataset():
    """Build a VaultDataset of ``count`` numbered prompts."""
    return _dataset
