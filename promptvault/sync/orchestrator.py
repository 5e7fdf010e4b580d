"""
SyncOrchestrator — one unlocked vault session.

Owns the in-memory prompt list, the decrypted token, the PIN and the sync
status. Unlocking bootstraps the session (credential, local cache, remote);
every edit goes through mutate(), which reschedules a single debounced push of
the whole dataset. Conflicts are last-writer-wins: a push overwrites the remote
blob, a pull (bootstrap or force_sync) overwrites memory and cache.

Every async step captures the session generation when it starts and commits
nothing if the session was locked or re-unlocked in the meantime.

Usage:
    orch = SyncOrchestrator(storage, GistStore.from_config(cfg))
    if await orch.unlock(pin):
        orch.add_prompt(new_prompt("Title", "Body"))
        await orch.flush()
        await orch.lock()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from functools import partial
from typing import Any

from promptvault import lifecycle
from promptvault import prompts as ops
from promptvault.errors import (
    DecryptionFailure,
    ErrorKind,
    SerializationFailure,
    VaultError,
    VaultNotInitialized,
)
from promptvault.remote.base import RemoteResult, RemoteVaultStore
from promptvault.sync.debounce import Debouncer
from promptvault.vault.cache import LocalCache
from promptvault.vault.crypto import decrypt_async, verify_pin_async
from promptvault.vault.defaults import default_dataset
from promptvault.vault.models import PromptRecord, VaultDataset, now_ms
from promptvault.vault.storage import VaultStorage

logger = logging.getLogger(__name__)


class SyncStatus(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"
    OFFLINE = "offline"


StatusListener = Callable[[SyncStatus, str], None]

_ERROR_TEXT = {
    ErrorKind.CREDENTIAL_INVALID: "token rejected",
    ErrorKind.DECRYPTION: "decryption failed",
    ErrorKind.NETWORK: "remote store unreachable",
    ErrorKind.SERIALIZATION: "remote document is malformed",
    ErrorKind.NOT_FOUND: "remote vault not found",
}


def _describe(prefix: str, result: RemoteResult[Any]) -> str:
    if result.error is None:
        return prefix
    return f"{prefix}: {_ERROR_TEXT.get(result.error, str(result.error))}"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of a session for display."""

    unlocked: bool
    status: SyncStatus
    message: str
    prompt_count: int
    data_loaded: bool
    has_credential: bool
    identity: str | None
    remote_handle: str | None
    last_sync: int


class SyncOrchestrator:
    def __init__(
        self,
        storage: VaultStorage,
        remote: RemoteVaultStore,
        *,
        debounce_seconds: float = 1.5,
        defaults: Callable[[], VaultDataset] = default_dataset,
        on_status: StatusListener | None = None,
    ) -> None:
        self.storage = storage
        self.remote = remote
        self.cache = LocalCache(storage)
        self._defaults = defaults
        self._on_status = on_status
        self._debouncer = Debouncer(debounce_seconds, self._propagate)

        self._generation = 0
        self._unlocked = False
        self._pin: str | None = None
        self._token: str | None = None
        self._prompts: list[PromptRecord] = []
        self._data_loaded = False
        self._last_sync = 0

        self.status = SyncStatus.IDLE
        self.message = ""

    # ── Session state ────────────────────────────────────────────────

    @property
    def unlocked(self) -> bool:
        return self._unlocked

    @property
    def prompts(self) -> list[PromptRecord]:
        return list(self._prompts)

    @property
    def data_loaded(self) -> bool:
        return self._data_loaded

    @property
    def has_credential(self) -> bool:
        return self._token is not None

    @property
    def pending(self) -> bool:
        """Edits are waiting for the debounced push."""
        return self._debouncer.pending

    def state(self) -> SessionState:
        return SessionState(
            unlocked=self._unlocked,
            status=self.status,
            message=self.message,
            prompt_count=len(self._prompts),
            data_loaded=self._data_loaded,
            has_credential=self.has_credential,
            identity=self.storage.identity_label,
            remote_handle=self.storage.remote_handle,
            last_sync=self._last_sync,
        )

    def _alive(self, generation: int) -> bool:
        return self._unlocked and generation == self._generation

    def _set_status(self, status: SyncStatus, message: str = "") -> None:
        self.status = status
        self.message = message
        logger.debug("Status %s %s", status, message)
        if self._on_status is not None:
            try:
                self._on_status(status, message)
            except Exception:
                logger.exception("Status listener failed")

    def _apply(self, dataset: VaultDataset) -> None:
        self._prompts = list(dataset.prompts)
        self._last_sync = dataset.last_sync
        self._data_loaded = True

    def _snapshot(self) -> VaultDataset:
        return VaultDataset(prompts=list(self._prompts), last_sync=now_ms())

    def _require_unlocked(self) -> None:
        if not self._unlocked:
            raise VaultError("Vault is locked")

    # ── Unlock / bootstrap ───────────────────────────────────────────

    async def unlock(self, pin: str) -> bool:
        """Verify the PIN and bootstrap the session.

        Returns False on a wrong PIN. Remote and cache failures do not fail the
        unlock; they surface through status and message.
        """
        verifier = self.storage.pin_verifier
        if not verifier:
            raise VaultNotInitialized("Vault is not set up")
        if not await verify_pin_async(pin, verifier):
            logger.info("Unlock rejected")
            return False

        if self._unlocked:
            await self.lock()

        self._generation += 1
        generation = self._generation
        self._unlocked = True
        self._pin = pin
        self._token = None
        self._prompts = []
        self._data_loaded = False
        self._last_sync = 0
        self._set_status(SyncStatus.IDLE)

        try:
            await self._bootstrap(generation, pin)
        except Exception as e:
            logger.error("Bootstrap failed: %s", e, exc_info=True)
            if self._alive(generation):
                if not self._data_loaded:
                    self._apply(self._defaults())
                self._set_status(SyncStatus.ERROR, "Failed to load vault")
        return True

    async def _open_credential(self, pin: str) -> str | None:
        envelope = self.storage.encrypted_credential
        if not envelope:
            return None
        try:
            return await decrypt_async(envelope, pin)
        except DecryptionFailure:
            logger.warning("Stored credential could not be decrypted, continuing offline")
            return None

    async def _bootstrap(self, generation: int, pin: str) -> None:
        token = await self._open_credential(pin)
        if not self._alive(generation):
            return
        self._token = token

        cached = await self.cache.read(pin)
        if not self._alive(generation):
            return
        if cached is not None:
            self._apply(cached)
            logger.info("Loaded %d prompts from cache", len(cached.prompts))

        if self._token is None:
            if not self._data_loaded:
                self._apply(self._defaults())
                await self.cache.write(
                    self._snapshot(), pin, still_valid=lambda: self._alive(generation)
                )
                if not self._alive(generation):
                    return
            self._set_status(SyncStatus.OFFLINE, "No remote account configured")
            return

        await self._pull(generation, bootstrap=True)

    async def _pull(self, generation: int, *, bootstrap: bool = False) -> bool:
        """Locate and fetch the remote dataset, replacing memory and cache.

        During bootstrap an absent remote blob is created from the loaded data
        (or the defaults); outside bootstrap it is an error.
        """
        assert self._token is not None and self._pin is not None
        token, pin = self._token, self._pin
        self._set_status(SyncStatus.SYNCING, "Loading from cloud")

        handle = self.storage.remote_handle
        if handle is None:
            located = await self.remote.locate(token)
            if not self._alive(generation):
                return False
            if located.is_err:
                self._pull_failed(_describe("Could not reach cloud", located))
                return False
            if located.is_ok:
                handle = located.value
                self.storage.remote_handle = handle

        if handle is not None:
            fetched = await self.remote.fetch(token, handle)
            if not self._alive(generation):
                return False
            if fetched.is_ok and fetched.value is not None:
                dataset = fetched.value
                self._apply(dataset)
                await self.cache.write(dataset, pin, still_valid=lambda: self._alive(generation))
                if not self._alive(generation):
                    return False
                logger.info("Loaded %d prompts from remote", len(dataset.prompts))
                self._set_status(SyncStatus.SYNCED, "Loaded from cloud")
                return True
            if fetched.is_err:
                self._pull_failed(_describe("Could not load from cloud", fetched))
                return False
            logger.warning("Remote vault %s is gone, a new one will be created", handle)
            self.storage.remote_handle = None

        if not bootstrap:
            self._set_status(SyncStatus.ERROR, "No vault found in cloud")
            return False

        if not self._data_loaded:
            self._apply(self._defaults())
            logger.info("No vault anywhere, seeding %d default prompts", len(self._prompts))
        return await self._push(generation, token, pin, self._snapshot())

    def _pull_failed(self, message: str) -> None:
        if not self._data_loaded:
            self._apply(self._defaults())
        self._set_status(SyncStatus.ERROR, message)

    # ── Push ─────────────────────────────────────────────────────────

    def _current(self, generation: int, token: str) -> bool:
        return self._alive(generation) and self._token == token

    async def _push(self, generation: int, token: str, pin: str, dataset: VaultDataset) -> bool:
        result = await self.remote.upsert(token, self.storage.remote_handle, dataset)
        if not result.is_ok:
            logger.error("Save failed: %s", result.detail or result.error)
        # The session ended or moved to another account while the upsert ran
        if not self._current(generation, token):
            return False

        if not result.is_ok:
            if result.error is ErrorKind.NOT_FOUND:
                # Next push creates a fresh blob
                self.storage.remote_handle = None
            self._set_status(SyncStatus.ERROR, _describe("Save failed", result))
            return False

        self.storage.remote_handle = result.value
        await self.cache.write(dataset, pin, still_valid=lambda: self._current(generation, token))
        if not self._current(generation, token):
            return False
        self._last_sync = dataset.last_sync
        self._set_status(SyncStatus.SYNCED, "Saved to cloud")
        return True

    async def _propagate(self) -> None:
        """Debounced push of the current prompt list."""
        if not self._unlocked or self._pin is None:
            return
        await self._send(self._generation, self._token, self._pin, self._snapshot())

    async def _send(
        self, generation: int, token: str | None, pin: str, dataset: VaultDataset
    ) -> None:
        if token is None:
            try:
                await self.cache.write(
                    dataset, pin, still_valid=lambda: self._alive(generation)
                )
            except Exception as e:
                logger.error("Could not write offline cache: %s", e, exc_info=True)
            return

        if self._alive(generation):
            self._set_status(SyncStatus.SYNCING, "Saving")
        try:
            await self._push(generation, token, pin, dataset)
        except Exception as e:
            logger.error("Propagation failed: %s", e, exc_info=True)
            if self._alive(generation):
                self._set_status(SyncStatus.ERROR, "Save failed")

    # ── Public operations ────────────────────────────────────────────

    def mutate(
        self, fn: Callable[[list[PromptRecord]], Iterable[PromptRecord]]
    ) -> list[PromptRecord]:
        """Apply ``fn`` to the prompt list and schedule a push.

        Synchronous; must be called from the event loop thread.
        """
        self._require_unlocked()
        self._prompts = list(fn(list(self._prompts)))
        self._data_loaded = True
        self._debouncer.reschedule()
        return self.prompts

    async def flush(self) -> None:
        """Run the pending push now and wait for it."""
        await self._debouncer.flush()

    async def settle(self) -> None:
        """Wait for the debounced push to fire on its own and finish."""
        await self._debouncer.wait()

    async def force_sync(self) -> bool:
        """Pull the remote dataset over local state.

        A pending push is cancelled first. If the pull does not replace local
        state, the push is queued again so the edits are not lost.
        """
        self._require_unlocked()
        cancelled = self._debouncer.cancel()
        await self._debouncer.wait()
        generation = self._generation
        if not self._alive(generation):
            return False

        pulled = False
        if self._token is None:
            self._set_status(SyncStatus.ERROR, "No remote account configured")
        else:
            try:
                pulled = await self._pull(generation)
            except Exception as e:
                logger.error("Sync failed: %s", e, exc_info=True)
                if self._alive(generation):
                    self._set_status(SyncStatus.ERROR, "Sync failed")

        if cancelled and not pulled and self._alive(generation):
            self._debouncer.reschedule()
        return pulled

    async def lock(self) -> None:
        """Drop the token, PIN and data without waiting on the network.

        Offline, pending edits are written to the cache before teardown. Online,
        a pending push is started from the current prompt list and left
        running; like any push that outlives its session, it still reaches the
        remote but commits nothing locally.
        """
        if not self._unlocked:
            return
        if self._token is None:
            await self._debouncer.flush()
        elif self._debouncer.pending:
            assert self._pin is not None
            self._debouncer.hand_off(
                partial(self._send, self._generation, self._token, self._pin, self._snapshot())
            )
        self._debouncer.cancel()
        self._generation += 1
        self._unlocked = False
        self._pin = None
        self._token = None
        self._prompts = []
        self._data_loaded = False
        self._last_sync = 0
        self._set_status(SyncStatus.IDLE)
        logger.info("Vault locked")

    # ── Prompt editing ───────────────────────────────────────────────

    def get_prompt(self, prompt_id: str) -> PromptRecord:
        self._require_unlocked()
        return ops.find_prompt(self._prompts, prompt_id)

    def add_prompt(self, record: PromptRecord) -> PromptRecord:
        self.mutate(lambda current: ops.add_prompt(current, record))
        return record

    def update_prompt(self, prompt_id: str, **changes: Any) -> PromptRecord:
        self.get_prompt(prompt_id)
        self.mutate(lambda current: ops.update_prompt(current, prompt_id, **changes))
        return ops.find_prompt(self._prompts, prompt_id)

    def delete_prompt(self, prompt_id: str) -> None:
        self.get_prompt(prompt_id)
        self.mutate(lambda current: ops.delete_prompt(current, prompt_id))

    def toggle_favorite(self, prompt_id: str) -> PromptRecord:
        self.get_prompt(prompt_id)
        self.mutate(lambda current: ops.toggle_favorite(current, prompt_id))
        return ops.find_prompt(self._prompts, prompt_id)

    def record_usage(self, prompt_id: str) -> PromptRecord:
        self.get_prompt(prompt_id)
        self.mutate(lambda current: ops.record_usage(current, prompt_id))
        return ops.find_prompt(self._prompts, prompt_id)

    def import_prompts(self, text: str) -> int:
        """Merge a backup into the vault. Returns the number of new prompts.

        A malformed backup is discarded whole and counts as zero.
        """
        self._require_unlocked()
        try:
            incoming = ops.parse_import(text)
        except SerializationFailure as e:
            logger.warning("Import discarded: %s", e)
            return 0
        before = len(self._prompts)
        self.mutate(lambda current: ops.merge_imported(current, incoming))
        return len(self._prompts) - before

    def export_prompts(self) -> str:
        self._require_unlocked()
        return ops.export_prompts(self._prompts)

    async def update_credential(self, token: str) -> str:
        """Replace the stored token and sync against the new account.

        Pending edits are pushed to the current account first. Offline
        sessions go online here. The pull that follows is last-writer-wins like
        any other: an existing remote vault replaces local data; with none,
        local data is pushed up.
        """
        self._require_unlocked()
        assert self._pin is not None
        pin = self._pin
        generation = self._generation
        await self._debouncer.flush()

        identity = await lifecycle.update_credential(self.storage, self.remote, pin, token)
        if not self._alive(generation):
            return identity
        self._token = token.strip()

        if self._debouncer.cancel():
            logger.warning("Edits made during the account switch are replaced by the new vault")
        await self._debouncer.wait()
        if not self._alive(generation):
            return identity
        try:
            await self._pull(generation, bootstrap=True)
        except Exception as e:
            logger.error("Sync after credential update failed: %s", e, exc_info=True)
            if self._alive(generation):
                self._set_status(SyncStatus.ERROR, "Sync failed")
        return identity
