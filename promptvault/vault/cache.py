"""
Encrypted on-device mirror of the last known-good dataset.

The cache is purely an optimization: every read failure (missing entry,
wrong PIN, corrupted envelope, malformed document) is a miss, never an error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from promptvault.errors import DecryptionFailure, SerializationFailure
from promptvault.vault.crypto import decrypt_async, encrypt_async
from promptvault.vault.models import VaultDataset
from promptvault.vault.storage import VaultStorage

logger = logging.getLogger(__name__)


class LocalCache:
    def __init__(self, storage: VaultStorage) -> None:
        self.storage = storage

    async def write(
        self,
        dataset: VaultDataset,
        passphrase: str,
        *,
        still_valid: Callable[[], bool] | None = None,
    ) -> bool:
        """Seal the whole dataset under the passphrase and replace the cached copy.

        ``still_valid`` is checked once encryption finishes; if it returns False
        the envelope is dropped and nothing is stored.
        """
        envelope = await encrypt_async(dataset.to_json(), passphrase)
        if still_valid is not None and not still_valid():
            logger.debug("Cache write dropped, session ended")
            return False
        self.storage.encrypted_cache = envelope
        logger.debug("Cache written (%d prompts)", len(dataset.prompts))
        return True

    async def read(self, passphrase: str) -> VaultDataset | None:
        """Return the cached dataset, or None on any kind of miss."""
        envelope = self.storage.encrypted_cache
        if not envelope:
            return None
        try:
            plaintext = await decrypt_async(envelope, passphrase)
        except DecryptionFailure:
            logger.warning("Cache could not be decrypted, ignoring it")
            return None
        try:
            return VaultDataset.from_json(plaintext)
        except SerializationFailure as e:
            logger.warning("Cache corrupted, ignoring it: %s", e)
            return None

    def clear(self) -> None:
        self.storage.encrypted_cache = None
