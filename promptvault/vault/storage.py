"""
Key-value persistence for the vault's device-local entries.

The vault only ever stores opaque strings: envelopes sealed under the PIN,
plus two plaintext entries (the remote handle and the account label).

    KeyValueStore   — abstract get/set/delete over string keys
    MemoryStore     — dict-backed, for tests
    FileStore       — one JSON file on disk, written atomically, mode 600
    VaultStorage    — typed accessors for the five vault entries
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

PIN_VERIFIER = "pin-verifier"
ENCRYPTED_CREDENTIAL = "encrypted-credential"
ENCRYPTED_CACHE = "encrypted-cache"
REMOTE_HANDLE = "remote-handle"
IDENTITY_LABEL = "identity-label"

ALL_KEYS = (PIN_VERIFIER, ENCRYPTED_CREDENTIAL, ENCRYPTED_CACHE, REMOTE_HANDLE, IDENTITY_LABEL)


class KeyValueStore(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""


class MemoryStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None


class FileStore(KeyValueStore):
    """All entries in a single JSON object on disk.

    The file is re-read on every access so separate processes (one CLI
    invocation after another) always see the latest write.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Store file %s unreadable, treating as empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store file %s is not a JSON object, treating as empty", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.chmod(tmp, stat.S_IRUSR | stat.S_IWUSR)  # 600
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> bool:
        data = self._load()
        if key not in data:
            return False
        del data[key]
        self._save(data)
        return True


class VaultStorage:
    """Typed view over the five persisted vault entries."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _set_or_delete(self, key: str, value: str | None) -> None:
        if value is None:
            self.store.delete(key)
        else:
            self.store.set(key, value)

    @property
    def pin_verifier(self) -> str | None:
        return self.store.get(PIN_VERIFIER)

    @pin_verifier.setter
    def pin_verifier(self, value: str | None) -> None:
        self._set_or_delete(PIN_VERIFIER, value)

    @property
    def encrypted_credential(self) -> str | None:
        return self.store.get(ENCRYPTED_CREDENTIAL)

    @encrypted_credential.setter
    def encrypted_credential(self, value: str | None) -> None:
        self._set_or_delete(ENCRYPTED_CREDENTIAL, value)

    @property
    def encrypted_cache(self) -> str | None:
        return self.store.get(ENCRYPTED_CACHE)

    @encrypted_cache.setter
    def encrypted_cache(self, value: str | None) -> None:
        self._set_or_delete(ENCRYPTED_CACHE, value)

    @property
    def remote_handle(self) -> str | None:
        return self.store.get(REMOTE_HANDLE)

    @remote_handle.setter
    def remote_handle(self, value: str | None) -> None:
        self._set_or_delete(REMOTE_HANDLE, value)

    @property
    def identity_label(self) -> str | None:
        return self.store.get(IDENTITY_LABEL)

    @identity_label.setter
    def identity_label(self, value: str | None) -> None:
        self._set_or_delete(IDENTITY_LABEL, value)

    def clear(self) -> None:
        """Delete every vault entry (explicit reset)."""
        for key in ALL_KEYS:
            self.store.delete(key)
