"""
PromptVault vault layer — envelopes, models and on-device persistence.

Public API:
    encrypt(text, pin) / decrypt(envelope, pin)   → AES-256-GCM envelopes
    create_pin_verifier(pin) / verify_pin(pin, v) → PIN check without storing the PIN
    VaultStorage(store)                           → typed access to persisted entries
    LocalCache(storage)                           → encrypted dataset mirror
"""

from __future__ import annotations

from promptvault.vault.cache import LocalCache
from promptvault.vault.crypto import create_pin_verifier, decrypt, encrypt, verify_pin
from promptvault.vault.defaults import default_dataset
from promptvault.vault.models import PromptRecord, VaultDataset
from promptvault.vault.storage import FileStore, KeyValueStore, MemoryStore, VaultStorage

__all__ = [
    "FileStore",
    "KeyValueStore",
    "LocalCache",
    "MemoryStore",
    "PromptRecord",
    "VaultDataset",
    "VaultStorage",
    "create_pin_verifier",
    "decrypt",
    "default_dataset",
    "encrypt",
    "verify_pin",
]
