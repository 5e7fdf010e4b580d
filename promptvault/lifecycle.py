"""
Vault lifecycle — first-time setup, credential replacement and reset.

Setup writes the PIN verifier and, when a token is supplied, the encrypted
token, the account identity and the handle of an existing vault blob. A vault
set up without a token runs offline until one is added with
update_credential().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from promptvault.errors import (
    CredentialInvalid,
    DecryptionFailure,
    ErrorKind,
    NetworkFailure,
    VaultNotInitialized,
)
from promptvault.remote.base import RemoteVaultStore
from promptvault.vault.crypto import create_pin_verifier, encrypt_async, verify_pin_async
from promptvault.vault.storage import VaultStorage

logger = logging.getLogger(__name__)

MIN_PIN_LENGTH = 4


@dataclass(frozen=True)
class SetupResult:
    identity: str | None = None
    remote_handle: str | None = None

    @property
    def online(self) -> bool:
        return self.identity is not None


def is_initialized(storage: VaultStorage) -> bool:
    return bool(storage.pin_verifier)


async def check_pin(storage: VaultStorage, pin: str) -> bool:
    """Check a PIN against the stored verifier. False when no vault exists."""
    verifier = storage.pin_verifier
    if not verifier:
        return False
    return await verify_pin_async(pin, verifier)


async def _validate_token(remote: RemoteVaultStore, token: str) -> str:
    result = await remote.validate_credential(token)
    if result.is_ok:
        return result.value or ""
    if result.error is ErrorKind.CREDENTIAL_INVALID:
        raise CredentialInvalid("The remote store rejected this token")
    raise NetworkFailure(f"Could not validate token: {result.detail or result.error}")


async def setup_vault(
    storage: VaultStorage,
    remote: RemoteVaultStore,
    pin: str,
    token: str | None = None,
) -> SetupResult:
    """Initialize a vault under ``pin``, optionally linked to a remote account.

    The token is validated before anything is written, so a rejected token
    leaves storage untouched.
    """
    if len(pin) < MIN_PIN_LENGTH:
        raise ValueError(f"PIN must be at least {MIN_PIN_LENGTH} characters")

    token = (token or "").strip() or None
    identity = await _validate_token(remote, token) if token else None

    verifier = await asyncio.to_thread(create_pin_verifier, pin)
    storage.pin_verifier = verifier
    # Leftovers from an earlier vault are sealed under another PIN
    storage.encrypted_cache = None
    storage.remote_handle = None

    if token is None:
        storage.encrypted_credential = None
        storage.identity_label = None
        logger.info("Vault initialized without a remote account")
        return SetupResult()

    storage.encrypted_credential = await encrypt_async(token, pin)
    storage.identity_label = identity or None

    handle = None
    located = await remote.locate(token)
    if located.is_ok:
        handle = located.value
        storage.remote_handle = handle
    elif located.is_err:
        # Not fatal: the first unlock tries again
        logger.warning("Could not look for an existing vault: %s", located.detail)

    logger.info("Vault initialized for %s (existing blob: %s)", identity, handle or "none")
    return SetupResult(identity=identity, remote_handle=handle)


async def update_credential(
    storage: VaultStorage, remote: RemoteVaultStore, pin: str, token: str
) -> str:
    """Validate and store a replacement token. Returns the account identity."""
    if not is_initialized(storage):
        raise VaultNotInitialized("Vault is not set up")
    if not await check_pin(storage, pin):
        raise DecryptionFailure("Wrong PIN")

    token = token.strip()
    if not token:
        raise CredentialInvalid("Token is empty")
    identity = await _validate_token(remote, token)
    envelope = await encrypt_async(token, pin)

    # Storage is only touched once every await is done
    if storage.identity_label and storage.identity_label != identity:
        # Different account: its vault blob has to be found again
        storage.remote_handle = None
    storage.encrypted_credential = envelope
    storage.identity_label = identity or None
    logger.info("Credential updated for %s", identity)
    return identity


def reset_vault(storage: VaultStorage) -> None:
    """Delete every local entry. Remote data is left untouched."""
    storage.clear()
    logger.info("Local vault data cleared")
