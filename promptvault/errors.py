"""
Error taxonomy for PromptVault.

Exceptions are raised by the pure layers (crypto, models, setup). The remote
store never raises; it reports the same causes through ``ErrorKind`` inside a
``RemoteResult`` so the orchestrator can turn them into a status message.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    CREDENTIAL_INVALID = "credential_invalid"
    DECRYPTION = "decryption"
    NETWORK = "network"
    SERIALIZATION = "serialization"
    NOT_FOUND = "not_found"


class VaultError(Exception):
    """Base class for all PromptVault errors."""

    kind: ErrorKind | None = None


class CredentialInvalid(VaultError):
    """The bearer token failed identity validation."""

    kind = ErrorKind.CREDENTIAL_INVALID


class DecryptionFailure(VaultError):
    """Authentication tag mismatch: wrong PIN or corrupted ciphertext."""

    kind = ErrorKind.DECRYPTION


class NetworkFailure(VaultError):
    """Transport or HTTP-level failure talking to the remote store."""

    kind = ErrorKind.NETWORK


class SerializationFailure(VaultError):
    """A cached, fetched or imported document does not have the expected shape."""

    kind = ErrorKind.SERIALIZATION


class NotFound(VaultError):
    """Legitimate absence of a remote blob or stored entry."""

    kind = ErrorKind.NOT_FOUND


class VaultNotInitialized(VaultError):
    """No PIN verifier is stored; run setup first."""
