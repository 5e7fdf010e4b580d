"""
Passphrase-based AES-256-GCM envelopes for everything PromptVault persists.

Envelope wire format: base64(salt (16 bytes) + nonce (12 bytes) + ciphertext + tag (16 bytes)).
The key is derived from the PIN with PBKDF2-HMAC-SHA256 (100,000 iterations).
Every call to encrypt() draws a fresh salt *and* nonce, so each envelope is
sealed under its own key and a nonce is never reused under the same key.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hmac
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from promptvault.errors import DecryptionFailure

ITERATIONS = 100_000
KEY_LENGTH = 32
SALT_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16

# Public marker sealed into the PIN verifier
VERIFY_PHRASE = "PROMPTVAULT_V1_OK"


def derive_key(passphrase: str, salt: bytes) -> bytes:
    """Derive a 256-bit AES-GCM key from a passphrase and salt."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(plaintext: str, passphrase: str) -> str:
    """Encrypt plaintext under the passphrase. Returns a base64 envelope string."""
    salt = secrets.token_bytes(SALT_LENGTH)
    nonce = secrets.token_bytes(NONCE_LENGTH)
    key = derive_key(passphrase, salt)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(salt + nonce + ciphertext).decode("ascii")


def decrypt(envelope: str, passphrase: str) -> str:
    """Open an envelope produced by encrypt().

    Raises DecryptionFailure for a wrong passphrase and for a damaged envelope
    alike; callers cannot tell the two apart.
    """
    try:
        data = base64.b64decode(envelope.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise DecryptionFailure("Envelope could not be opened") from e

    if len(data) < SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH:
        raise DecryptionFailure("Envelope could not be opened")

    salt = data[:SALT_LENGTH]
    nonce = data[SALT_LENGTH : SALT_LENGTH + NONCE_LENGTH]
    ciphertext = data[SALT_LENGTH + NONCE_LENGTH :]

    key = derive_key(passphrase, salt)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError) as e:
        raise DecryptionFailure("Envelope could not be opened") from e


def create_pin_verifier(pin: str) -> str:
    """Seal the public marker under the PIN so the PIN can be checked later."""
    return encrypt(VERIFY_PHRASE, pin)


def verify_pin(pin: str, verifier: str) -> bool:
    """True only if the verifier opens under the PIN and holds the marker."""
    try:
        recovered = decrypt(verifier, pin)
    except DecryptionFailure:
        return False
    return hmac.compare_digest(recovered.encode("utf-8"), VERIFY_PHRASE.encode("utf-8"))


# ── Async wrappers (PBKDF2 is CPU-bound; keep it off the event loop) ──


async def encrypt_async(plaintext: str, passphrase: str) -> str:
    return await asyncio.to_thread(encrypt, plaintext, passphrase)


async def decrypt_async(envelope: str, passphrase: str) -> str:
    return await asyncio.to_thread(decrypt, envelope, passphrase)


async def verify_pin_async(pin: str, verifier: str) -> bool:
    return await asyncio.to_thread(verify_pin, pin, verifier)
