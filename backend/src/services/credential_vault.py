"""Credential Vault - envelope encryption for per-user API credentials.

Credentials are stored as one opaque blob per profile. The blob is
``base64(nonce || ciphertext)`` where the ciphertext is AES-256-GCM over the
UTF-8 plaintext, keyed by PBKDF2-HMAC-SHA256 over the application secret.

A fresh 96-bit nonce is drawn for every call to :meth:`CredentialVault.encrypt`,
so encrypting the same bundle twice never yields the same blob. Keys are
re-derived on every call and never cached on the instance.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

SALT = b"libraria-salt"
ITERATIONS = 100_000
KEY_LENGTH = 32  # AES-256
NONCE_LENGTH = 12


class VaultError(Exception):
    """Base class for credential vault failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EncryptionError(VaultError):
    """Raised when the cipher rejects its inputs."""


class DecryptionError(VaultError):
    """Raised when a blob cannot be authenticated or decoded.

    Covers a wrong secret, a corrupted blob and tampering alike; the vault
    never returns unauthenticated plaintext.
    """


def _derive_key(secret: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=SALT,
        iterations=ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


class CredentialVault:
    """Encrypts and decrypts credential bundles with an injected secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("CredentialVault requires a non-empty secret")
        self._secret = secret

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext and return a base64 ``nonce || ciphertext`` string."""
        return encrypt(plaintext, self._secret)

    def decrypt(self, blob: str) -> str:
        """Decrypt a blob produced by :meth:`encrypt`."""
        return decrypt(blob, self._secret)

    def encrypt_bundle(self, bundle: Dict[str, str]) -> str:
        """Serialize a ``provider_key -> secret`` mapping and encrypt it."""
        return self.encrypt(json.dumps(bundle, sort_keys=True))

    def decrypt_bundle(self, blob: str) -> Dict[str, str]:
        """Decrypt a blob into a ``provider_key -> secret`` mapping.

        Raises:
            DecryptionError: If the blob fails authentication or does not
                hold a JSON object.
        """
        plaintext = self.decrypt(blob)
        try:
            data = json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise DecryptionError("Credential bundle is not valid JSON") from e
        if not isinstance(data, dict):
            raise DecryptionError("Credential bundle must be a JSON object")
        return {str(k): str(v) for k, v in data.items() if v is not None}


def encrypt(plaintext: str, secret: str) -> str:
    """Encrypt ``plaintext`` under a key derived from ``secret``.

    Raises:
        EncryptionError: If the underlying primitive rejects the inputs.
    """
    try:
        key = _derive_key(secret)
        nonce = os.urandom(NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    except (TypeError, ValueError, OverflowError) as e:
        raise EncryptionError(f"Encryption failed: {type(e).__name__}") from e
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt(blob: str, secret: str) -> str:
    """Decrypt a blob produced by :func:`encrypt`.

    Raises:
        DecryptionError: On a wrong secret, corrupted blob or tampering.
    """
    try:
        combined = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecryptionError("Encrypted blob is not valid base64") from e

    if len(combined) <= NONCE_LENGTH:
        raise DecryptionError("Encrypted blob is too short")

    nonce, ciphertext = combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]
    key = _derive_key(secret)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        logger.warning("Credential blob failed authentication")
        raise DecryptionError("Authentication tag verification failed") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted payload is not UTF-8") from e


__all__ = [
    "CredentialVault",
    "VaultError",
    "EncryptionError",
    "DecryptionError",
    "encrypt",
    "decrypt",
    "NONCE_LENGTH",
    "ITERATIONS",
]
