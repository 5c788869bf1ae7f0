"""Tests for the credential vault."""

import base64

import pytest

from backend.src.services.credential_vault import (
    NONCE_LENGTH,
    CredentialVault,
    DecryptionError,
    decrypt,
    encrypt,
)


class TestEncryptDecrypt:
    """Round trips and failure modes of the module-level primitives."""

    def test_round_trip(self):
        blob = encrypt("sk-live-123", "secret")
        assert decrypt(blob, "secret") == "sk-live-123"

    def test_blob_is_base64_nonce_plus_ciphertext(self):
        blob = encrypt("value", "secret")
        raw = base64.b64decode(blob)
        # 12-byte nonce, 5 bytes of ciphertext, 16-byte GCM tag
        assert len(raw) == NONCE_LENGTH + len("value") + 16

    def test_fresh_nonce_per_call(self):
        """Encrypting the same plaintext twice gives different blobs."""
        assert encrypt("same", "secret") != encrypt("same", "secret")

    def test_unicode_round_trip(self):
        text = "clé-🔑-ключ"
        assert decrypt(encrypt(text, "secret"), "secret") == text

    def test_wrong_secret_fails(self):
        blob = encrypt("value", "secret-a")
        with pytest.raises(DecryptionError):
            decrypt(blob, "secret-b")

    def test_tampered_ciphertext_fails(self):
        raw = bytearray(base64.b64decode(encrypt("value", "secret")))
        raw[-1] ^= 0x01
        with pytest.raises(DecryptionError):
            decrypt(base64.b64encode(bytes(raw)).decode(), "secret")

    def test_truncated_blob_fails(self):
        short = base64.b64encode(b"\x00" * NONCE_LENGTH).decode()
        with pytest.raises(DecryptionError, match="too short"):
            decrypt(short, "secret")

    def test_invalid_base64_fails(self):
        with pytest.raises(DecryptionError, match="base64"):
            decrypt("not base64!!", "secret")


class TestCredentialVault:
    """Bundle helpers on the vault object."""

    def test_requires_secret(self):
        with pytest.raises(ValueError):
            CredentialVault("")

    def test_bundle_round_trip(self):
        vault = CredentialVault("secret")
        bundle = {"gemini_key": "AIza-example", "tavily_key": "tvly-example"}
        blob = vault.encrypt_bundle(bundle)

        assert "AIza-example" not in blob
        assert vault.decrypt_bundle(blob) == bundle

    def test_bundle_must_be_object(self):
        vault = CredentialVault("secret")
        blob = vault.encrypt('["not", "an", "object"]')
        with pytest.raises(DecryptionError, match="JSON object"):
            vault.decrypt_bundle(blob)

    def test_bundle_from_other_secret_fails(self):
        blob = CredentialVault("one").encrypt_bundle({"gemini_key": "k"})
        with pytest.raises(DecryptionError):
            CredentialVault("two").decrypt_bundle(blob)
