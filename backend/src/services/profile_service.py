"""Service for per-user profile settings and encrypted provider credentials."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from ..models.settings import (
    DEFAULT_AI_MODEL,
    AIModel,
    ApiKeysUpdate,
    MaskedApiKeys,
    ProviderKey,
)
from .credential_vault import CredentialVault, DecryptionError
from .database import DatabaseService

logger = logging.getLogger(__name__)

MASK = "••••••••"


def mask_key(key: Optional[str]) -> str:
    """Return a display-safe form of ``key``.

    Short keys are fully masked; longer keys keep the first 8 and last 4
    characters.
    """
    if not key:
        return ""
    if len(key) <= 12:
        return MASK
    return f"{key[:8]}••••{key[-4:]}"


class ProfileService:
    """Reads and writes the ``profiles`` table."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        """Initialize with optional database service."""
        self.db = db_service or DatabaseService()

    def ensure_profile(self, user_id: str) -> None:
        """Create an empty profile row for ``user_id`` if none exists."""
        now = datetime.now(timezone.utc).isoformat()
        conn = self.db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO profiles (user_id, preferred_ai_model, created_at, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(user_id) DO NOTHING
                    """,
                    (user_id, DEFAULT_AI_MODEL.value, now, now),
                )
        finally:
            conn.close()

    def get_encrypted_bundle(self, user_id: str) -> Optional[str]:
        """Return the stored credential blob, or None if nothing is stored."""
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT ai_credentials_encrypted FROM profiles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        finally:
            conn.close()
        if row and row["ai_credentials_encrypted"]:
            return row["ai_credentials_encrypted"]
        return None

    def set_encrypted_bundle(self, user_id: str, blob: Optional[str]) -> None:
        self.ensure_profile(user_id)
        conn = self.db.connect()
        try:
            with conn:
                conn.execute(
                    "UPDATE profiles SET ai_credentials_encrypted = ?, updated_at = ? WHERE user_id = ?",
                    (blob, datetime.now(timezone.utc).isoformat(), user_id),
                )
        finally:
            conn.close()

    def get_credentials(self, user_id: str, vault: CredentialVault) -> Dict[str, str]:
        """Decrypt and return the user's credential bundle.

        Returns an empty dict when nothing is stored. Raises
        :class:`DecryptionError` if a stored blob cannot be opened.
        """
        blob = self.get_encrypted_bundle(user_id)
        if not blob:
            return {}
        return vault.decrypt_bundle(blob)

    def get_provider_key(
        self,
        user_id: str,
        vault: CredentialVault,
        provider: ProviderKey,
    ) -> Optional[str]:
        """Return a single decrypted key, or None if it is not configured."""
        return self.get_credentials(user_id, vault).get(provider.value) or None

    def save_api_keys(self, user_id: str, update: ApiKeysUpdate, vault: CredentialVault) -> MaskedApiKeys:
        """Merge ``update`` into the stored bundle and re-encrypt it.

        Fields left as None keep their stored value; an empty string clears
        the key. A stored blob that no longer decrypts is replaced rather
        than merged.
        """
        try:
            bundle = self.get_credentials(user_id, vault)
        except DecryptionError:
            logger.warning(
                "Stored credentials could not be decrypted; starting a fresh bundle",
                extra={"user_id": user_id},
            )
            bundle = {}

        for field_name, value in update.model_dump(exclude_none=True).items():
            value = value.strip()
            if value:
                bundle[field_name] = value
            else:
                bundle.pop(field_name, None)

        blob = vault.encrypt_bundle(bundle) if bundle else None
        self.set_encrypted_bundle(user_id, blob)
        logger.info(
            f"Updated API keys: {sorted(bundle.keys())}",
            extra={"user_id": user_id},
        )
        return self._mask(bundle)

    def get_masked_api_keys(self, user_id: str, vault: CredentialVault) -> MaskedApiKeys:
        """Return the stored keys in masked form.

        An unreadable blob is reported as no keys configured.
        """
        try:
            bundle = self.get_credentials(user_id, vault)
        except DecryptionError:
            logger.warning("Stored credentials could not be decrypted", extra={"user_id": user_id})
            bundle = {}
        return self._mask(bundle)

    def get_preferred_model(self, user_id: str) -> AIModel:
        """Return the user's chosen model, falling back to the default."""
        conn = self.db.connect()
        try:
            row = conn.execute(
                "SELECT preferred_ai_model FROM profiles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        finally:
            conn.close()
        if row and row["preferred_ai_model"]:
            try:
                return AIModel(row["preferred_ai_model"])
            except ValueError:
                logger.warning(f"Unknown stored model '{row['preferred_ai_model']}', using default")
        return DEFAULT_AI_MODEL

    def set_preferred_model(self, user_id: str, model: AIModel) -> AIModel:
        self.ensure_profile(user_id)
        conn = self.db.connect()
        try:
            with conn:
                conn.execute(
                    "UPDATE profiles SET preferred_ai_model = ?, updated_at = ? WHERE user_id = ?",
                    (model.value, datetime.now(timezone.utc).isoformat(), user_id),
                )
        finally:
            conn.close()
        return model

    @staticmethod
    def _mask(bundle: Dict[str, str]) -> MaskedApiKeys:
        gemini = bundle.get(ProviderKey.GEMINI.value)
        tavily = bundle.get(ProviderKey.TAVILY.value)
        return MaskedApiKeys(
            gemini_key=mask_key(gemini),
            tavily_key=mask_key(tavily),
            has_gemini=bool(gemini),
            has_tavily=bool(tavily),
        )


def get_profile_service() -> ProfileService:
    """Get instance of ProfileService."""
    return ProfileService()


__all__ = ["ProfileService", "get_profile_service", "mask_key", "MASK"]
