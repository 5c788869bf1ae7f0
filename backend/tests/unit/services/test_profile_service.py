"""Tests for profile settings and encrypted API key storage."""

import pytest

from backend.src.models.settings import DEFAULT_AI_MODEL, AIModel, ApiKeysUpdate, ProviderKey
from backend.src.services.credential_vault import CredentialVault, DecryptionError
from backend.src.services.profile_service import MASK, ProfileService, mask_key


class TestMaskKey:
    def test_empty(self):
        assert mask_key(None) == ""
        assert mask_key("") == ""

    def test_short_keys_fully_masked(self):
        assert mask_key("abc") == MASK
        assert mask_key("x" * 12) == MASK

    def test_long_keys_keep_prefix_and_suffix(self):
        assert mask_key("AIzaSyA1234567890WXYZ") == "AIzaSyA1••••WXYZ"


class TestApiKeys:
    """Encrypted storage of provider keys."""

    def test_nothing_stored(self, profiles: ProfileService, vault: CredentialVault):
        masked = profiles.get_masked_api_keys("alice", vault)
        assert masked.has_gemini is False
        assert masked.gemini_key == ""
        assert profiles.get_provider_key("alice", vault, ProviderKey.GEMINI) is None

    def test_save_and_read_back(self, profiles: ProfileService, vault: CredentialVault):
        masked = profiles.save_api_keys(
            "alice", ApiKeysUpdate(gemini_key="AIzaSyA1234567890WXYZ"), vault
        )

        assert masked.has_gemini is True
        assert masked.gemini_key == "AIzaSyA1••••WXYZ"
        assert masked.has_tavily is False
        assert profiles.get_provider_key("alice", vault, ProviderKey.GEMINI) == "AIzaSyA1234567890WXYZ"

    def test_stored_blob_is_not_plaintext(self, profiles: ProfileService, vault: CredentialVault):
        profiles.save_api_keys("alice", ApiKeysUpdate(gemini_key="AIzaSyA1234567890WXYZ"), vault)

        blob = profiles.get_encrypted_bundle("alice")
        assert blob is not None
        assert "AIzaSyA1234567890WXYZ" not in blob

    def test_update_merges_and_clears(self, profiles: ProfileService, vault: CredentialVault):
        profiles.save_api_keys("alice", ApiKeysUpdate(gemini_key="gemini-secret", tavily_key="tvly-secret"), vault)

        # Omitted field keeps its value
        profiles.save_api_keys("alice", ApiKeysUpdate(tavily_key="tvly-rotated"), vault)
        assert profiles.get_credentials("alice", vault) == {
            "gemini_key": "gemini-secret",
            "tavily_key": "tvly-rotated",
        }

        # Empty string removes the key
        masked = profiles.save_api_keys("alice", ApiKeysUpdate(tavily_key=""), vault)
        assert masked.has_tavily is False
        assert profiles.get_credentials("alice", vault) == {"gemini_key": "gemini-secret"}

    def test_clearing_everything_stores_null(self, profiles: ProfileService, vault: CredentialVault):
        profiles.save_api_keys("alice", ApiKeysUpdate(gemini_key="gemini-secret"), vault)
        profiles.save_api_keys("alice", ApiKeysUpdate(gemini_key=""), vault)
        assert profiles.get_encrypted_bundle("alice") is None

    def test_keys_are_per_user(self, profiles: ProfileService, vault: CredentialVault):
        profiles.save_api_keys("alice", ApiKeysUpdate(gemini_key="alice-key"), vault)
        assert profiles.get_provider_key("bob", vault, ProviderKey.GEMINI) is None

    def test_wrong_secret_raises_on_read(self, profiles: ProfileService, vault: CredentialVault):
        profiles.save_api_keys("alice", ApiKeysUpdate(gemini_key="gemini-secret"), vault)

        with pytest.raises(DecryptionError):
            profiles.get_provider_key("alice", CredentialVault("rotated-secret"), ProviderKey.GEMINI)

    def test_unreadable_blob_masks_as_empty_and_is_replaced(
        self, profiles: ProfileService, vault: CredentialVault
    ):
        profiles.save_api_keys("alice", ApiKeysUpdate(gemini_key="gemini-secret"), vault)
        rotated = CredentialVault("rotated-secret")

        assert profiles.get_masked_api_keys("alice", rotated).has_gemini is False

        profiles.save_api_keys("alice", ApiKeysUpdate(tavily_key="tvly-secret"), rotated)
        assert profiles.get_credentials("alice", rotated) == {"tavily_key": "tvly-secret"}


class TestPreferredModel:
    def test_default_model(self, profiles: ProfileService):
        assert profiles.get_preferred_model("alice") == DEFAULT_AI_MODEL

    def test_set_model(self, profiles: ProfileService):
        profiles.set_preferred_model("alice", AIModel.GEMINI_25_PRO)
        assert profiles.get_preferred_model("alice") == AIModel.GEMINI_25_PRO
        assert profiles.get_preferred_model("bob") == DEFAULT_AI_MODEL

    def test_unknown_stored_model_falls_back(self, profiles: ProfileService):
        profiles.ensure_profile("alice")
        conn = profiles.db.connect()
        try:
            with conn:
                conn.execute("UPDATE profiles SET preferred_ai_model = 'retired-model' WHERE user_id = 'alice'")
        finally:
            conn.close()
        assert profiles.get_preferred_model("alice") == DEFAULT_AI_MODEL
