"""Shared fixtures: an isolated SQLite library and a credential vault."""

from pathlib import Path

import pytest

from backend.src.services import config as config_module
from backend.src.services.conversation_service import ConversationService
from backend.src.services.credential_vault import CredentialVault
from backend.src.services.database import DatabaseService
from backend.src.services.library_service import LibraryService
from backend.src.services.profile_service import ProfileService

TEST_SECRET = "test-encryption-secret"


@pytest.fixture(autouse=True)
def restore_config_cache():
    """Restore config caches after each test."""
    config_module.reload_config()
    config_module.reload_agent_config()
    yield
    config_module.reload_config()
    config_module.reload_agent_config()


@pytest.fixture
def db_service(tmp_path: Path) -> DatabaseService:
    """Database with the full schema in a temporary file."""
    service = DatabaseService(tmp_path / "libraria-test.db")
    service.initialize()
    return service


@pytest.fixture
def library(db_service: DatabaseService) -> LibraryService:
    return LibraryService(db_service)


@pytest.fixture
def profiles(db_service: DatabaseService) -> ProfileService:
    return ProfileService(db_service)


@pytest.fixture
def conversations(db_service: DatabaseService) -> ConversationService:
    return ConversationService(db_service)


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_SECRET)
