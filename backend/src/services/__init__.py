"""Service layer for business logic and external integrations."""

from .auth import AuthError, AuthService
from .config import AgentConfig, AppConfig, get_agent_config, get_config, reload_config
from .credential_vault import CredentialVault, DecryptionError, EncryptionError
from .database import DatabaseService, init_database

__all__ = [
    "AppConfig",
    "AgentConfig",
    "get_config",
    "get_agent_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "AuthService",
    "AuthError",
    "CredentialVault",
    "EncryptionError",
    "DecryptionError",
]
