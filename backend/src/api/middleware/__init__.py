"""Request dependencies shared by the API routes."""

from .auth_middleware import AuthContext, require_auth_context

__all__ = ["AuthContext", "require_auth_context"]
