"""Bearer-token validation for API requests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Optional

import jwt

from ..models.auth import JWTPayload
from .config import AppConfig, get_config

logger = logging.getLogger(__name__)

LOCAL_DEV_USER = "demo-user"


class AuthError(Exception):
    """Raised when a token cannot be accepted."""

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int = 401,
        detail: Optional[dict] = None,
    ):
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.detail = detail or {}


class AuthService:
    """Issue and validate HS256 access tokens."""

    def __init__(self, config: Optional[AppConfig] = None):
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config or get_config()

    def create_jwt(self, user_id: str, expires_in: timedelta = timedelta(days=7)) -> str:
        """Create a signed token for ``user_id``."""
        secret = self.config.jwt_secret_key
        if not secret:
            raise AuthError("auth_not_configured", "JWT_SECRET_KEY is not configured", status_code=500)
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
        }
        return jwt.encode(payload, secret, algorithm="HS256")

    def validate_jwt(self, token: str) -> JWTPayload:
        """Validate ``token`` and return its claims.

        In local mode the configured dev token is accepted and mapped to
        ``demo-user``.
        """
        config = self.config
        if config.enable_local_mode and config.local_dev_token and token == config.local_dev_token:
            now = int(datetime.now(timezone.utc).timestamp())
            return JWTPayload(sub=LOCAL_DEV_USER, iat=now, exp=now + 3600)

        if not config.jwt_secret_key:
            raise AuthError("invalid_token", "Token validation is not configured")

        try:
            claims = jwt.decode(token, config.jwt_secret_key, algorithms=["HS256"])
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired", "Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.debug(f"Rejected token: {exc}")
            raise AuthError("invalid_token", "Token is invalid", detail={"reason": str(exc)}) from exc

        try:
            return JWTPayload(**claims)
        except (TypeError, ValueError) as exc:
            raise AuthError("invalid_token", "Token is missing required claims") from exc


__all__ = ["AuthService", "AuthError", "LOCAL_DEV_USER"]
