"""Pydantic models for bearer-token authentication."""

from pydantic import BaseModel, Field


class JWTPayload(BaseModel):
    """Claims carried by an access token."""
    sub: str = Field(..., description="User identifier")
    iat: int = Field(..., description="Issued-at (unix seconds)")
    exp: int = Field(..., description="Expiry (unix seconds)")
