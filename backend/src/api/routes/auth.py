"""Identity route for the authenticated caller."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..middleware import AuthContext, require_auth_context

router = APIRouter()


class UserInfo(BaseModel):
    """Current user information."""

    user_id: str


@router.get("/api/me", response_model=UserInfo)
async def get_current_user(auth: AuthContext = Depends(require_auth_context)):
    """Get current authenticated user information."""
    return UserInfo(user_id=auth.user_id)


__all__ = ["router"]
