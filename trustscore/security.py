"""
Trust Score — Security Layer

Authentication belongs to the host application. Its auth middleware sets
the X-User-Id header for the caller; these dependencies read it.
"""
from typing import Optional

from fastapi import Header, HTTPException


async def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> Optional[str]:
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None


async def require_auth(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Require an authenticated caller. Raises 401 otherwise."""
    user_id = await get_current_user_id(x_user_id)
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id
