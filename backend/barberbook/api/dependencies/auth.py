# backend/barberbook/api/dependencies/auth.py
"""
Actor identity.

Authentication happens upstream; the gateway forwards the authenticated
user id in the ``X-User-Id`` header.
"""

from typing import Optional

from fastapi import Header, HTTPException, status


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return user_id
