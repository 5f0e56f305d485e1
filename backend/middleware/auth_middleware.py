"""
auth_middleware.py — JWT Authentication Middleware
===================================================

Verifies the access tokens issued by the auth platform (Supabase-style
HS256 JWTs with `sub`, `email` and `aud="authenticated"`).
Extracts user info and provides it as FastAPI dependencies.

Usage in routes:
    from middleware.auth_middleware import get_current_user

    @router.get("/protected")
    async def protected(user = Depends(get_current_user)):
        return {"user": user.email}
"""

import os
import logging
from typing import Optional

import jwt  # PyJWT
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import JWT_SECRET, JWT_ALGORITHM, JWT_AUDIENCE
from database import get_db
from models import AdminUser

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _decode_jwt(token: str) -> dict:
    """Decode and verify an access token."""
    try:
        return jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(401, "Token expired")
    except jwt.InvalidTokenError as e:
        raise HTTPException(401, f"Invalid token: {str(e)}")


class CurrentUser:
    """Lightweight user object extracted from JWT."""
    def __init__(self, user_id: str, email: str, name: str = "", role: str = "authenticated"):
        self.id = user_id
        self.email = email
        self.name = name
        self.role = role


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency: extract and verify JWT → return CurrentUser.

    Use in route parameters:
        user = Depends(get_current_user)
    """
    if not credentials:
        raise HTTPException(401, "Authentication required")

    payload = _decode_jwt(credentials.credentials)

    user_id = payload.get("sub")
    email = payload.get("email")

    if not user_id or not email:
        raise HTTPException(401, "Invalid token payload")

    metadata = payload.get("user_metadata") or {}

    return CurrentUser(
        user_id=user_id,
        email=email,
        name=metadata.get("full_name", metadata.get("name", "")),
        role=payload.get("role", "authenticated"),
    )


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[CurrentUser]:
    """
    Same as get_current_user but returns None instead of 401
    for unauthenticated requests. Useful for public endpoints.
    """
    if not credentials:
        return None

    try:
        return await get_current_user(credentials)
    except HTTPException:
        return None


def get_admin_record(db: Session, user_id: str) -> Optional[AdminUser]:
    """Return the active admin row for a user, if any."""
    return (
        db.query(AdminUser)
        .filter(AdminUser.user_id == user_id, AdminUser.is_active.is_(True))
        .first()
    )


async def require_admin(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """FastAPI dependency: only active admin users get through."""
    if not get_admin_record(db, user.id):
        logger.warning(f"Non-admin user {user.id} tried to reach an admin route")
        raise HTTPException(403, "Admin access required")
    return user
