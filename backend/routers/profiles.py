"""
profiles.py — User Profile Router
===================================

Handles:
  GET   /api/profile         — current user's profile
  PATCH /api/profile         — update username / avatar URL
  POST  /api/profile/avatar  — upload a new avatar image to storage
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import get_db
from models import Profile
from middleware.auth_middleware import get_current_user, CurrentUser
from utils.storage import upload_bytes

logger = logging.getLogger(__name__)
router = APIRouter()

# Max avatar size: 5 MB
MAX_AVATAR_BYTES = 5 * 1024 * 1024

ALLOWED_AVATAR_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


# ─────────────────────────────────────────────────────────────
# Helper: get or create profile in DB
# ─────────────────────────────────────────────────────────────

def get_or_create_profile(db: Session, user: CurrentUser) -> Profile:
    """Find the caller's profile or create it from the token claims."""
    profile = db.query(Profile).filter(Profile.id == user.id).first()
    if not profile:
        profile = Profile(
            id=user.id,
            email=user.email,
            username=user.name or user.email.split("@")[0],
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
    elif user.email and profile.email != user.email:
        profile.email = user.email
        db.commit()
    return profile


def _profile_dict(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "email": profile.email,
        "username": profile.username,
        "avatar_url": profile.avatar_url,
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
    }


# ─────────────────────────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────────────────────────

class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = None
    avatar_url: Optional[str] = None


@router.get("/profile")
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _profile_dict(get_or_create_profile(db, user))


@router.patch("/profile")
async def update_profile(
    req: ProfileUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = get_or_create_profile(db, user)

    if req.username is not None:
        username = req.username.strip()
        if not username:
            raise HTTPException(400, "Username cannot be empty")
        profile.username = username
    if req.avatar_url is not None:
        profile.avatar_url = req.avatar_url or None

    db.commit()
    db.refresh(profile)
    return _profile_dict(profile)


@router.post("/profile/avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Store an avatar image and point the profile at it."""
    ext = ALLOWED_AVATAR_TYPES.get(file.content_type or "")
    if not ext:
        ext_from_name = Path(file.filename or "").suffix.lower()
        if ext_from_name not in ALLOWED_AVATAR_TYPES.values():
            raise HTTPException(400, f"Unsupported image type: {file.content_type}")
        ext = ext_from_name

    data = await file.read()
    if not data:
        raise HTTPException(400, "Empty file")
    if len(data) > MAX_AVATAR_BYTES:
        raise HTTPException(413, "File too large (max 5 MB)")

    profile = get_or_create_profile(db, user)
    key = f"avatars/{profile.id}/{uuid.uuid4().hex[:12]}{ext}"

    try:
        url = upload_bytes(data, key, file.content_type or "application/octet-stream")
    except Exception as e:
        logger.error(f"Avatar upload failed for {profile.id}: {e}")
        raise HTTPException(502, "Avatar upload failed")

    profile.avatar_url = url
    db.commit()

    logger.info(f"Avatar updated for {profile.id}: {key}")
    return {"avatar_url": url}
