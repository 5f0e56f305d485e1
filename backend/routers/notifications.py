"""
notifications.py — Notifications Router
=========================================

Handles:
  GET    /api/notifications            — user's notifications, newest first
  POST   /api/notifications            — create a notification for the user
  POST   /api/notifications/{id}/read  — mark one as read
  POST   /api/notifications/read-all   — mark all as read
  DELETE /api/notifications/{id}       — delete one
"""

import logging
import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import get_db
from models import Notification
from middleware.auth_middleware import get_current_user, CurrentUser
from routers.profiles import get_or_create_profile
from services.notifications import create_notification

logger = logging.getLogger(__name__)
router = APIRouter()


class CreateNotificationRequest(BaseModel):
    title: str
    message: str
    type: str
    metadata: Optional[Dict[str, Any]] = None
    is_read: bool = False


def _get_owned_notification(db: Session, notification_id: str, user_id: str) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise HTTPException(404, "Notification not found")
    return notification


@router.get("/notifications")
async def list_notifications(
    unread_only: bool = False,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Notification).filter(Notification.user_id == user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    notifications = query.order_by(Notification.created_at.desc()).all()

    unread = sum(1 for n in notifications if not n.is_read)
    return {
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": unread,
    }


@router.post("/notifications")
async def add_notification(
    req: CreateNotificationRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_or_create_profile(db, user)
    try:
        notification = create_notification(
            db, user.id, req.title, req.message, req.type,
            metadata=req.metadata, is_read=req.is_read,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

    return {"success": True, "notification": notification.to_dict()}


@router.post("/notifications/read-all")
async def mark_all_read(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}


@router.post("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = _get_owned_notification(db, notification_id, user.id)
    notification.is_read = True
    db.commit()
    return notification.to_dict()


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = _get_owned_notification(db, notification_id, user.id)
    db.delete(notification)
    db.commit()
    return {"deleted": True}
