"""
notifications.py — In-App Notification Service
================================================

Creates notification rows for users. Webhook- and worker-generated
notifications go through `notify_once`, which drops a notification
when the same (user, title, type) was already sent within the last hour.
"""

import logging
import os
from datetime import datetime, timezone, timedelta
from typing import Optional

from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import NOTIFICATION_DEDUP_WINDOW_S
from models import Notification, NotificationType

logger = logging.getLogger(__name__)

VALID_TYPES = {t.value for t in NotificationType}


def create_notification(
    db: Session,
    user_id: str,
    title: str,
    message: str,
    type: str,
    metadata: Optional[dict] = None,
    is_read: bool = False,
) -> Notification:
    """Insert one notification and return it."""
    if not user_id or not title or not message or not type:
        raise ValueError("Missing required notification fields")
    if type not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type}")

    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        is_read=is_read,
        meta=metadata,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def deduplication_key(type: str, event: str, now: Optional[datetime] = None) -> str:
    """`<type>_<YYYY-MM-DD>_<event>`"""
    now = now or datetime.now(timezone.utc)
    return f"{type}_{now.strftime('%Y-%m-%d')}_{event}"


def notify_once(
    db: Session,
    user_id: str,
    title: str,
    message: str,
    type: str = NotificationType.PAYMENT.value,
    metadata: Optional[dict] = None,
) -> Optional[Notification]:
    """
    Create a notification unless an identical one was sent recently.

    Returns:
        The new Notification, or None when it was de-duplicated.
    """
    since = datetime.now(timezone.utc) - timedelta(seconds=NOTIFICATION_DEDUP_WINDOW_S)

    existing = (
        db.query(Notification.id)
        .filter(
            Notification.user_id == user_id,
            Notification.title == title,
            Notification.type == type,
            Notification.created_at >= since,
        )
        .first()
    )
    if existing:
        logger.info(f"Skipping duplicate notification '{title}' for {user_id}")
        return None

    metadata = dict(metadata or {})
    metadata["deduplication_key"] = deduplication_key(type, metadata.get("event", ""))

    return create_notification(db, user_id, title, message, type, metadata=metadata)
