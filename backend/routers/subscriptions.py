"""
subscriptions.py — Subscription & Usage Router
================================================

Handles:
  POST /api/subscriptions/check    — verify the active subscription (expires stale rows)
  GET  /api/subscriptions/current  — the active subscription row, if any
  GET  /api/subscriptions/latest   — most recent subscription row, any status
  GET  /api/usage                  — video usage against the plan limit
  POST /api/usage/increment        — count one more generated video
"""

import logging
import os

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import get_db
from middleware.auth_middleware import get_current_user, CurrentUser
from routers.profiles import get_or_create_profile
from services.subscriptions import check_subscription, get_active_subscription, get_latest_subscription
from services.quota import get_video_usage, increment_usage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/subscriptions/check")
async def check_subscription_status(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Always answers 200: a failed check reports `error_type="function_error"`
    so the dashboard can fall back to the stored row.
    """
    return check_subscription(db, user.id)


@router.get("/subscriptions/current")
async def current_subscription(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    subscription = get_active_subscription(db, user.id)
    return {"subscription": subscription.to_dict() if subscription else None}


@router.get("/subscriptions/latest")
async def latest_subscription(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    subscription = get_latest_subscription(db, user.id)
    return {"subscription": subscription.to_dict() if subscription else None}


@router.get("/usage")
async def get_usage(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_or_create_profile(db, user)
    return get_video_usage(db, user.id).to_dict()


@router.post("/usage/increment")
async def increment_video_usage(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_or_create_profile(db, user)
    return increment_usage(db, user.id).to_dict()
