"""
admin.py — Admin Console Router
=================================

Every route except /admin/me requires an active admin row.

Handles:
  GET    /api/admin/me                          — is the caller an admin?
  GET    /api/admin/users                       — users with plan + usage
  POST   /api/admin/users/{user_id}/suspend     — set the user's limit to 0
  GET    /api/admin/render-logs                 — search render logs
  POST   /api/admin/render-logs/{id}/retry      — mark a render for retry
  DELETE /api/admin/render-logs/{id}            — delete a render log
  GET    /api/admin/quotas                      — all quota rows
  PATCH  /api/admin/quotas/{user_id}            — change plan / limit
  POST   /api/admin/quotas/{user_id}/reset      — zero the usage counter
  GET    /api/admin/analytics                   — platform analytics
  POST   /api/admin/operations                  — render log / activity / bulk ops
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import get_db
from models import RenderLog, UserQuota, UserActivity, Profile, ProjectStatus
from middleware.auth_middleware import (
    get_current_user, require_admin, get_admin_record, CurrentUser,
)
from services.admin_analytics import (
    list_users, list_render_logs, get_analytics, suspend_user, update_plan,
    bulk_user_operation,
)
from services.quota import reset_usage

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_profile(db: Session, user_id: str) -> Profile:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile:
        raise HTTPException(404, "User not found")
    return profile


def _get_render_log(db: Session, log_id: str) -> RenderLog:
    log = db.query(RenderLog).filter(RenderLog.id == log_id).first()
    if not log:
        raise HTTPException(404, "Render log not found")
    return log


@router.get("/admin/me")
async def admin_me(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    admin = get_admin_record(db, user.id)
    return {
        "is_admin": admin is not None,
        "role": admin.role if admin else None,
    }


# ─────────────────────────────────────────────────────────────
# Users & quotas
# ─────────────────────────────────────────────────────────────

@router.get("/admin/users")
async def admin_users(
    plan: Optional[str] = None,
    search: Optional[str] = None,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"users": list_users(db, plan=plan, search=search)}


@router.post("/admin/users/{user_id}/suspend")
async def admin_suspend_user(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _require_profile(db, user_id)
    quota = suspend_user(db, user_id)
    logger.info(f"Admin {admin.id} suspended {user_id}")
    return quota.to_dict()


@router.get("/admin/quotas")
async def admin_quotas(
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    quotas = db.query(UserQuota).order_by(UserQuota.created_at.desc()).all()
    return {"quotas": [q.to_dict() for q in quotas]}


class QuotaUpdateRequest(BaseModel):
    plan_type: str
    monthly_limit: Optional[int] = None


@router.patch("/admin/quotas/{user_id}")
async def admin_update_quota(
    user_id: str,
    req: QuotaUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if req.monthly_limit is not None and req.monthly_limit < 0:
        raise HTTPException(400, "monthly_limit cannot be negative")

    _require_profile(db, user_id)
    quota = update_plan(db, user_id, req.plan_type, req.monthly_limit)
    logger.info(f"Admin {admin.id} set {user_id} to {quota.plan_type} ({quota.monthly_limit})")
    return quota.to_dict()


@router.post("/admin/quotas/{user_id}/reset")
async def admin_reset_quota(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _require_profile(db, user_id)
    return reset_usage(db, user_id).to_dict()


# ─────────────────────────────────────────────────────────────
# Render logs
# ─────────────────────────────────────────────────────────────

@router.get("/admin/render-logs")
async def admin_render_logs(
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"logs": list_render_logs(db, user_id, status, date_from, date_to)}


@router.post("/admin/render-logs/{log_id}/retry")
async def admin_retry_render(
    log_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    log = _get_render_log(db, log_id)
    log.status = ProjectStatus.PENDING.value
    log.retry_count = (log.retry_count or 0) + 1
    log.error_message = None
    log.completed_at = None
    db.commit()

    logger.info(f"Admin {admin.id} queued retry #{log.retry_count} for render log {log_id}")
    return log.to_dict()


@router.delete("/admin/render-logs/{log_id}")
async def admin_delete_render_log(
    log_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    db.delete(_get_render_log(db, log_id))
    db.commit()
    return {"deleted": True}


@router.get("/admin/analytics")
async def admin_analytics(
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return get_analytics(db)


# ─────────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────────

class OperationRequest(BaseModel):
    operation: str  # create_render_log | update_user_activity | bulk_user_operations
    data: Dict[str, Any] = {}


def _create_render_log(db: Session, data: Dict) -> Dict:
    if not data.get("user_id") or not data.get("status"):
        raise ValueError("user_id and status are required")

    log = RenderLog(
        user_id=data["user_id"],
        video_project_id=data.get("video_project_id"),
        render_id=data.get("render_id"),
        status=data["status"],
        template_name=data.get("template_name"),
        duration=data.get("duration"),
        error_message=data.get("error_message"),
        error_code=data.get("error_code"),
        meta=data.get("metadata"),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return {"success": True, "data": log.to_dict()}


def _record_activity(db: Session, data: Dict) -> Dict:
    if not data.get("user_id") or not data.get("activity_type"):
        raise ValueError("user_id and activity_type are required")

    activity = UserActivity(
        user_id=data["user_id"],
        activity_type=data["activity_type"],
        ip_address=data.get("ip_address"),
        user_agent=data.get("user_agent"),
        meta=data.get("metadata"),
    )
    db.add(activity)
    db.commit()
    return {"success": True, "data": {"id": activity.id}}


def _bulk_operations(db: Session, data: Dict) -> Dict:
    user_ids: List[str] = data.get("user_ids") or []
    affected = bulk_user_operation(db, data.get("operation_type", ""), user_ids, data.get("params"))
    return {"success": True, "affected_users": affected}


OPERATIONS = {
    "create_render_log": _create_render_log,
    "update_user_activity": _record_activity,
    "bulk_user_operations": _bulk_operations,
}


@router.post("/admin/operations")
async def admin_operations(
    req: OperationRequest,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    handler = OPERATIONS.get(req.operation)
    if not handler:
        raise HTTPException(400, f"Unknown operation: {req.operation}")

    try:
        return handler(db, req.data)
    except ValueError as e:
        raise HTTPException(400, str(e))
