"""
admin_analytics.py — Admin Console Queries
============================================

Read models and bulk operations behind the admin console:
  • user listing joined with quotas and last login
  • render-log search
  • platform analytics (totals, success rate, daily renders,
    plan distribution, top templates)
  • bulk suspend / quota reset / plan change
"""

import logging
import os
from collections import Counter
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from models import Profile, UserQuota, UserActivity, RenderLog, ProjectStatus, PlanType
from services.quota import get_or_create_quota, plan_limit, reset_usage

logger = logging.getLogger(__name__)

DAILY_RENDER_WINDOW_DAYS = 30
TOP_TEMPLATE_COUNT = 10


# ─────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────

def list_users(db: Session, plan: Optional[str] = None, search: Optional[str] = None) -> List[Dict]:
    """Profiles joined with their quota row and most recent login."""
    last_logins = dict(
        db.query(UserActivity.user_id, func.max(UserActivity.created_at))
        .filter(UserActivity.activity_type == "login")
        .group_by(UserActivity.user_id)
        .all()
    )
    quotas = {q.user_id: q for q in db.query(UserQuota).all()}

    users = []
    for profile in db.query(Profile).order_by(Profile.created_at.desc()).all():
        quota = quotas.get(profile.id)
        last_login = last_logins.get(profile.id)
        users.append({
            "id": profile.id,
            "email": profile.email or "No email",
            "created_at": profile.created_at.isoformat() if profile.created_at else None,
            "plan_type": (quota.plan_type if quota else None) or PlanType.FREE.value,
            "total_videos": (quota.current_usage if quota else 0) or 0,
            "storage_used_mb": (quota.storage_used_mb if quota else 0) or 0,
            "last_login": last_login.isoformat() if last_login else None,
            "is_active": not (quota is not None and quota.monthly_limit == 0),
        })

    if plan:
        users = [u for u in users if u["plan_type"] == plan]
    if search:
        needle = search.lower()
        users = [u for u in users if needle in u["email"].lower()]

    return users


# ─────────────────────────────────────────────────────────────
# Render logs
# ─────────────────────────────────────────────────────────────

def list_render_logs(
    db: Session,
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> List[Dict]:
    query = db.query(RenderLog)
    if user_id:
        query = query.filter(RenderLog.user_id == user_id)
    if status:
        query = query.filter(RenderLog.status == status)
    if date_from:
        query = query.filter(RenderLog.started_at >= date_from)
    if date_to:
        query = query.filter(RenderLog.started_at <= date_to)

    return [log.to_dict() for log in query.order_by(RenderLog.started_at.desc()).all()]


# ─────────────────────────────────────────────────────────────
# Analytics
# ─────────────────────────────────────────────────────────────

def get_analytics(db: Session, now: Optional[datetime] = None) -> Dict:
    """Platform-wide numbers for the admin dashboard."""
    now = now or datetime.now(timezone.utc)

    total_users = db.query(func.count(Profile.id)).scalar() or 0
    total_renders = db.query(func.count(RenderLog.id)).scalar() or 0
    successful = (
        db.query(func.count(RenderLog.id))
        .filter(RenderLog.status == ProjectStatus.COMPLETED.value)
        .scalar()
        or 0
    )
    storage_used = db.query(func.coalesce(func.sum(UserQuota.storage_used_mb), 0)).scalar() or 0

    since = now - timedelta(days=DAILY_RENDER_WINDOW_DAYS)
    daily = Counter(
        started.strftime("%Y-%m-%d")
        for (started,) in db.query(RenderLog.started_at).filter(RenderLog.started_at >= since).all()
        if started
    )

    plans = Counter(
        plan_type or PlanType.FREE.value
        for (plan_type,) in db.query(UserQuota.plan_type).all()
    )

    templates = Counter(
        name
        for (name,) in db.query(RenderLog.template_name).filter(RenderLog.template_name.isnot(None)).all()
    )

    return {
        "total_users": total_users,
        "total_renders": total_renders,
        "success_rate": (successful / total_renders) * 100 if total_renders else 0,
        "storage_used": storage_used,
        "daily_renders": [
            {"date": date, "count": count} for date, count in sorted(daily.items())
        ][-DAILY_RENDER_WINDOW_DAYS:],
        "plan_distribution": [{"plan": plan, "count": count} for plan, count in plans.items()],
        "top_templates": [
            {"template": name, "count": count}
            for name, count in templates.most_common(TOP_TEMPLATE_COUNT)
        ],
    }


# ─────────────────────────────────────────────────────────────
# Quota operations
# ─────────────────────────────────────────────────────────────

def suspend_user(db: Session, user_id: str) -> UserQuota:
    quota = get_or_create_quota(db, user_id)
    quota.monthly_limit = 0
    db.commit()
    logger.info(f"Suspended user {user_id}")
    return quota


def update_plan(db: Session, user_id: str, plan_type: str, monthly_limit: Optional[int] = None) -> UserQuota:
    quota = get_or_create_quota(db, user_id)
    quota.plan_type = plan_type
    quota.monthly_limit = monthly_limit if monthly_limit is not None else plan_limit(plan_type)
    db.commit()
    return quota


BULK_OPERATIONS = ("suspend_users", "reset_quotas", "update_plans")


def bulk_user_operation(db: Session, operation: str, user_ids: List[str], params: Optional[Dict] = None) -> int:
    """
    Apply one operation to many users.

    Returns:
        Number of users affected.
    """
    if operation not in BULK_OPERATIONS:
        raise ValueError(f"Unknown bulk operation: {operation}")
    if not user_ids:
        raise ValueError("user_ids is required")

    params = params or {}
    if operation == "update_plans" and not params.get("new_plan"):
        raise ValueError("new_plan is required for update_plans")

    for user_id in user_ids:
        if operation == "suspend_users":
            suspend_user(db, user_id)
        elif operation == "reset_quotas":
            reset_usage(db, user_id)
        else:
            update_plan(db, user_id, params["new_plan"], params.get("new_limit"))

    logger.info(f"Bulk {operation} applied to {len(user_ids)} user(s)")
    return len(user_ids)
