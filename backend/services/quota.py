"""
quota.py — Video Usage & Quota Checks
=======================================

Works out how many videos a user has generated against their plan:

  • Active subscribers — videos created since `current_period_start`,
    resetting at `current_period_end`.
  • Free users — every video ever created (lifetime limit, no reset).

A `user_quotas` row with a `monthly_limit` overrides the tier constant.
Admin plan updates write it directly; subscription changes keep it in
step with the paid plan. `monthly_limit == 0` means the account is
suspended.
"""

import logging
import os
from dataclasses import dataclass, asdict
from datetime import datetime, timezone, timedelta
from typing import Optional

from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import PLAN_VIDEO_LIMITS, DEFAULT_STORAGE_LIMIT_MB, SUBSCRIPTION_PERIOD_DAYS
from models import VideoProject, UserQuota, PlanType
from services.subscriptions import get_active_subscription

logger = logging.getLogger(__name__)


@dataclass
class VideoUsage:
    count: int
    limit: int
    remaining: int
    is_exceeded: bool
    reset_at: Optional[datetime]
    is_subscribed: bool
    is_pro: bool
    is_business: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["reset_at"] = self.reset_at.isoformat() if self.reset_at else None
        return data


def plan_limit(plan: Optional[str]) -> int:
    """Tier limit for a plan name; unknown plans fall back to free."""
    return PLAN_VIDEO_LIMITS.get((plan or PlanType.FREE.value).lower(), PLAN_VIDEO_LIMITS["free"])


def get_or_create_quota(db: Session, user_id: str, plan: str = PlanType.FREE.value) -> UserQuota:
    """Find the user's quota row or create one for the given plan."""
    quota = db.query(UserQuota).filter(UserQuota.user_id == user_id).first()
    if not quota:
        quota = UserQuota(
            user_id=user_id,
            plan_type=plan,
            monthly_limit=plan_limit(plan),
            current_usage=0,
            storage_limit_mb=DEFAULT_STORAGE_LIMIT_MB,
            storage_used_mb=0,
            reset_date=datetime.now(timezone.utc) + timedelta(days=SUBSCRIPTION_PERIOD_DAYS),
        )
        db.add(quota)
        db.commit()
        db.refresh(quota)
    return quota


def get_video_usage(db: Session, user_id: str) -> VideoUsage:
    """Compute the usage summary for one user."""
    subscription = get_active_subscription(db, user_id)

    query = db.query(VideoProject).filter(VideoProject.user_id == user_id)

    if subscription:
        plan = (subscription.plan_name or PlanType.PRO.value).lower()
        if subscription.current_period_start:
            query = query.filter(VideoProject.created_at >= subscription.current_period_start)
        reset_at = subscription.current_period_end
    else:
        plan = PlanType.FREE.value
        reset_at = None

    limit = plan_limit(plan)

    # 0 suspends the account
    quota = db.query(UserQuota).filter(UserQuota.user_id == user_id).first()
    if quota is not None and quota.monthly_limit is not None:
        limit = quota.monthly_limit

    count = query.count()
    remaining = max(0, limit - count)

    return VideoUsage(
        count=count,
        limit=limit,
        remaining=remaining,
        is_exceeded=count >= limit,
        reset_at=reset_at,
        is_subscribed=subscription is not None,
        is_pro=subscription is not None and plan == PlanType.PRO.value,
        is_business=subscription is not None and plan == PlanType.BUSINESS.value,
    )


def increment_usage(db: Session, user_id: str) -> VideoUsage:
    """
    Record one more generated video and return the updated usage.

    Project rows are what count, so this is called after the new project
    is saved and the returned count already includes it. The admin-facing
    `current_usage` counter is bumped alongside.
    """
    quota = get_or_create_quota(db, user_id)
    quota.current_usage = (quota.current_usage or 0) + 1
    db.commit()

    usage = get_video_usage(db, user_id)
    logger.info(f"Usage for {user_id}: {usage.count}/{usage.limit}")
    return usage


def reset_usage(db: Session, user_id: str) -> UserQuota:
    """Zero the usage counter and push the reset date one period ahead."""
    quota = get_or_create_quota(db, user_id)
    quota.current_usage = 0
    quota.reset_date = datetime.now(timezone.utc) + timedelta(days=SUBSCRIPTION_PERIOD_DAYS)
    db.commit()
    return quota
