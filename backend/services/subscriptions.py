"""
subscriptions.py — Subscription State Service
===============================================

Owns the `subscriptions` table:
  • active-subscription lookup with lazy expiry
  • the check-subscription result consumed by the dashboard
  • upserts driven by payment verification and provider webhooks
  • cancellation by customer e-mail or Stripe subscription id
"""

import logging
import os
from datetime import datetime, timezone, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import SUBSCRIPTION_PERIOD_DAYS, PLAN_VIDEO_LIMITS
from models import Subscription, SubscriptionStatus, Profile, UserQuota, PlanType

logger = logging.getLogger(__name__)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def plan_from_product_name(product_name: Optional[str]) -> str:
    """Stripe product → plan name: anything mentioning business is business."""
    if product_name and "business" in product_name.lower():
        return PlanType.BUSINESS.value
    return PlanType.PRO.value


# ─────────────────────────────────────────────────────────────
# Reads
# ─────────────────────────────────────────────────────────────

def get_active_subscription(db: Session, user_id: str) -> Optional[Subscription]:
    """
    Return the user's active subscription, or None.

    An active row whose period has ended is flipped to `expired`
    on the way through.
    """
    subscription = (
        db.query(Subscription)
        .filter(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .order_by(Subscription.created_at.desc())
        .first()
    )
    if not subscription:
        return None

    period_end = ensure_utc(subscription.current_period_end)
    if period_end and period_end < datetime.now(timezone.utc):
        logger.info(f"Subscription {subscription.id} for {user_id} has expired")
        subscription.status = SubscriptionStatus.EXPIRED.value
        _sync_quota(db, user_id, PlanType.FREE.value)
        db.commit()
        return None

    return subscription


def get_latest_subscription(db: Session, user_id: str) -> Optional[Subscription]:
    """Most recent subscription row regardless of status."""
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc())
        .first()
    )


def check_subscription(db: Session, user_id: str) -> dict:
    """
    Build the check-subscription response.

    Never raises: failures come back as an inactive result carrying
    `error` and `error_type="function_error"` so callers can fall back.
    """
    try:
        subscription = get_active_subscription(db, user_id)
        if subscription:
            return {
                "has_active_subscription": True,
                "subscription": subscription.to_dict(),
            }

        latest = get_latest_subscription(db, user_id)
        expired = latest if latest and latest.status == SubscriptionStatus.EXPIRED.value else None
        return {
            "has_active_subscription": False,
            "subscription": expired.to_dict() if expired else None,
        }
    except Exception as e:
        logger.error(f"check_subscription failed for {user_id}: {e}")
        db.rollback()
        return {
            "has_active_subscription": False,
            "subscription": None,
            "error": str(e),
            "error_type": "function_error",
        }


# ─────────────────────────────────────────────────────────────
# Writes
# ─────────────────────────────────────────────────────────────

def _sync_quota(db: Session, user_id: str, plan: str):
    """Keep the quota row on the subscription's plan; suspended rows stay at 0."""
    quota = db.query(UserQuota).filter(UserQuota.user_id == user_id).first()
    if quota and quota.monthly_limit != 0:
        quota.plan_type = plan
        quota.monthly_limit = PLAN_VIDEO_LIMITS.get(plan, PLAN_VIDEO_LIMITS["free"])


def upsert_subscription(
    db: Session,
    user_id: str,
    plan: str,
    status: str = SubscriptionStatus.ACTIVE.value,
    period_end: Optional[datetime] = None,
    **provider_fields,
) -> Tuple[Subscription, bool]:
    """
    Create or update the user's subscription row.

    Args:
        user_id:         Owner.
        plan:            "pro" or "business".
        status:          Provider status (default "active").
        period_end:      End of the paid period; defaults to 30 days from now.
        provider_fields: stripe_customer_id, stripe_subscription_id,
                         paystack_customer_code, paystack_card_signature.

    Returns:
        (subscription, created) — created is True for a first subscription.
    """
    now = datetime.now(timezone.utc)
    period_end = period_end or now + timedelta(days=SUBSCRIPTION_PERIOD_DAYS)

    subscription = get_latest_subscription(db, user_id)
    created = subscription is None

    if created:
        subscription = Subscription(user_id=user_id)
        db.add(subscription)

    # A fresh or reactivated period restarts the usage window
    was_active = not created and subscription.status == SubscriptionStatus.ACTIVE.value
    if not was_active or subscription.current_period_start is None:
        subscription.current_period_start = now

    subscription.plan_name = plan
    subscription.status = status
    subscription.current_period_end = period_end

    for field, value in provider_fields.items():
        if value is not None:
            setattr(subscription, field, value)

    _sync_quota(db, user_id, plan)
    db.commit()
    db.refresh(subscription)

    if created:
        from services.quota import get_or_create_quota, reset_usage
        get_or_create_quota(db, user_id, plan)
        reset_usage(db, user_id)

    logger.info(
        f"Subscription {'created' if created else 'updated'}: "
        f"user={user_id} plan={plan} status={status}"
    )
    return subscription, created


def find_user_id_by_email(db: Session, email: str) -> Optional[str]:
    profile = db.query(Profile).filter(Profile.email == email).first()
    return profile.id if profile else None


def cancel_subscription(db: Session, user_id: str) -> bool:
    """Mark every subscription of the user as canceled and drop the quota back to free."""
    updated = (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .update({Subscription.status: SubscriptionStatus.CANCELED.value})
    )
    if updated:
        _sync_quota(db, user_id, PlanType.FREE.value)
    db.commit()
    logger.info(f"Canceled {updated} subscription row(s) for {user_id}")
    return updated > 0


def find_user_id_by_stripe_customer(db: Session, customer_id: str) -> Optional[str]:
    row = (
        db.query(Subscription.user_id)
        .filter(Subscription.stripe_customer_id == customer_id)
        .first()
    )
    return row[0] if row else None


def find_user_id_by_stripe_subscription(db: Session, subscription_id: str) -> Optional[str]:
    row = (
        db.query(Subscription.user_id)
        .filter(Subscription.stripe_subscription_id == subscription_id)
        .first()
    )
    return row[0] if row else None
