"""
test_quota.py — Unit Tests for Video Usage & Quotas
=====================================================

Run:
    cd backend
    python -m pytest tests/test_quota.py -v
"""

import sys
import os
from datetime import datetime, timezone, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Subscription, UserQuota
from services.quota import get_video_usage, increment_usage, reset_usage, plan_limit, get_or_create_quota
from services.subscriptions import upsert_subscription, cancel_subscription
from services.admin_analytics import update_plan
from tests.conftest import USER_ID, add_project


def _subscribe(db, plan="pro", started_days_ago=5, ends_in_days=25, status="active"):
    now = datetime.now(timezone.utc)
    subscription = Subscription(
        user_id=USER_ID,
        plan_name=plan,
        status=status,
        current_period_start=now - timedelta(days=started_days_ago),
        current_period_end=now + timedelta(days=ends_in_days),
    )
    db.add(subscription)
    db.commit()
    return subscription


# ═════════════════════════════════════════════════════════════
# 1. PLAN LIMITS
# ═════════════════════════════════════════════════════════════

class TestPlanLimit:

    def test_tier_constants(self):
        assert plan_limit("free") == 2
        assert plan_limit("pro") == 20
        assert plan_limit("business") == 50

    def test_unknown_plan_falls_back_to_free(self):
        assert plan_limit("enterprise") == 2
        assert plan_limit(None) == 2

    def test_plan_name_is_case_insensitive(self):
        assert plan_limit("Business") == 50


# ═════════════════════════════════════════════════════════════
# 2. USAGE
# ═════════════════════════════════════════════════════════════

class TestVideoUsage:

    def test_new_free_user_has_full_quota(self, db, profile):
        usage = get_video_usage(db, USER_ID)
        assert usage.count == 0
        assert usage.limit == 2
        assert usage.remaining == 2
        assert not usage.is_exceeded
        assert usage.reset_at is None
        assert not usage.is_subscribed

    def test_free_limit_is_lifetime(self, db, profile):
        """Old videos still count for free users."""
        add_project(db, created_at=datetime.now(timezone.utc) - timedelta(days=400))
        add_project(db)

        usage = get_video_usage(db, USER_ID)
        assert usage.count == 2
        assert usage.remaining == 0
        assert usage.is_exceeded

    def test_remaining_never_negative(self, db, profile):
        for _ in range(4):
            add_project(db)
        usage = get_video_usage(db, USER_ID)
        assert usage.remaining == 0
        assert usage.count == 4

    def test_subscriber_counts_current_period_only(self, db, profile):
        subscription = _subscribe(db, started_days_ago=5)
        add_project(db, created_at=datetime.now(timezone.utc) - timedelta(days=10))
        add_project(db, created_at=datetime.now(timezone.utc) - timedelta(days=1))

        usage = get_video_usage(db, USER_ID)
        assert usage.count == 1
        assert usage.limit == 20
        assert usage.remaining == 19
        assert usage.is_subscribed
        assert usage.is_pro
        assert not usage.is_business
        assert usage.reset_at is not None
        assert usage.reset_at.date() == subscription.current_period_end.date()

    def test_business_plan(self, db, profile):
        _subscribe(db, plan="business")
        usage = get_video_usage(db, USER_ID)
        assert usage.limit == 50
        assert usage.is_business
        assert not usage.is_pro

    def test_expired_subscription_falls_back_to_free(self, db, profile):
        _subscribe(db, started_days_ago=40, ends_in_days=-10)
        add_project(db, created_at=datetime.now(timezone.utc) - timedelta(days=20))

        usage = get_video_usage(db, USER_ID)
        assert usage.limit == 2
        assert usage.count == 1
        assert not usage.is_subscribed

        row = db.query(Subscription).filter(Subscription.user_id == USER_ID).first()
        assert row.status == "expired"


# ═════════════════════════════════════════════════════════════
# 3. ADMIN OVERRIDES
# ═════════════════════════════════════════════════════════════

class TestQuotaOverrides:

    def test_suspended_user_has_zero_limit(self, db, profile):
        _subscribe(db)
        quota = get_or_create_quota(db, USER_ID)
        quota.monthly_limit = 0
        db.commit()

        usage = get_video_usage(db, USER_ID)
        assert usage.limit == 0
        assert usage.is_exceeded

    def test_override_on_same_plan_applies(self, db, profile):
        db.add(UserQuota(user_id=USER_ID, plan_type="free", monthly_limit=5, current_usage=0))
        db.commit()
        add_project(db)
        add_project(db)

        usage = get_video_usage(db, USER_ID)
        assert usage.limit == 5
        assert usage.remaining == 3

    def test_admin_upgrade_applies_to_free_user(self, db, profile):
        update_plan(db, USER_ID, "business")

        usage = get_video_usage(db, USER_ID)
        assert usage.limit == 50
        assert usage.remaining == 50
        assert not usage.is_subscribed

    def test_lapsed_subscriber_drops_back_to_free(self, db, profile):
        upsert_subscription(db, USER_ID, "pro", period_end=datetime.now(timezone.utc) - timedelta(minutes=1))

        usage = get_video_usage(db, USER_ID)
        assert usage.limit == 2
        quota = db.query(UserQuota).filter(UserQuota.user_id == USER_ID).one()
        assert quota.plan_type == "free"

    def test_canceled_subscriber_drops_back_to_free(self, db, profile):
        upsert_subscription(db, USER_ID, "business")
        assert get_video_usage(db, USER_ID).limit == 50

        cancel_subscription(db, USER_ID)
        assert get_video_usage(db, USER_ID).limit == 2

    def test_suspension_survives_expiry(self, db, profile):
        upsert_subscription(db, USER_ID, "pro", period_end=datetime.now(timezone.utc) - timedelta(minutes=1))
        quota = get_or_create_quota(db, USER_ID)
        quota.monthly_limit = 0
        db.commit()

        assert get_video_usage(db, USER_ID).limit == 0


# ═════════════════════════════════════════════════════════════
# 4. COUNTERS
# ═════════════════════════════════════════════════════════════

class TestCounters:

    def test_increment_reports_count_including_new_video(self, db, profile):
        add_project(db)
        usage = increment_usage(db, USER_ID)

        assert usage.count == 1
        assert usage.remaining == 1
        quota = db.query(UserQuota).filter(UserQuota.user_id == USER_ID).one()
        assert quota.current_usage == 1

    def test_reset_zeroes_counter_and_moves_reset_date(self, db, profile):
        add_project(db)
        increment_usage(db, USER_ID)

        quota = reset_usage(db, USER_ID)
        assert quota.current_usage == 0
        reset_date = quota.reset_date
        if reset_date.tzinfo is None:
            reset_date = reset_date.replace(tzinfo=timezone.utc)
        assert reset_date > datetime.now(timezone.utc) + timedelta(days=29)
