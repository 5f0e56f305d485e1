"""
test_subscriptions.py — Unit Tests for Subscription State
===========================================================

Run:
    cd backend
    python -m pytest tests/test_subscriptions.py -v
"""

import sys
import os
from datetime import datetime, timezone, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Subscription, UserQuota
from services.subscriptions import (
    ensure_utc, plan_from_product_name, get_active_subscription, check_subscription,
    upsert_subscription, cancel_subscription, find_user_id_by_email,
)
from tests.conftest import USER_ID, USER_EMAIL


class TestHelpers:

    def test_ensure_utc_tags_naive_values(self):
        naive = datetime(2026, 1, 1, 12, 0)
        assert ensure_utc(naive).tzinfo == timezone.utc
        assert ensure_utc(None) is None

    def test_plan_from_product_name(self):
        assert plan_from_product_name("SmartVid Business Monthly") == "business"
        assert plan_from_product_name("SmartVid Pro") == "pro"
        assert plan_from_product_name(None) == "pro"


class TestUpsert:

    def test_first_subscription_is_created(self, db, profile):
        subscription, created = upsert_subscription(db, USER_ID, "pro")

        assert created
        assert subscription.status == "active"
        assert subscription.current_period_start is not None
        end = ensure_utc(subscription.current_period_end)
        assert end > datetime.now(timezone.utc) + timedelta(days=29)

        quota = db.query(UserQuota).filter(UserQuota.user_id == USER_ID).one()
        assert quota.plan_type == "pro"
        assert quota.monthly_limit == 20
        assert quota.current_usage == 0

    def test_renewal_keeps_period_start(self, db, profile):
        subscription, _ = upsert_subscription(db, USER_ID, "pro")
        started = subscription.current_period_start

        subscription, created = upsert_subscription(db, USER_ID, "business")

        assert not created
        assert subscription.plan_name == "business"
        assert subscription.current_period_start == started
        assert db.query(Subscription).count() == 1

    def test_reactivation_restarts_period(self, db, profile):
        subscription, _ = upsert_subscription(db, USER_ID, "pro")
        cancel_subscription(db, USER_ID)
        db.refresh(subscription)
        old_start = ensure_utc(subscription.current_period_start)

        subscription, _ = upsert_subscription(db, USER_ID, "pro")
        assert ensure_utc(subscription.current_period_start) >= old_start
        assert subscription.status == "active"

    def test_suspended_quota_stays_suspended(self, db, profile):
        db.add(UserQuota(user_id=USER_ID, plan_type="free", monthly_limit=0))
        db.commit()

        upsert_subscription(db, USER_ID, "business")

        quota = db.query(UserQuota).filter(UserQuota.user_id == USER_ID).one()
        assert quota.monthly_limit == 0

    def test_provider_fields_are_stored(self, db, profile):
        subscription, _ = upsert_subscription(
            db, USER_ID, "pro",
            stripe_customer_id="cus_9", stripe_subscription_id="sub_9",
        )
        assert subscription.stripe_customer_id == "cus_9"
        assert subscription.stripe_subscription_id == "sub_9"


class TestChecks:

    def test_active_subscription(self, db, profile):
        upsert_subscription(db, USER_ID, "pro")
        result = check_subscription(db, USER_ID)
        assert result["has_active_subscription"] is True
        assert result["subscription"]["plan_name"] == "pro"

    def test_lapsed_subscription_is_expired(self, db, profile):
        upsert_subscription(db, USER_ID, "pro", period_end=datetime.now(timezone.utc) - timedelta(minutes=1))

        assert get_active_subscription(db, USER_ID) is None
        assert db.query(Subscription).one().status == "expired"

    def test_errors_are_reported_not_raised(self, db, profile, monkeypatch):
        import services.subscriptions as subscriptions

        def explode(*args, **kwargs):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(subscriptions, "get_active_subscription", explode)
        result = check_subscription(db, USER_ID)

        assert result["has_active_subscription"] is False
        assert result["error_type"] == "function_error"
        assert "connection reset" in result["error"]

    def test_cancel_and_lookup(self, db, profile):
        upsert_subscription(db, USER_ID, "pro")
        assert find_user_id_by_email(db, USER_EMAIL) == USER_ID
        assert cancel_subscription(db, USER_ID) is True
        assert db.query(Subscription).one().status == "canceled"
        assert cancel_subscription(db, "nobody") is False
