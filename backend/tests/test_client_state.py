"""
test_client_state.py — Unit Tests for the API Client & State Objects
======================================================================

The SmartVid API is faked with an httpx.MockTransport keyed on path,
so the subscription fallback chain can be driven one step at a time.

Run:
    cd backend
    python -m pytest tests/test_client_state.py -v
"""

import sys
import os
import asyncio

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from client.api_client import SmartVidClient
from client.state import SubscriptionState, AdminState


ACTIVE_PRO = {"id": "sub-1", "status": "active", "plan_name": "pro"}
ACTIVE_BUSINESS = {"id": "sub-2", "status": "active", "plan_name": "Business"}
EXPIRED_PRO = {"id": "sub-3", "status": "expired", "plan_name": "pro"}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def fake_api(routes: dict, calls: list):
    """MockTransport answering `routes[path]` = (status, json)."""
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        status, body = routes.get(request.url.path, (404, {"detail": "Not Found"}))
        return httpx.Response(status, json=body)
    return httpx.MockTransport(handler)


def make_client(routes: dict, calls: list) -> SmartVidClient:
    return SmartVidClient("http://api.test", token="tok", max_retries=0, transport=fake_api(routes, calls))


def run(coro):
    return asyncio.run(coro)


# ═════════════════════════════════════════════════════════════
# 1. CLIENT
# ═════════════════════════════════════════════════════════════

class TestClient:

    def test_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"used": 1, "limit": 3})

        async def scenario():
            async with SmartVidClient("http://api.test/", token="tok", transport=httpx.MockTransport(handler)) as api:
                return await api.get_usage()

        assert run(scenario()) == {"used": 1, "limit": 3}
        assert seen["auth"] == "Bearer tok"

    def test_client_errors_are_not_retried(self):
        calls = []

        async def scenario():
            api = SmartVidClient(
                "http://api.test", max_retries=3,
                transport=fake_api({"/api/usage": (401, {"detail": "Invalid token"})}, calls),
            )
            try:
                await api.get_usage()
            finally:
                await api.close()

        with pytest.raises(httpx.HTTPStatusError):
            run(scenario())
        assert len(calls) == 1


# ═════════════════════════════════════════════════════════════
# 2. SUBSCRIPTION STATE
# ═════════════════════════════════════════════════════════════

class TestSubscriptionState:

    def test_uses_current_row_first(self):
        calls = []
        routes = {"/api/subscriptions/current": (200, {"subscription": ACTIVE_PRO})}
        state = SubscriptionState(make_client(routes, calls))

        assert run(state.refresh()) == ACTIVE_PRO
        assert state.source == "current"
        assert state.has_active_subscription
        assert state.is_pro and not state.is_business
        assert calls == [("GET", "/api/subscriptions/current")]

    def test_falls_back_to_check(self):
        calls = []
        routes = {
            "/api/subscriptions/current": (200, {"subscription": None}),
            "/api/subscriptions/check": (200, {"has_active_subscription": True, "subscription": ACTIVE_BUSINESS}),
        }
        state = SubscriptionState(make_client(routes, calls))
        run(state.refresh())

        assert state.source == "check"
        assert state.is_business

    def test_check_error_falls_back_to_latest(self):
        calls = []
        routes = {
            "/api/subscriptions/current": (500, {"detail": "boom"}),
            "/api/subscriptions/check": (200, {"has_active_subscription": False, "error": "db down"}),
            "/api/subscriptions/latest": (200, {"subscription": EXPIRED_PRO}),
        }
        state = SubscriptionState(make_client(routes, calls))
        run(state.refresh())

        assert state.source == "latest"
        assert state.subscription == EXPIRED_PRO
        assert not state.has_active_subscription
        assert not state.is_pro
        assert state.error is None

    def test_total_failure_sets_error(self):
        calls = []
        routes = {path: (401, {"detail": "expired"}) for path in (
            "/api/subscriptions/current", "/api/subscriptions/check", "/api/subscriptions/latest",
        )}
        state = SubscriptionState(make_client(routes, calls))
        run(state.refresh())

        assert state.subscription is None
        assert "sign in" in state.error
        assert state.is_loading is False

    def test_refresh_is_rate_limited(self):
        calls = []
        clock = FakeClock()
        routes = {"/api/subscriptions/current": (200, {"subscription": ACTIVE_PRO})}
        state = SubscriptionState(make_client(routes, calls), clock=clock)

        run(state.refresh())
        clock.now += 10
        run(state.refresh())
        assert len(calls) == 1

        run(state.refresh(force=True))
        assert len(calls) == 2

        clock.now += 31
        run(state.refresh())
        assert len(calls) == 3


# ═════════════════════════════════════════════════════════════
# 3. ADMIN STATE
# ═════════════════════════════════════════════════════════════

class TestAdminState:

    def test_admin_passes_guard(self):
        routes = {"/api/admin/me": (200, {"is_admin": True, "role": "super_admin"})}
        state = AdminState(make_client(routes, []))

        assert run(state.refresh()) is True
        assert state.role == "super_admin"
        assert state.loading is False
        assert state.route_guard() is None

    def test_non_admin_is_redirected(self):
        routes = {"/api/admin/me": (200, {"is_admin": False, "role": None})}
        state = AdminState(make_client(routes, []))

        assert run(state.refresh()) is False
        assert state.route_guard() == "/auth"

    def test_failure_counts_as_non_admin(self):
        routes = {"/api/admin/me": (401, {"detail": "Invalid token"})}
        state = AdminState(make_client(routes, []))

        run(state.refresh())
        assert state.is_admin is False
        assert state.route_guard() == "/auth"
