"""
state.py — Client Subscription & Admin State
==============================================

Long-lived objects that keep the signed-in user's subscription and admin
status in sync with the API.

Subscription refresh is a fallback chain:
  1. the stored subscription row      (GET  /api/subscriptions/current)
  2. the server-side status check     (POST /api/subscriptions/check)
  3. the most recent row, any status  (GET  /api/subscriptions/latest)

Non-forced refreshes inside 30 s of the previous one are skipped.
"""

import logging
import os
import time
from typing import Callable, Dict, Optional

import httpx

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from client.api_client import SmartVidClient
from utils.retry import categorize_error, user_message

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_S = 30
AUTH_ROUTE = "/auth"


class SubscriptionState:
    def __init__(self, client: SmartVidClient, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.clock = clock
        self.subscription: Optional[Dict] = None
        self.is_loading = False
        self.error: Optional[str] = None
        self.source: Optional[str] = None
        self._last_refresh: Optional[float] = None

    @property
    def has_active_subscription(self) -> bool:
        return bool(self.subscription) and self.subscription.get("status") == "active"

    def _plan(self) -> str:
        return ((self.subscription or {}).get("plan_name") or "").lower()

    @property
    def is_pro(self) -> bool:
        return self.has_active_subscription and self._plan() == "pro"

    @property
    def is_business(self) -> bool:
        return self.has_active_subscription and self._plan() == "business"

    def _fresh(self) -> bool:
        return self._last_refresh is not None and self.clock() - self._last_refresh < REFRESH_INTERVAL_S

    async def refresh(self, force: bool = False) -> Optional[Dict]:
        """
        Reload the subscription through the fallback chain.

        Returns the current subscription dict (or None). Inside the rate
        limit window the cached value is returned without any request.
        """
        if not force and self._fresh():
            logger.debug("Subscription refresh skipped (rate limited)")
            return self.subscription

        self._last_refresh = self.clock()
        self.is_loading = True
        self.error = None
        try:
            await self._run_chain()
        finally:
            self.is_loading = False
        return self.subscription

    async def _run_chain(self):
        try:
            current = await self.client.get_current_subscription()
            if current:
                self._set(current, "current")
                return
        except httpx.HTTPError as e:
            logger.warning(f"Stored subscription read failed, trying status check: {e}")

        try:
            result = await self.client.check_subscription()
            if not result.get("error"):
                self._set(result.get("subscription"), "check")
                return
            logger.warning(f"Subscription check reported an error: {result['error']}")
        except httpx.HTTPError as e:
            logger.warning(f"Subscription check failed, trying latest row: {e}")

        try:
            self._set(await self.client.get_latest_subscription(), "latest")
        except httpx.HTTPError as e:
            self.error = user_message(categorize_error(e))
            logger.error(f"All subscription lookups failed: {e}")

    def _set(self, subscription: Optional[Dict], source: str):
        self.subscription = subscription
        self.source = source


class AdminState:
    def __init__(self, client: SmartVidClient):
        self.client = client
        self.is_admin = False
        self.role: Optional[str] = None
        self.loading = True

    async def refresh(self) -> bool:
        try:
            status = await self.client.get_admin_status()
            self.is_admin = bool(status.get("is_admin"))
            self.role = status.get("role")
        except httpx.HTTPError as e:
            logger.info(f"Not an admin user: {e}")
            self.is_admin = False
            self.role = None
        finally:
            self.loading = False
        return self.is_admin

    def route_guard(self) -> Optional[str]:
        """Where to redirect before showing an admin page, or None to allow it."""
        return None if self.is_admin else AUTH_ROUTE
