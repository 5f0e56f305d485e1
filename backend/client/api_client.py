"""
api_client.py — SmartVid HTTP Client
======================================

Thin async client over the SmartVid API for scripts, workers and the
state objects in `client/state.py`.

    async with SmartVidClient("http://localhost:8000", token) as api:
        usage = await api.get_usage()

Transient failures (network errors, 5xx) are retried with backoff;
everything else raises `httpx.HTTPStatusError` straight away.
"""

import logging
import os
from typing import Any, Dict, Optional

import httpx

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from utils.retry import with_retry, is_retryable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30
DEFAULT_MAX_RETRIES = 3


class SmartVidClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=DEFAULT_TIMEOUT_S,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one API call (with retries) and return the decoded JSON body."""

        async def attempt():
            response = await self._client.request(
                method, path, json=json, params=params, headers=self._headers(),
            )
            response.raise_for_status()
            return response.json()

        return await with_retry(
            attempt,
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            retry_if=is_retryable,
        )

    # ── Subscriptions & usage ────────────────────────────────

    async def get_current_subscription(self) -> Optional[Dict]:
        return (await self.request("GET", "/api/subscriptions/current")).get("subscription")

    async def check_subscription(self) -> Dict:
        return await self.request("POST", "/api/subscriptions/check")

    async def get_latest_subscription(self) -> Optional[Dict]:
        return (await self.request("GET", "/api/subscriptions/latest")).get("subscription")

    async def get_usage(self) -> Dict:
        return await self.request("GET", "/api/usage")

    # ── Admin ────────────────────────────────────────────────

    async def get_admin_status(self) -> Dict:
        return await self.request("GET", "/api/admin/me")

    # ── Videos ───────────────────────────────────────────────

    async def create_video(self, title: str, prompt: str, **options) -> Dict:
        return await self.request("POST", "/api/videos", json={"title": title, "prompt": prompt, **options})

    async def render_video(self, project_id: str, **options) -> Dict:
        return await self.request("POST", "/api/videos/render", json={"project_id": project_id, **options})

    async def render_status(self, render_id: str) -> Dict:
        return await self.request("POST", "/api/videos/render-status", json={"render_id": render_id})
