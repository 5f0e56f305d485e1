"""
celery_app.py — Celery Worker for Render Polling
==================================================

One queue, `renders`, carries `poll_render_status_task`. Each run is a
single status check against the render provider; the task reschedules
itself with `self.retry` until the render finishes or times out.

Usage:
    celery -A celery_app worker -Q renders --loglevel=info
"""

from celery import Celery

from config import REDIS_URL, RENDER_POLL_INTERVAL_S

RENDER_QUEUE = "renders"

celery_app = Celery(
    "smartvid",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["services.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_default_queue=RENDER_QUEUE,
    task_routes={"services.tasks.poll_render_status_task": {"queue": RENDER_QUEUE}},

    # A status check is one HTTP round trip
    task_time_limit=RENDER_POLL_INTERVAL_S * 6,
    task_soft_time_limit=RENDER_POLL_INTERVAL_S * 3,
    worker_prefetch_multiplier=4,

    # Callers read render state from the database, not from results
    task_ignore_result=True,
    result_expires=3600,
)
