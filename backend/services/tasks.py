"""
tasks.py — Celery Async Tasks
================================

Background render polling. After a render is submitted the API queues
`poll_render_status_task`, which re-checks the provider every 10 s and
gives up after 30 minutes.

Usage from API:
    from services.tasks import poll_render_status_task
    poll_render_status_task.delay(project_id)
"""

import asyncio
import logging

import httpx

from celery_app import celery_app
from config import RENDER_POLL_INTERVAL_S, RENDER_POLL_MAX_ATTEMPTS
from database import session_scope
from models import VideoProject, ProjectStatus

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Render timed out"


@celery_app.task(
    bind=True,
    max_retries=RENDER_POLL_MAX_ATTEMPTS,
    default_retry_delay=RENDER_POLL_INTERVAL_S,
)
def poll_render_status_task(self, project_id: str):
    """
    Celery task: check one project's render and reschedule until it ends.

    Args:
        project_id: The VideoProject.id being rendered.
    """
    from services.render import fetch_render_status, apply_render_status, TERMINAL_STATUSES, RenderError

    with session_scope() as db:
        project = db.query(VideoProject).filter(VideoProject.id == project_id).first()
        if not project or not project.render_id:
            logger.error(f"Nothing to poll for project {project_id}")
            return {"error": "Project not found"}

        if project.status in TERMINAL_STATUSES:
            return {"status": project.status}

        try:
            result = asyncio.run(fetch_render_status(project.render_id))
            status = apply_render_status(db, project, result)
        except (RenderError, httpx.HTTPError) as e:
            logger.warning(f"[{project_id}] Status check failed: {e}")
            status = project.status

        if status in TERMINAL_STATUSES:
            logger.info(f"[{project_id}] ✓ Render finished: {status}")
            return {"status": status, "video_url": project.video_url}

        if self.request.retries >= self.max_retries:
            logger.error(f"[{project_id}] Gave up polling after {self.request.retries} attempts")
            apply_render_status(db, project, {"status": "failed", "error": TIMEOUT_MESSAGE})
            return {"status": ProjectStatus.FAILED.value, "error": TIMEOUT_MESSAGE}

    raise self.retry(countdown=RENDER_POLL_INTERVAL_S)
