"""
render.py — Video Render Service (Shotstack)
==============================================

Turns a project's scenes into a Shotstack timeline, submits the render,
and maps the provider's status back onto the project.

Pipeline:
  1. Resolve media for every scene (own URL → provided URLs → Pexels)
  2. Build the timeline (video track, optional captions, soundtrack)
  3. POST /render → render id
  4. Poll GET /render/{id} until done / failed

Without SHOTSTACK_API_KEY the service runs in mock mode: render ids look
like `mock-<epoch-ms>-<hex>` and their status is derived from the time
elapsed since the embedded timestamp.
"""

import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import httpx
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import (
    SHOTSTACK_API_KEY, SHOTSTACK_RENDER_URL, SHOTSTACK_STATUS_URL,
    DEFAULT_SCENE_DURATION_S, RENDER_OUTPUT_FORMAT, RENDER_OUTPUT_RESOLUTION,
    MOCK_RENDER_QUEUED_S, MOCK_RENDER_RENDERING_S, MOCK_RENDER_SAVING_S,
    MOCK_RENDER_VIDEO_URL,
)
from models import VideoProject, RenderLog, ProjectStatus, NotificationType
from services.stock_media import find_scene_video
from services.subscriptions import ensure_utc
from services.notifications import create_notification

logger = logging.getLogger(__name__)

MOCK_PREFIX = "mock-"

# Provider label → project status
STATUS_MAP = {
    "queued": ProjectStatus.PENDING.value,
    "fetching": ProjectStatus.PROCESSING.value,
    "rendering": ProjectStatus.PROCESSING.value,
    "saving": ProjectStatus.PROCESSING.value,
    "done": ProjectStatus.COMPLETED.value,
    "failed": ProjectStatus.FAILED.value,
}

TERMINAL_STATUSES = {ProjectStatus.COMPLETED.value, ProjectStatus.FAILED.value}


class RenderError(RuntimeError):
    pass


def map_render_status(provider_status: Optional[str]) -> str:
    """Unknown provider labels count as still processing."""
    return STATUS_MAP.get((provider_status or "").lower(), ProjectStatus.PROCESSING.value)


# ═════════════════════════════════════════════════════════════
# 1. MOCK RENDERS
# ═════════════════════════════════════════════════════════════

def is_mock_render_id(render_id: str) -> bool:
    return bool(render_id) and render_id.startswith(MOCK_PREFIX)


def new_mock_render_id(now: Optional[float] = None) -> str:
    now = time.time() if now is None else now
    return f"{MOCK_PREFIX}{int(now * 1000)}-{uuid.uuid4().hex[:8]}"


def simulate_mock_status(render_id: str, now: Optional[float] = None) -> Dict:
    """
    Status of a mock render at time `now` (epoch seconds).

      < 5s  queued
      < 15s rendering
      < 25s saving
      else  done (sample video URL)

    A malformed id is reported as failed.
    """
    now = time.time() if now is None else now

    try:
        started_ms = int(render_id[len(MOCK_PREFIX):].split("-")[0])
    except (ValueError, IndexError, TypeError):
        return {"status": "failed", "url": None, "error": "Malformed mock render id"}

    elapsed = now - started_ms / 1000.0

    if elapsed < MOCK_RENDER_QUEUED_S:
        return {"status": "queued", "url": None}
    if elapsed < MOCK_RENDER_RENDERING_S:
        return {"status": "rendering", "url": None}
    if elapsed < MOCK_RENDER_SAVING_S:
        return {"status": "saving", "url": None}
    return {"status": "done", "url": MOCK_RENDER_VIDEO_URL}


# ═════════════════════════════════════════════════════════════
# 2. TIMELINE
# ═════════════════════════════════════════════════════════════

def scene_media_url(scene: Dict) -> Optional[str]:
    """Media URL a scene already carries, under any of its aliases."""
    media = scene.get("media") or {}
    return (
        scene.get("videoUrl")
        or scene.get("media_url")
        or scene.get("url")
        or (media.get("url") if isinstance(media, dict) else None)
    )


async def resolve_scene_media(
    scenes: List[Dict],
    media_urls: Optional[List[str]] = None,
    use_stock_media: bool = True,
) -> List[Dict]:
    """
    Attach a `videoUrl` to scenes that need one.

    Explicit media URLs are assigned in order; otherwise, if no scene has
    media of its own, each scene's keywords are searched on Pexels.
    Returns only the scenes that end up with a URL.
    """
    resolved = [dict(scene) for scene in scenes]
    has_own_media = any(scene_media_url(s) for s in resolved)

    if media_urls:
        for scene, url in zip(resolved, media_urls):
            scene["videoUrl"] = url
    elif not has_own_media and use_stock_media:
        for scene in resolved:
            keywords = scene.get("keywords") or [scene.get("scene", ""), "video"]
            url = await find_scene_video(keywords)
            if url:
                scene["videoUrl"] = url
            else:
                logger.warning(f"No stock video for scene '{scene.get('scene', 'Unnamed scene')}'")

    return [s for s in resolved if scene_media_url(s)]


def build_timeline(
    scenes: List[Dict],
    has_captions: bool = False,
    audio_url: Optional[str] = None,
) -> Dict:
    """
    Build the Shotstack render request for scenes that have media.

    Clips run back to back with a zoom effect; the first fades in, the
    rest slide in from the right and the last fades out.
    """
    if not scenes:
        raise ValueError("No valid scenes provided for video creation")

    video_clips = []
    caption_clips = []
    current_time = 0
    last = len(scenes) - 1

    for index, scene in enumerate(scenes):
        length = scene.get("duration") or DEFAULT_SCENE_DURATION_S

        transition = {"in": "fade" if index == 0 else "slideLeft"}
        if index == last:
            transition["out"] = "fade"

        video_clips.append({
            "asset": {"type": "video", "src": scene_media_url(scene), "trim": 0},
            "start": current_time,
            "length": length,
            "effect": "zoomIn",
            "transition": transition,
        })

        if has_captions:
            caption_clips.append({
                "asset": {
                    "type": "title",
                    "text": scene.get("scene") or f"Scene {index + 1}",
                    "style": "minimal",
                    "size": "small",
                    "position": "bottom",
                },
                "start": current_time,
                "length": length,
            })

        current_time += length

    tracks = [{"clips": video_clips}]
    if caption_clips:
        tracks.append({"clips": caption_clips})

    timeline = {"background": "#000000", "tracks": tracks}
    if audio_url:
        timeline["soundtrack"] = {"src": audio_url, "effect": "fadeOut"}

    return {
        "timeline": timeline,
        "output": {"format": RENDER_OUTPUT_FORMAT, "resolution": RENDER_OUTPUT_RESOLUTION},
    }


# ═════════════════════════════════════════════════════════════
# 3. PROVIDER CALLS
# ═════════════════════════════════════════════════════════════

async def submit_render(render_request: Dict) -> str:
    """Send a render request; returns the render id (a mock id without a key)."""
    if not SHOTSTACK_API_KEY:
        render_id = new_mock_render_id()
        logger.info(f"Shotstack not configured, using mock render {render_id}")
        return render_id

    headers = {"x-api-key": SHOTSTACK_API_KEY, "Content-Type": "application/json"}

    async with httpx.AsyncClient(timeout=60) as client:
        response = await client.post(SHOTSTACK_RENDER_URL, json=render_request, headers=headers)

    if response.status_code >= 400:
        logger.error(f"Shotstack API error: {response.status_code} {response.text}")
        raise RenderError(f"Shotstack API error: {response.status_code} - {response.text}")

    render_id = (response.json().get("response") or {}).get("id")
    if not render_id:
        raise RenderError("No render ID returned from Shotstack")

    logger.info(f"Shotstack render started: {render_id}")
    return render_id


async def fetch_render_status(render_id: str) -> Dict:
    """Provider status for a render: {"status": label, "url": str | None}."""
    if is_mock_render_id(render_id):
        return simulate_mock_status(render_id)

    if not SHOTSTACK_API_KEY:
        raise RenderError("Shotstack API key is not configured")

    headers = {"x-api-key": SHOTSTACK_API_KEY, "Content-Type": "application/json"}

    async with httpx.AsyncClient(timeout=30) as client:
        response = await client.get(f"{SHOTSTACK_STATUS_URL}/{render_id}", headers=headers)

    if response.status_code >= 400:
        raise RenderError(f"Shotstack API error: {response.status_code}")

    data = response.json().get("response") or {}
    return {
        "status": data.get("status"),
        "url": data.get("url"),
        "error": data.get("error"),
    }


# ═════════════════════════════════════════════════════════════
# 4. PROJECT STATE
# ═════════════════════════════════════════════════════════════

async def start_render(
    db: Session,
    project: VideoProject,
    scenes: List[Dict],
    audio_url: Optional[str] = None,
    has_audio: bool = False,
    has_captions: bool = False,
    media_urls: Optional[List[str]] = None,
    use_stock_media: bool = True,
    template_name: Optional[str] = None,
) -> str:
    """
    Resolve media, submit the render and mark the project processing.

    On failure the project is marked failed before the error propagates.
    """
    try:
        usable = await resolve_scene_media(scenes, media_urls, use_stock_media)
        if not usable and not SHOTSTACK_API_KEY and scenes:
            # Mock renders still need a well-formed timeline
            usable = [dict(scene, videoUrl=MOCK_RENDER_VIDEO_URL) for scene in scenes]
        if not usable:
            raise ValueError(
                "No valid video URLs found in scenes. Please ensure each scene "
                "has a videoUrl property or enable stock videos."
            )

        render_request = build_timeline(
            usable,
            has_captions=has_captions,
            audio_url=audio_url if has_audio else None,
        )
        render_id = await submit_render(render_request)
    except (ValueError, RenderError, httpx.HTTPError) as e:
        project.status = ProjectStatus.FAILED.value
        project.error_message = str(e)
        db.commit()
        raise

    return begin_tracking(
        db, project, render_id,
        has_audio=has_audio, has_captions=has_captions,
        audio_url=audio_url, template_name=template_name,
    )


def begin_tracking(
    db: Session,
    project: VideoProject,
    render_id: str,
    has_audio: bool = False,
    has_captions: bool = False,
    audio_url: Optional[str] = None,
    template_name: Optional[str] = None,
) -> str:
    """Record a submitted render on the project and open a render log."""
    project.render_id = render_id
    project.status = ProjectStatus.PROCESSING.value
    project.has_audio = bool(has_audio)
    project.has_captions = bool(has_captions)
    project.error_message = None
    if audio_url:
        project.audio_url = audio_url

    db.add(RenderLog(
        user_id=project.user_id,
        video_project_id=project.id,
        render_id=render_id,
        status=ProjectStatus.PROCESSING.value,
        template_name=template_name,
        meta={"mock": is_mock_render_id(render_id)},
    ))
    db.commit()
    return render_id


def apply_render_status(db: Session, project: VideoProject, result: Dict) -> str:
    """
    Write a provider status result onto the project and its render log.

    Sends the "Video Ready" / "Video Generation Failed" notification the
    first time the project reaches a terminal state.

    Returns:
        The mapped project status.
    """
    status = map_render_status(result.get("status"))
    previous = project.status
    now = datetime.now(timezone.utc)

    if status == ProjectStatus.COMPLETED.value and result.get("url"):
        project.video_url = result["url"]
        project.thumbnail_url = project.thumbnail_url or result["url"]
    elif status == ProjectStatus.COMPLETED.value:
        # Done without an output URL yet
        status = ProjectStatus.PROCESSING.value

    if status == ProjectStatus.FAILED.value:
        project.error_message = result.get("error") or "Render failed"

    project.status = status

    log = None
    if project.render_id:
        log = (
            db.query(RenderLog)
            .filter(RenderLog.render_id == project.render_id)
            .order_by(RenderLog.started_at.desc())
            .first()
        )
    if log:
        log.status = status
        if status in TERMINAL_STATUSES:
            log.completed_at = now
            started = ensure_utc(log.started_at)
            if started:
                log.duration = (now - started).total_seconds()
        if status == ProjectStatus.FAILED.value:
            log.error_message = project.error_message

    db.commit()

    if previous != status and status in TERMINAL_STATUSES:
        if status == ProjectStatus.COMPLETED.value:
            create_notification(
                db, project.user_id,
                "Video Ready",
                f'Your video "{project.title}" is ready to view.',
                NotificationType.VIDEO.value,
                metadata={"project_id": project.id, "event": "completed"},
            )
        else:
            create_notification(
                db, project.user_id,
                "Video Generation Failed",
                f'Your video "{project.title}" could not be generated.',
                NotificationType.VIDEO.value,
                metadata={"project_id": project.id, "event": "failed"},
            )

    logger.info(f"Project {project.id} render {project.render_id}: {result.get('status')} → {status}")
    return status
