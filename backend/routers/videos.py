"""
videos.py — Video Projects & Rendering Router
===============================================

Handles:
  GET    /api/videos                — list user's projects
  POST   /api/videos                — create a project (quota checked)
  GET    /api/videos/recent         — latest few projects for the dashboard
  GET    /api/videos/{id}           — one project
  PATCH  /api/videos/{id}           — update title / scenes / options
  DELETE /api/videos/{id}           — delete a project
  POST   /api/videos/render         — submit a render for a project
  POST   /api/videos/render-status  — check a render and update the project
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import get_db
from models import VideoProject, ProjectStatus, NotificationType
from middleware.auth_middleware import get_current_user, CurrentUser
from routers.profiles import get_or_create_profile
from services.notifications import create_notification
from services.quota import get_video_usage, increment_usage
from services.render import (
    start_render, fetch_render_status, apply_render_status, RenderError,
)
from utils.validators import validate_video_prompt, sanitize_input

logger = logging.getLogger(__name__)
router = APIRouter()

RECENT_PROJECTS_LIMIT = 3

EDITABLE_FIELDS = (
    "title", "prompt", "style", "media_source", "brand_colors",
    "voice_type", "narration_script", "scenes", "has_audio", "has_captions",
    "audio_url", "thumbnail_url",
)


def _get_owned_project(db: Session, project_id: str, user_id: str) -> VideoProject:
    project = (
        db.query(VideoProject)
        .filter(VideoProject.id == project_id, VideoProject.user_id == user_id)
        .first()
    )
    if not project:
        raise HTTPException(404, "Video project not found")
    return project


def _queue_polling(project_id: str):
    """Hand the render over to the Celery poller."""
    try:
        from services.tasks import poll_render_status_task
        poll_render_status_task.delay(project_id)
        logger.info(f"Render polling queued for {project_id}")
    except Exception as e:
        # Clients can still poll /videos/render-status themselves
        logger.warning(f"Could not queue render polling (Celery unavailable): {e}")


# ─────────────────────────────────────────────────────────────
# Projects
# ─────────────────────────────────────────────────────────────

class CreateVideoRequest(BaseModel):
    title: str
    prompt: str
    style: Optional[str] = None
    media_source: Optional[str] = None
    brand_colors: Optional[str] = None
    voice_type: Optional[str] = None
    scenes: Optional[List[Dict[str, Any]]] = None


class UpdateVideoRequest(BaseModel):
    title: Optional[str] = None
    prompt: Optional[str] = None
    style: Optional[str] = None
    media_source: Optional[str] = None
    brand_colors: Optional[str] = None
    voice_type: Optional[str] = None
    narration_script: Optional[str] = None
    scenes: Optional[List[Dict[str, Any]]] = None
    has_audio: Optional[bool] = None
    has_captions: Optional[bool] = None
    audio_url: Optional[str] = None
    thumbnail_url: Optional[str] = None


@router.get("/videos")
async def list_videos(
    status: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List all of the user's projects, newest first."""
    query = db.query(VideoProject).filter(VideoProject.user_id == user.id)
    if status:
        query = query.filter(VideoProject.status == status)
    projects = query.order_by(VideoProject.created_at.desc()).all()
    return {"videos": [p.to_dict() for p in projects]}


@router.post("/videos")
async def create_video(
    req: CreateVideoRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a new video project.
    Checks the plan quota before accepting.
    """
    valid, message = validate_video_prompt(req.prompt)
    if not valid:
        raise HTTPException(400, message)

    title = req.title.strip()
    if not title:
        raise HTTPException(400, "Title cannot be empty")

    profile = get_or_create_profile(db, user)

    usage = get_video_usage(db, profile.id)
    if usage.is_exceeded:
        raise HTTPException(
            402,
            f"Video limit reached ({usage.count}/{usage.limit}). Please upgrade your plan.",
        )

    project = VideoProject(
        user_id=profile.id,
        title=sanitize_input(title),
        prompt=req.prompt.strip(),
        style=req.style,
        media_source=req.media_source,
        brand_colors=req.brand_colors,
        voice_type=req.voice_type,
        scenes=req.scenes,
        status=ProjectStatus.PENDING.value,
    )
    db.add(project)
    db.commit()
    db.refresh(project)

    usage = increment_usage(db, profile.id)
    logger.info(f"Project created: {project.id} ({usage.count}/{usage.limit})")

    return {"video": project.to_dict(), "usage": usage.to_dict()}


@router.get("/videos/recent")
async def recent_videos(
    limit: int = RECENT_PROJECTS_LIMIT,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    projects = (
        db.query(VideoProject)
        .filter(VideoProject.user_id == user.id)
        .order_by(VideoProject.created_at.desc())
        .limit(max(1, min(limit, 50)))
        .all()
    )
    return {"videos": [p.to_dict() for p in projects]}


@router.get("/videos/{project_id}")
async def get_video(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_owned_project(db, project_id, user.id).to_dict()


@router.patch("/videos/{project_id}")
async def update_video(
    project_id: str,
    req: UpdateVideoRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = _get_owned_project(db, project_id, user.id)

    changes = req.model_dump(exclude_unset=True)
    if "title" in changes and not (changes["title"] or "").strip():
        raise HTTPException(400, "Title cannot be empty")

    for field in EDITABLE_FIELDS:
        if field in changes:
            setattr(project, field, changes[field])

    db.commit()
    db.refresh(project)
    return project.to_dict()


@router.delete("/videos/{project_id}")
async def delete_video(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = _get_owned_project(db, project_id, user.id)
    title = project.title

    db.delete(project)
    db.commit()

    create_notification(
        db, user.id,
        "Video Deleted",
        f'Your video "{title}" has been deleted.',
        NotificationType.VIDEO.value,
        metadata={"project_id": project_id, "event": "deleted"},
    )
    logger.info(f"Project deleted: {project_id}")
    return {"deleted": True}


# ─────────────────────────────────────────────────────────────
# Rendering
# ─────────────────────────────────────────────────────────────

class RenderRequest(BaseModel):
    project_id: str
    scenes: Optional[List[Dict[str, Any]]] = None
    audio_url: Optional[str] = None
    has_audio: bool = False
    has_captions: bool = False
    media_urls: Optional[List[str]] = None
    use_stock_media: bool = True


class RenderStatusRequest(BaseModel):
    render_id: str


@router.post("/videos/render")
async def render_video(
    req: RenderRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Build a timeline from the project's scenes and submit it.
    The project moves to `processing` and a poller is queued.
    """
    project = _get_owned_project(db, req.project_id, user.id)

    scenes = req.scenes if req.scenes is not None else (project.scenes or [])
    if req.scenes is not None:
        project.scenes = req.scenes

    try:
        render_id = await start_render(
            db, project, scenes,
            audio_url=req.audio_url,
            has_audio=req.has_audio,
            has_captions=req.has_captions,
            media_urls=req.media_urls,
            use_stock_media=req.use_stock_media,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    except (RenderError, httpx.HTTPError) as e:
        logger.error(f"Render submission failed for {project.id}: {e}")
        raise HTTPException(502, f"Render submission failed: {e}")

    _queue_polling(project.id)

    return {
        "render_id": render_id,
        "status": project.status,
        "project_id": project.id,
    }


@router.post("/videos/render-status")
async def render_status(
    req: RenderStatusRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Check one render and write the result onto its project."""
    project = (
        db.query(VideoProject)
        .filter(VideoProject.render_id == req.render_id, VideoProject.user_id == user.id)
        .first()
    )
    if not project:
        raise HTTPException(404, "No project found for this render")

    try:
        result = await fetch_render_status(req.render_id)
    except (RenderError, httpx.HTTPError) as e:
        logger.error(f"Render status check failed for {req.render_id}: {e}")
        raise HTTPException(502, f"Render status check failed: {e}")

    status = apply_render_status(db, project, result)

    return {
        "render_id": req.render_id,
        "status": status,
        "provider_status": result.get("status"),
        "url": project.video_url,
        "error": project.error_message if status == ProjectStatus.FAILED.value else None,
        "project": project.to_dict(),
    }
