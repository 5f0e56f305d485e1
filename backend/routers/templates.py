"""
templates.py — Video Templates Router
=======================================

Handles:
  GET  /api/templates                — list templates (optional category)
  POST /api/templates                — store a new template
  GET  /api/templates/{id}           — template with its edit JSON and variables
  POST /api/templates/{id}/videos    — fill the merge fields and render a video
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
from models import Template, VideoProject, ProjectStatus
from middleware.auth_middleware import get_current_user, CurrentUser
from routers.profiles import get_or_create_profile
from routers.videos import _queue_polling
from services.quota import get_video_usage, increment_usage
from services.render import submit_render, begin_tracking, RenderError
from services.templates import (
    get_template_details, apply_merge_fields, edit_has_audio, edit_has_captions,
    create_template,
)

logger = logging.getLogger(__name__)
router = APIRouter()


class CreateTemplateRequest(BaseModel):
    name: str
    template_json: Dict[str, Any]
    description: str = ""
    category: str = ""
    thumbnail: Optional[str] = None
    variables: Optional[List[Dict[str, Any]]] = None


class TemplateVideoRequest(BaseModel):
    variables: Dict[str, str] = {}
    title: Optional[str] = None


@router.get("/templates")
async def list_templates(
    category: Optional[str] = None,
    db: Session = Depends(get_db),
):
    query = db.query(Template)
    if category:
        query = query.filter(Template.category == category.lower())
    templates = query.order_by(Template.created_at.desc()).all()
    return {"templates": [t.to_dict() for t in templates]}


@router.post("/templates")
async def add_template(
    req: CreateTemplateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not req.name.strip():
        raise HTTPException(400, "Template name is required")
    if not (req.template_json.get("timeline") or {}).get("tracks"):
        raise HTTPException(400, "Template JSON must contain a timeline with tracks")

    template = create_template(
        db, req.name.strip(), req.template_json,
        description=req.description,
        category=req.category,
        thumbnail=req.thumbnail,
        variables=req.variables,
    )
    return get_template_details(db, template.id)


@router.get("/templates/{template_id}")
async def get_template(template_id: str, db: Session = Depends(get_db)):
    details = get_template_details(db, template_id)
    if not details:
        raise HTTPException(404, "Template not found")
    return details


@router.post("/templates/{template_id}/videos")
async def create_video_from_template(
    template_id: str,
    req: TemplateVideoRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a project from a template and submit its edit for rendering.

    The project title is the HEADLINE variable when present.
    """
    details = get_template_details(db, template_id)
    if not details:
        raise HTTPException(404, "Template not found")
    if not details["template_data"]:
        raise HTTPException(400, "Template has no edit data")

    profile = get_or_create_profile(db, user)
    usage = get_video_usage(db, profile.id)
    if usage.is_exceeded:
        raise HTTPException(
            402,
            f"Video limit reached ({usage.count}/{usage.limit}). Please upgrade your plan.",
        )

    edit = apply_merge_fields(details["template_data"], req.variables)
    title = req.title or req.variables.get("HEADLINE") or details["name"]

    project = VideoProject(
        user_id=profile.id,
        title=title,
        prompt=f"Created from template: {details['name']}",
        status=ProjectStatus.PENDING.value,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    increment_usage(db, profile.id)

    try:
        render_id = await submit_render(edit)
    except (RenderError, httpx.HTTPError) as e:
        project.status = ProjectStatus.FAILED.value
        project.error_message = str(e)
        db.commit()
        logger.error(f"Template render failed for {project.id}: {e}")
        raise HTTPException(502, f"Render submission failed: {e}")

    begin_tracking(
        db, project, render_id,
        has_audio=edit_has_audio(edit),
        has_captions=edit_has_captions(edit),
        template_name=details["name"],
    )
    _queue_polling(project.id)

    logger.info(f"Template video started: {project.id} from {template_id}")
    return {"video": project.to_dict(), "render_id": render_id}
