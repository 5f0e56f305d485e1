"""
ai.py — AI Generation Router
==============================

Handles:
  POST /api/ai/scenes         — break a prompt into scenes (LLM)
  POST /api/ai/audio          — narration script + text-to-speech
  GET  /api/ai/voices         — available TTS voices
  POST /api/ai/stock-videos   — search stock footage by keywords
  GET  /api/scripts           — user's saved scripts
  POST /api/scripts           — save a script
"""

import logging
import os
import uuid
from typing import Any, Dict, List, Optional, Union

import httpx
from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from database import get_db
from models import Script, VideoProject
from middleware.auth_middleware import get_current_user, CurrentUser
from routers.profiles import get_or_create_profile
from services.scene_generator import generate_scenes, fallback_scenes
from services.speech import generate_audio, SpeechError, AVAILABLE_VOICES
from services.stock_media import search_videos, StockMediaError
from utils.storage import upload_bytes
from utils.validators import validate_length

logger = logging.getLogger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────────────────────
# Scenes
# ─────────────────────────────────────────────────────────────

class ScenesRequest(BaseModel):
    prompt: str
    preferred_llm: str = "auto"  # "gemini" | "claude" | "gpt" | "auto"


@router.post("/ai/scenes")
async def create_scenes(
    req: ScenesRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """
    Generate a scene breakdown for a video idea.

    On failure the response is a 500 that still carries usable fallback
    scenes, so the editor is never left empty.
    """
    if not req.prompt.strip():
        raise HTTPException(400, "Prompt is required")

    try:
        return await generate_scenes(req.prompt, req.preferred_llm)
    except Exception as e:
        logger.error(f"Scene generation failed for {user.id}: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "error": str(e) or "Failed to generate scenes",
                "scenes": fallback_scenes(),
            },
        )


# ─────────────────────────────────────────────────────────────
# Audio
# ─────────────────────────────────────────────────────────────

class AudioRequest(BaseModel):
    script: Optional[str] = None
    scenes: Optional[Union[List[Dict[str, Any]], str]] = None
    voice_id: Optional[str] = None
    project_id: Optional[str] = None


@router.post("/ai/audio")
async def create_audio(
    req: AudioRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Narrate a video.

    When `project_id` is given the MP3 is also stored and linked to the
    project as its soundtrack.
    """
    project = None
    if req.project_id:
        project = (
            db.query(VideoProject)
            .filter(VideoProject.id == req.project_id, VideoProject.user_id == user.id)
            .first()
        )
        if not project:
            raise HTTPException(404, "Video project not found")

    try:
        result = await generate_audio(req.script, req.scenes, req.voice_id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except (SpeechError, httpx.HTTPError) as e:
        logger.error(f"Audio generation failed for {user.id}: {e}")
        raise HTTPException(502, str(e))

    audio = result.pop("audio_bytes")
    result["audio_url"] = None

    if project:
        key = f"audio/{user.id}/{project.id}-{uuid.uuid4().hex[:8]}.mp3"
        try:
            result["audio_url"] = upload_bytes(audio, key, "audio/mpeg")
        except Exception as e:
            logger.warning(f"Audio upload failed for {project.id}, returning inline audio only: {e}")
        else:
            project.audio_url = result["audio_url"]
            project.has_audio = True
            project.narration_script = result["narration_script"]
            project.voice_type = result["voice_id"]
            db.commit()

    return result


@router.get("/ai/voices")
async def list_voices():
    return {"voices": AVAILABLE_VOICES}


# ─────────────────────────────────────────────────────────────
# Stock footage
# ─────────────────────────────────────────────────────────────

class StockVideoRequest(BaseModel):
    keywords: Union[List[str], str, None] = None
    per_page: int = 3


@router.post("/ai/stock-videos")
async def stock_videos(
    req: StockVideoRequest,
    user: CurrentUser = Depends(get_current_user),
):
    try:
        videos = await search_videos(req.keywords, per_page=max(1, min(req.per_page, 15)))
    except ValueError as e:
        raise HTTPException(400, str(e))
    except StockMediaError as e:
        raise HTTPException(e.status_code, str(e))
    except httpx.HTTPError as e:
        logger.error(f"Stock video search failed: {e}")
        raise HTTPException(502, "Stock video search failed")

    return {"videos": videos}


# ─────────────────────────────────────────────────────────────
# Scripts
# ─────────────────────────────────────────────────────────────

class ScriptRequest(BaseModel):
    title: str
    content: str
    type: str = "scene-breakdown"


def _script_dict(script: Script) -> dict:
    return {
        "id": script.id,
        "title": script.title,
        "content": script.content,
        "type": script.type,
        "created_at": script.created_at.isoformat() if script.created_at else None,
    }


@router.get("/scripts")
async def list_scripts(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    scripts = (
        db.query(Script)
        .filter(Script.user_id == user.id)
        .order_by(Script.created_at.desc())
        .all()
    )
    return {"scripts": [_script_dict(s) for s in scripts]}


@router.post("/scripts")
async def save_script(
    req: ScriptRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    for value, name, max_length in ((req.title, "Title", 200), (req.content, "Content", 20000)):
        valid, message = validate_length(value.strip(), 1, max_length, name)
        if not valid:
            raise HTTPException(400, message)

    profile = get_or_create_profile(db, user)
    script = Script(
        user_id=profile.id,
        title=req.title.strip(),
        content=req.content,
        type=req.type,
    )
    db.add(script)
    db.commit()
    db.refresh(script)

    logger.info(f"Script saved: {script.id}")
    return _script_dict(script)
