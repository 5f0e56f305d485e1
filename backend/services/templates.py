"""
templates.py — Video Template Service
=======================================

Templates are stored Shotstack edits with `merge` fields such as
`{"find": "{{HEADLINE}}", "replace": ""}`. Creating a video from a
template fills those fields from user-supplied variables and renders
the resulting edit directly.
"""

import copy
import logging
import os
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from models import Template, TemplateData

logger = logging.getLogger(__name__)


def get_template_details(db: Session, template_id: str) -> Optional[Dict]:
    """Template row plus its stored JSON and variables, or None."""
    template = db.query(Template).filter(Template.id == template_id).first()
    if not template:
        return None

    details = template.to_dict()
    data = template.data
    details["template_data"] = data.template_json if data else None
    details["variables"] = data.variables if data else None
    return details


def apply_merge_fields(template_json: Dict, variables: Dict[str, str]) -> Dict:
    """
    Return a copy of the edit with merge fields filled in.

    A field matches a variable when its `find` value, stripped of braces,
    equals the variable name. Empty values leave the field untouched.
    """
    edit = copy.deepcopy(template_json)
    for field in edit.get("merge") or []:
        name = str(field.get("find", "")).replace("{", "").replace("}", "")
        if variables.get(name):
            field["replace"] = variables[name]
    return edit


def edit_has_audio(edit: Dict) -> bool:
    timeline = edit.get("timeline") or {}
    merge = edit.get("merge") or []
    return bool(timeline.get("soundtrack")) or any(m.get("find") == "VOICEOVER" for m in merge)


def edit_has_captions(edit: Dict) -> bool:
    timeline = edit.get("timeline") or {}
    if timeline.get("subtitles"):
        return True
    return any(
        (clip.get("asset") or {}).get("type") == "caption"
        for track in timeline.get("tracks") or []
        for clip in track.get("clips") or []
    )


def create_template(
    db: Session,
    name: str,
    template_json: Dict,
    description: str = "",
    category: str = "",
    thumbnail: Optional[str] = None,
    variables: Optional[List[Dict]] = None,
) -> Template:
    """
    Store a template and its edit JSON.

    The template row is removed again if its data cannot be saved.
    """
    template = Template(
        name=name,
        description=description,
        category=(category or "").lower(),
        thumbnail=thumbnail,
        is_premium=False,
    )
    db.add(template)
    db.commit()
    db.refresh(template)

    try:
        db.add(TemplateData(
            template_id=template.id,
            template_json=template_json,
            variables=variables or [],
        ))
        db.commit()
    except Exception:
        db.rollback()
        db.delete(template)
        db.commit()
        logger.error(f"Could not store data for template '{name}', removed it")
        raise

    logger.info(f"Template created: {template.id} ({name})")
    return template
