"""
scene_generator.py — LLM Scene Breakdown Service
==================================================

Breaks a free-text video description into 3-5 scenes, each with a
title, a visual description, stock-footage keywords and a duration.

LLM backends, picked automatically from the configured keys:
  1. Gemini 2.0 Flash  (GEMINI_API_KEY, REST via httpx)
  2. Claude            (ANTHROPIC_API_KEY)
  3. GPT-4o            (OPENAI_API_KEY)

If the model's JSON does not parse, the broken text is sent back once
with a "fix this JSON" prompt at a lower temperature.
"""

import json
import logging
import os
import re
from typing import Dict, List, Optional

import httpx

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import GEMINI_API_KEY, GEMINI_MODEL, ANTHROPIC_API_KEY, OPENAI_API_KEY, DEFAULT_SCENE_DURATION_S

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
CLAUDE_MODEL = "claude-sonnet-4-20250514"
GPT_MODEL = "gpt-4o"

SCENE_TEMPERATURE = 0.4
FIX_TEMPERATURE = 0.2
MAX_OUTPUT_TOKENS = 1000
SCENE_SAMPLING = {"topK": 40, "topP": 0.8}

DEFAULT_DESCRIPTION = "A professional scene for a video"
DEFAULT_KEYWORDS = ["professional", "video", "scene"]

FALLBACK_SCENES = [
    {
        "id": "scene1",
        "scene": "Default Scene",
        "description": "A professional looking scene for a video",
        "keywords": DEFAULT_KEYWORDS,
        "duration": DEFAULT_SCENE_DURATION_S,
    }
]


# ═════════════════════════════════════════════════════════════
# 1. PROMPT ENGINEERING
# ═════════════════════════════════════════════════════════════

SCENE_PROMPT = """You are an experienced video producer. Break down the following description into 3-5 distinct scenes for a professional video. For each scene, provide:
1. A short scene title
2. A detailed visual description that a stock footage search engine could match
3. 3-5 specific keywords that will help find the perfect stock footage
4. A recommended duration in seconds (between 3-10 seconds per scene)

Format your response as a JSON array like this:
[
  {{
    "id": "scene1",
    "scene": "Scene title",
    "description": "Detailed visual description",
    "keywords": ["keyword1", "keyword2", "keyword3"],
    "duration": 5
  }}
]

Your response should ONLY include the JSON array with no additional text or explanation.

Description: {prompt}"""

FIX_JSON_PROMPT = """The following JSON string has errors. Please fix the JSON format issues and return ONLY the corrected JSON array of scenes:

{broken}"""


def _extract_json_text(response_text: str) -> str:
    """Strip markdown code fences that models sometimes wrap JSON in."""
    fence = re.search(r'```(?:json)?\s*\n?(.*?)\n?```', response_text, re.DOTALL)
    if fence:
        return fence.group(1).strip()
    return response_text.strip()


def _parse_scenes(response_text: str) -> List[Dict]:
    """
    Parse the model output into a list of scene dicts.

    Raises:
        ValueError: not JSON, or not a JSON array.
    """
    text = _extract_json_text(response_text)
    try:
        scenes = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse LLM response as JSON: {e}")

    if not isinstance(scenes, list):
        raise ValueError("Response is not an array")
    return scenes


def normalize_scenes(scenes: List[Dict]) -> List[Dict]:
    """Fill in any field the model left out."""
    normalized = []
    for index, scene in enumerate(scenes):
        scene = scene if isinstance(scene, dict) else {}
        normalized.append({
            "id": scene.get("id") or f"scene{index + 1}",
            "scene": scene.get("scene") or f"Scene {index + 1}",
            "description": scene.get("description") or DEFAULT_DESCRIPTION,
            "keywords": scene.get("keywords") or list(DEFAULT_KEYWORDS),
            "duration": scene.get("duration") or DEFAULT_SCENE_DURATION_S,
        })
    return normalized


# ═════════════════════════════════════════════════════════════
# 2. GEMINI (primary LLM)
# ═════════════════════════════════════════════════════════════

async def _complete_with_gemini(
    prompt: str,
    temperature: float,
    max_tokens: int,
    sampling: Optional[Dict] = None,
) -> str:
    url = GEMINI_URL.format(model=GEMINI_MODEL)
    generation_config = {"temperature": temperature, "maxOutputTokens": max_tokens}
    generation_config.update(sampling or {})

    body = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }

    logger.info(f"Sending prompt to {GEMINI_MODEL}...")

    async with httpx.AsyncClient(timeout=60) as client:
        response = await client.post(url, params={"key": GEMINI_API_KEY}, json=body)

    if response.status_code >= 400:
        raise RuntimeError(f"Gemini API returned {response.status_code}: {response.text}")

    data = response.json()
    candidates = data.get("candidates") or []
    if not candidates:
        raise RuntimeError("Invalid response format from Gemini API")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


# ═════════════════════════════════════════════════════════════
# 3. CLAUDE (Anthropic)
# ═════════════════════════════════════════════════════════════

async def _complete_with_claude(prompt: str, temperature: float, max_tokens: int) -> str:
    from anthropic import Anthropic

    client = Anthropic(api_key=ANTHROPIC_API_KEY)

    logger.info("Sending prompt to Claude...")

    message = client.messages.create(
        model=CLAUDE_MODEL,
        max_tokens=max_tokens,
        temperature=temperature,
        messages=[{"role": "user", "content": prompt}],
    )
    return message.content[0].text


# ═════════════════════════════════════════════════════════════
# 4. GPT-4o (OpenAI)
# ═════════════════════════════════════════════════════════════

async def _complete_with_gpt(prompt: str, temperature: float, max_tokens: int) -> str:
    from openai import OpenAI

    client = OpenAI(api_key=OPENAI_API_KEY)

    logger.info("Sending prompt to GPT-4o...")

    response = client.chat.completions.create(
        model=GPT_MODEL,
        max_tokens=max_tokens,
        temperature=temperature,
        messages=[{"role": "user", "content": prompt}],
    )
    return response.choices[0].message.content


# ═════════════════════════════════════════════════════════════
# 5. PUBLIC API
# ═════════════════════════════════════════════════════════════

def select_llm(preferred_llm: str = "auto") -> str:
    """Resolve "auto" to the first backend with a configured key."""
    if preferred_llm != "auto":
        return preferred_llm
    if GEMINI_API_KEY:
        return "gemini"
    if ANTHROPIC_API_KEY:
        return "claude"
    if OPENAI_API_KEY:
        return "gpt"
    raise ValueError(
        "No LLM API key found. Set GEMINI_API_KEY, ANTHROPIC_API_KEY or OPENAI_API_KEY."
    )


async def complete_prompt(
    prompt: str,
    temperature: float = SCENE_TEMPERATURE,
    max_tokens: int = MAX_OUTPUT_TOKENS,
    preferred_llm: str = "auto",
    sampling: Optional[Dict] = None,
) -> str:
    """
    Send one prompt to the selected LLM and return its text.

    `sampling` holds extra Gemini generation settings (topK, topP).
    """
    llm = select_llm(preferred_llm)

    if llm == "gemini":
        return await _complete_with_gemini(prompt, temperature, max_tokens, sampling)
    if llm == "claude":
        return await _complete_with_claude(prompt, temperature, max_tokens)
    if llm == "gpt":
        return await _complete_with_gpt(prompt, temperature, max_tokens)
    raise ValueError(f"Unknown LLM: {llm}")


async def generate_scenes(prompt: str, preferred_llm: str = "auto") -> Dict:
    """
    Break a video description into scenes.

    Args:
        prompt:        What the video is about.
        preferred_llm: "gemini", "claude", "gpt" or "auto" (default).

    Returns:
        dict with:
          - scenes (list):   normalized scene dicts
          - raw (str):       the model's original text
          - model_used (str)
    """
    if not prompt or not prompt.strip():
        raise ValueError("Prompt is required")

    llm = select_llm(preferred_llm)
    raw = await complete_prompt(
        SCENE_PROMPT.format(prompt=prompt),
        SCENE_TEMPERATURE,
        preferred_llm=llm,
        sampling=SCENE_SAMPLING,
    )

    try:
        scenes = _parse_scenes(raw)
    except ValueError as e:
        logger.warning(f"Scene JSON did not parse ({e}), asking the model to fix it")
        fixed = await complete_prompt(
            FIX_JSON_PROMPT.format(broken=_extract_json_text(raw)),
            FIX_TEMPERATURE,
            preferred_llm=llm,
        )
        scenes = _parse_scenes(fixed)

    scenes = normalize_scenes(scenes)
    logger.info(f"Generated {len(scenes)} scene(s) with {llm}")

    return {
        "scenes": scenes,
        "raw": raw,
        "model_used": {"gemini": GEMINI_MODEL, "claude": CLAUDE_MODEL}.get(llm, GPT_MODEL),
    }


def fallback_scenes() -> List[Dict]:
    return [dict(scene, keywords=list(scene["keywords"])) for scene in FALLBACK_SCENES]
