"""
speech.py — Narration & Text-to-Speech Service (ElevenLabs)
=============================================================

Produces the voice-over for a video:
  • `generate_narration` writes a 15-40 word script from the scene
    descriptions using the same LLM backends as the scene generator.
  • `synthesize_speech` turns text into MP3 audio with ElevenLabs.
"""

import base64
import logging
import os
from typing import Dict, List, Optional, Union

import httpx

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config import ELEVEN_LABS_API_KEY, ELEVEN_LABS_TTS_URL, ELEVEN_LABS_MODEL, DEFAULT_VOICE_ID
from services.scene_generator import complete_prompt

logger = logging.getLogger(__name__)

FALLBACK_NARRATION = "Journey with us through this moment of beauty and wonder."

NARRATION_TEMPERATURE = 0.7
NARRATION_MAX_TOKENS = 100

VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.5}

AVAILABLE_VOICES = [
    {"id": "21m00Tcm4TlvDq8ikWAM", "name": "Rachel", "description": "Warm and conversational"},
    {"id": "AZnzlk1XvdvUeBnXmlld", "name": "Domi", "description": "Strong and confident"},
    {"id": "EXAVITQu4vr4xnSDxMaL", "name": "Sarah", "description": "Professional and clear"},
    {"id": "MF3mGyEYCl7XYWbV9V6O", "name": "Elli", "description": "Approachable and friendly"},
    {"id": "pNInz6obpgDQGcFmaJgB", "name": "Adam", "description": "Deep and authoritative"},
    {"id": "yoZ06aMxZJJ28mfd3POQ", "name": "Josh", "description": "Warm and engaging"},
]

NARRATION_PROMPT = """Generate a short, emotionally resonant voiceover script for this video scene:

"{description}"

Requirements:
1. The narration should match the tone, emotion, and pacing of the visual.
2. Keep it between 15-40 words, suitable for 5 to 15 seconds of speech.
3. Use natural, human tone. No robotic phrasing or generic commentary.
4. Enhance the mood/story rather than describing visuals literally.
5. Write in a warm, emotional, heartfelt, joyful, or nostalgic tone as appropriate.

Provide ONLY the voiceover script with no extra formatting, labels, or quotes."""


class SpeechError(RuntimeError):
    pass


def voice_name(voice_id: str) -> str:
    for voice in AVAILABLE_VOICES:
        if voice["id"] == voice_id:
            return f"{voice['name']} - {voice['description']}"
    return "Unknown Voice"


def describe_scenes(scenes: Union[List[Dict], str]) -> str:
    """Join scene descriptions into one passage for the narration prompt."""
    if isinstance(scenes, str):
        return scenes
    if isinstance(scenes, list):
        return " ".join(
            (scene.get("description") or "") for scene in scenes if isinstance(scene, dict)
        ).strip()
    raise ValueError("Invalid scenes format")


async def generate_narration(scenes: Union[List[Dict], str]) -> str:
    """
    Write a narration script for the scenes.

    Falls back to a stock line when no LLM is configured or the call fails.
    """
    description = describe_scenes(scenes)

    try:
        text = await complete_prompt(
            NARRATION_PROMPT.format(description=description),
            temperature=NARRATION_TEMPERATURE,
            max_tokens=NARRATION_MAX_TOKENS,
        )
    except (ValueError, RuntimeError, httpx.HTTPError) as e:
        logger.warning(f"Narration generation failed, using fallback: {e}")
        return FALLBACK_NARRATION

    narration = (text or "").strip().strip('"').strip()
    return narration or FALLBACK_NARRATION


async def synthesize_speech(text: str, voice_id: Optional[str] = None) -> bytes:
    """
    Convert text to MP3 audio.

    Raises:
        SpeechError: missing key, API error or empty audio.
    """
    if not ELEVEN_LABS_API_KEY:
        raise SpeechError("ElevenLabs API key is not configured")

    voice_id = voice_id or DEFAULT_VOICE_ID
    payload = {
        "text": text,
        "model_id": ELEVEN_LABS_MODEL,
        "voice_settings": VOICE_SETTINGS,
    }
    headers = {
        "Content-Type": "application/json",
        "xi-api-key": ELEVEN_LABS_API_KEY,
        "Accept": "audio/mpeg",
    }

    logger.info(f"Synthesising {len(text)} chars with voice {voice_id}")

    async with httpx.AsyncClient(timeout=60) as client:
        response = await client.post(f"{ELEVEN_LABS_TTS_URL}/{voice_id}", json=payload, headers=headers)

    if response.status_code >= 400:
        raise SpeechError(
            f"ElevenLabs API error: {response.status_code}. Details: {response.text[:500]}"
        )

    if not response.content:
        raise SpeechError("Received empty audio data from ElevenLabs")

    return response.content


async def generate_audio(
    script: Optional[str] = None,
    scenes: Union[List[Dict], str, None] = None,
    voice_id: Optional[str] = None,
) -> Dict:
    """
    Narrate a video: use the given script, or write one from the scenes.

    Returns:
        dict with audio_base64, format, voice_id, narration_script, voice_name.
    """
    if script and script.strip():
        narration = script
    elif scenes:
        narration = await generate_narration(scenes)
    else:
        raise ValueError("Either script or scenes are required")

    voice_id = voice_id or DEFAULT_VOICE_ID
    audio = await synthesize_speech(narration, voice_id)

    return {
        "audio_base64": base64.b64encode(audio).decode("ascii"),
        "audio_bytes": audio,
        "format": "mp3",
        "voice_id": voice_id,
        "narration_script": narration,
        "voice_name": voice_name(voice_id),
    }
