"""
test_speech.py — Unit Tests for Narration & Text-to-Speech
============================================================

Run:
    cd backend
    python -m pytest tests/test_speech.py -v
"""

import sys
import os
import asyncio
import base64
import json

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import services.speech as speech
from services.speech import (
    voice_name, describe_scenes, generate_narration, synthesize_speech, generate_audio,
    SpeechError, FALLBACK_NARRATION,
)
from tests.conftest import mock_async_client


class TestHelpers:

    def test_voice_name(self):
        assert voice_name("21m00Tcm4TlvDq8ikWAM") == "Rachel - Warm and conversational"
        assert voice_name("nope") == "Unknown Voice"

    def test_describe_scenes(self):
        scenes = [{"description": "Sunrise"}, {"scene": "no description"}, {"description": "Night"}]
        assert describe_scenes(scenes) == "Sunrise  Night"
        assert describe_scenes("already text") == "already text"
        with pytest.raises(ValueError):
            describe_scenes(7)


class TestNarration:

    def test_fallback_without_llm(self):
        assert asyncio.run(generate_narration([{"description": "A quiet beach"}])) == FALLBACK_NARRATION

    def test_strips_quotes(self, monkeypatch):
        async def fake_complete(prompt, **kwargs):
            assert "A quiet beach" in prompt
            return '  "Waves whisper stories of the day."  '

        monkeypatch.setattr(speech, "complete_prompt", fake_complete)
        assert asyncio.run(generate_narration("A quiet beach")) == "Waves whisper stories of the day."


class TestSynthesis:

    def test_missing_key(self):
        with pytest.raises(SpeechError, match="not configured"):
            asyncio.run(synthesize_speech("hello"))

    def test_requires_script_or_scenes(self):
        with pytest.raises(ValueError, match="Either script or scenes"):
            asyncio.run(generate_audio())

    def test_generate_audio(self, monkeypatch):
        monkeypatch.setattr(speech, "ELEVEN_LABS_API_KEY", "el-key")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers["xi-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"ID3-mp3-bytes")

        mock_async_client(monkeypatch, handler)
        result = asyncio.run(generate_audio(script="Hello there", voice_id="pNInz6obpgDQGcFmaJgB"))

        assert seen["path"].endswith("/pNInz6obpgDQGcFmaJgB")
        assert seen["key"] == "el-key"
        assert seen["body"]["text"] == "Hello there"
        assert result["audio_base64"] == base64.b64encode(b"ID3-mp3-bytes").decode("ascii")
        assert result["voice_name"] == "Adam - Deep and authoritative"
        assert result["narration_script"] == "Hello there"

    def test_api_error(self, monkeypatch):
        monkeypatch.setattr(speech, "ELEVEN_LABS_API_KEY", "el-key")
        mock_async_client(monkeypatch, lambda request: httpx.Response(401, text="bad key"))

        with pytest.raises(SpeechError, match="401"):
            asyncio.run(synthesize_speech("hello"))
