"""
test_stock_media.py — Unit Tests for the Pexels Search Service
================================================================

Run:
    cd backend
    python -m pytest tests/test_stock_media.py -v
"""

import sys
import os
import asyncio

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import services.stock_media as stock_media
from services.stock_media import (
    build_query, pick_video_file, format_video, search_videos, find_scene_video,
    StockMediaError,
)
from tests.conftest import mock_async_client


def _pexels_video(video_id: int = 1, files=None) -> dict:
    return {
        "id": video_id,
        "duration": 12,
        "image": "https://images.pexels.com/fallback.jpg",
        "video_pictures": [{"picture": "https://images.pexels.com/thumb.jpg"}],
        "user": {"name": "Ana", "url": "https://www.pexels.com/@ana"},
        "video_files": files if files is not None else [
            {"quality": "sd", "width": 640, "height": 360, "link": "https://videos.pexels.com/sd.mp4"},
            {"quality": "hd", "width": 1920, "height": 1080, "link": "https://videos.pexels.com/hd.mp4"},
        ],
    }


# ═════════════════════════════════════════════════════════════
# 1. QUERY + SELECTION
# ═════════════════════════════════════════════════════════════

class TestBuildQuery:

    def test_list_and_string(self):
        assert build_query(["ocean", " waves ", ""]) == "ocean waves"
        assert build_query("  mountain lake ") == "mountain lake"

    def test_max_terms(self):
        assert build_query(["a", "b", "c", "d"], max_terms=3) == "a b c"

    def test_errors(self):
        with pytest.raises(ValueError, match="required"):
            build_query(None)
        with pytest.raises(ValueError, match="Invalid keywords"):
            build_query(42)
        with pytest.raises(ValueError, match="Empty search query"):
            build_query(["  ", ""])


class TestPickVideoFile:

    def test_prefers_wide_hd(self):
        assert pick_video_file(_pexels_video()["video_files"])["quality"] == "hd"

    def test_falls_back_to_sd_then_first(self):
        files = [
            {"quality": "hd", "width": 960, "link": "small-hd"},
            {"quality": "sd", "width": 640, "link": "sd"},
        ]
        assert pick_video_file(files)["link"] == "sd"
        assert pick_video_file([{"quality": "mobile", "width": 320, "link": "tiny"}])["link"] == "tiny"
        assert pick_video_file([]) is None

    def test_format_video(self):
        video = format_video(_pexels_video())
        assert video["url"] == "https://videos.pexels.com/hd.mp4"
        assert video["image"] == "https://images.pexels.com/thumb.jpg"
        assert video["width"] == 1920
        assert video["user"]["name"] == "Ana"

    def test_format_video_defaults(self):
        raw = _pexels_video()
        raw["user"] = None
        raw["video_pictures"] = []
        video = format_video(raw)
        assert video["image"] == "https://images.pexels.com/fallback.jpg"
        assert video["user"] == {"name": "Pexels Contributor", "url": "https://www.pexels.com"}
        assert format_video(_pexels_video(files=[])) is None


# ═════════════════════════════════════════════════════════════
# 2. SEARCH
# ═════════════════════════════════════════════════════════════

class TestSearch:

    def test_missing_key(self):
        with pytest.raises(StockMediaError) as exc:
            asyncio.run(search_videos(["ocean"]))
        assert exc.value.status_code == 500

    def test_success(self, monkeypatch):
        monkeypatch.setattr(stock_media, "PEXELS_API_KEY", "px-key")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"videos": [_pexels_video(1), _pexels_video(2, files=[])]})

        mock_async_client(monkeypatch, handler)
        results = asyncio.run(search_videos(["ocean", "waves"], per_page=5))

        assert [v["id"] for v in results] == [1]
        assert seen["auth"] == "px-key"
        assert seen["params"] == {"query": "ocean waves", "per_page": "5", "orientation": "landscape"}

    @pytest.mark.parametrize("status", [401, 429, 500])
    def test_upstream_errors(self, monkeypatch, status):
        monkeypatch.setattr(stock_media, "PEXELS_API_KEY", "px-key")
        mock_async_client(monkeypatch, lambda request: httpx.Response(status, text="nope"))

        with pytest.raises(StockMediaError) as exc:
            asyncio.run(search_videos("ocean"))
        assert exc.value.status_code == (status if status != 500 else 502)

    def test_find_scene_video(self, monkeypatch):
        monkeypatch.setattr(stock_media, "PEXELS_API_KEY", "px-key")
        mock_async_client(monkeypatch, lambda request: httpx.Response(200, json={"videos": [_pexels_video()]}))

        assert asyncio.run(find_scene_video(["ocean"])) == "https://videos.pexels.com/hd.mp4"

    def test_find_scene_video_swallows_failures(self):
        assert asyncio.run(find_scene_video(["ocean"])) is None
        assert asyncio.run(find_scene_video([])) is None
